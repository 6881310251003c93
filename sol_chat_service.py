"""
Keyword-based chat front door for the Solana wallet tools.

IntentRouter maps a free-text message onto a ToolCall; ChatService runs it
through ToolDispatcher and renders a reply that always has some content.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from sol_tools import Failure, ToolCall, ToolDispatcher, ToolResult
from sol_wallet import SolConfig, ValidationError, shorten_address

logger = logging.getLogger(__name__)

# Unanchored; the dispatcher decides whether the token is a usable address.
_ADDRESS_SEARCH_RE = re.compile(r"([1-9A-HJ-NP-Za-km-z]{32,44})")

EXAMPLE_ADDRESS = "11111111111111111111111111111112"

BALANCE_USAGE = (
    "To check a balance, please provide a Solana public key. "
    f"Example: 'What's the balance for {EXAMPLE_ADDRESS}'"
)
CONNECT_USAGE = (
    "To connect a wallet, please provide a public key. "
    f"Example: 'Connect wallet {EXAMPLE_ADDRESS}'"
)

HELP_TEXT = """Hi! I'm your Solana assistant. I can help you with:

🔍 **Check SOL price**: "What's the current SOL price?"
💳 **Check balances**: "What's the balance for [public-key]?"
🔗 **Connect wallet**: "Connect wallet [your-public-key]"
📊 **Wallet status**: "What's my wallet status?"
🔌 **Disconnect**: "Disconnect wallet"

Try asking me something about Solana!"""

_APOLOGIES = {
    "getCurrentSolanaPrice": "Sorry, I couldn't fetch the current Solana price right now.",
    "getSolBalance": "Sorry, I couldn't fetch the balance for that address.",
    "connectWallet": "Sorry, I couldn't connect to that wallet.",
    "getConnectedWallet": "Error checking wallet status.",
    "disconnectWallet": "Error disconnecting wallet.",
}


def extract_address(message: str) -> str | None:
    match = _ADDRESS_SEARCH_RE.search(message)
    return match.group(1) if match else None


class IntentRouter:
    """
    Case-insensitive keyword router; first matching rule wins.

    The default order checks "price"/"sol" first, which also captures balance
    or connect messages that mention SOL. prefer_specific=True checks the
    narrower intents first instead.
    """

    def __init__(self, prefer_specific: bool = False) -> None:
        self.prefer_specific = prefer_specific
        if prefer_specific:
            self._rules = (
                self._match_disconnect,
                self._match_status,
                self._match_connect,
                self._match_balance,
                self._match_price,
            )
        else:
            self._rules = (
                self._match_price,
                self._match_balance,
                self._match_connect,
                self._match_status,
                self._match_disconnect,
            )

    def route(self, message: str) -> ToolCall | None:
        """
        Return the ToolCall for message, or None when nothing matches.

        Raises ValidationError carrying a usage hint when the intent needs an
        address and none is present.
        """
        lowered = message.lower()
        for rule in self._rules:
            call = rule(message, lowered)
            if call is not None:
                return call
        return None

    def _match_price(self, message: str, lowered: str) -> ToolCall | None:
        if "price" in lowered or "sol" in lowered:
            return ToolCall("getCurrentSolanaPrice")
        return None

    def _match_balance(self, message: str, lowered: str) -> ToolCall | None:
        if "balance" not in lowered:
            return None
        address = extract_address(message)
        if address is None:
            raise ValidationError(BALANCE_USAGE)
        return ToolCall("getSolBalance", {"publicKey": address})

    def _match_connect(self, message: str, lowered: str) -> ToolCall | None:
        if "connect" not in lowered or "disconnect" in lowered:
            return None
        if self.prefer_specific and not re.search(r"\bconnect\b", lowered):
            # "connected" alone is a status question in this mode
            return None
        address = extract_address(message)
        if address is None:
            raise ValidationError(CONNECT_USAGE)
        return ToolCall("connectWallet", {"publicKey": address})

    def _match_status(self, message: str, lowered: str) -> ToolCall | None:
        if "wallet" in lowered and ("status" in lowered or "connected" in lowered):
            return ToolCall("getConnectedWallet")
        return None

    def _match_disconnect(self, message: str, lowered: str) -> ToolCall | None:
        if "disconnect" in lowered:
            return ToolCall("disconnectWallet")
        return None


@dataclass
class ChatResponse:
    content: str
    error: str | None = None

    def to_dict(self) -> dict[str, str]:
        data = {"content": self.content}
        if self.error is not None:
            data["error"] = self.error
        return data


class ChatService:
    def __init__(self, dispatcher: ToolDispatcher, router: IntentRouter | None = None) -> None:
        self.dispatcher = dispatcher
        self.router = router or IntentRouter()

    @classmethod
    def from_config(cls, cfg: SolConfig) -> ChatService:
        return cls(ToolDispatcher(cfg=cfg), IntentRouter(prefer_specific=cfg.prefer_specific_intent))

    async def process_message(self, message: str) -> ChatResponse:
        try:
            call = self.router.route(message)
        except ValidationError as exc:
            return ChatResponse(content=str(exc))
        if call is None:
            return ChatResponse(content=HELP_TEXT)

        result = await self.dispatcher.invoke(call)
        return ChatResponse(content=self._render(call, result))

    def _render(self, call: ToolCall, result: ToolResult) -> str:
        if isinstance(result, Failure):
            logger.warning("Tool %s failed: %s", call.name, result.error_text)
            return _APOLOGIES.get(call.name, "Sorry, I encountered an error processing your request.")

        if call.name == "getCurrentSolanaPrice":
            return f"💰 {result.text}"
        if call.name == "getSolBalance":
            address = call.arguments["publicKey"]
            return f"💳 Balance for {shorten_address(address)}:\n{result.text}"
        if call.name in ("connectWallet", "disconnectWallet"):
            return f"✅ {result.text}"
        if call.name == "getConnectedWallet" and self.dispatcher.session.get() is None:
            return (
                "No wallet currently connected. "
                "Use 'connect wallet [your-public-key]' to connect a wallet."
            )
        return result.text
