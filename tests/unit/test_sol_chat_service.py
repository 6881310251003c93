"""Unit tests for keyword intent routing and chat replies."""

import asyncio
import sys
from decimal import Decimal
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(REPO_ROOT))

import sol_chat_service as chat  # noqa: E402
from sol_chat_service import ChatResponse, ChatService, IntentRouter  # noqa: E402
from sol_tools import ToolCall, ToolDispatcher  # noqa: E402
from sol_wallet import ProviderError, ValidationError, WalletSessionStore  # noqa: E402

SYSTEM_PROGRAM = "11111111111111111111111111111112"
WALLET_A = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_service(price=Decimal("150"), balance=Decimal("1.5"), prefer_specific=False):
    def price_lookup():
        if isinstance(price, Exception):
            raise price
        return price

    def balance_lookup(address):
        if isinstance(balance, Exception):
            raise balance
        return balance

    dispatcher = ToolDispatcher(
        session=WalletSessionStore(),
        price_lookup=price_lookup,
        balance_lookup=balance_lookup,
    )
    return ChatService(dispatcher, IntentRouter(prefer_specific=prefer_specific))


def _reply(service, message):
    return asyncio.run(service.process_message(message))


# ---------------------------------------------------------------------------
# Routing, default order
# ---------------------------------------------------------------------------


def test_route_price_question():
    assert IntentRouter().route("What's the current SOL price?") == ToolCall("getCurrentSolanaPrice")


def test_route_balance_with_address():
    call = IntentRouter().route(f"balance for {SYSTEM_PROGRAM}")
    assert call == ToolCall("getSolBalance", {"publicKey": SYSTEM_PROGRAM})


def test_route_balance_without_address_raises_hint():
    with pytest.raises(ValidationError, match="provide a Solana public key"):
        IntentRouter().route("what is my balance")


def test_route_connect_with_address():
    call = IntentRouter().route(f"Connect wallet {WALLET_A}")
    assert call == ToolCall("connectWallet", {"publicKey": WALLET_A})


def test_route_connect_without_address_raises_hint():
    with pytest.raises(ValidationError, match="To connect a wallet"):
        IntentRouter().route("connect my wallet")


def test_route_wallet_status():
    assert IntentRouter().route("What's my wallet status?") == ToolCall("getConnectedWallet")


def test_route_disconnect():
    assert IntentRouter().route("Disconnect wallet") == ToolCall("disconnectWallet")


def test_route_unmatched_returns_none():
    assert IntentRouter().route("hello there") is None


def test_default_order_lets_price_capture_sol_messages():
    # "sol" in "solana" wins before balance is considered
    call = IntentRouter().route(f"solana balance for {WALLET_A}")
    assert call == ToolCall("getCurrentSolanaPrice")


def test_default_order_treats_wallet_connected_as_connect():
    with pytest.raises(ValidationError, match="To connect a wallet"):
        IntentRouter().route("is my wallet connected?")


def test_address_extraction_preserves_case():
    call = IntentRouter().route(f"BALANCE {WALLET_A}")
    assert call.arguments["publicKey"] == WALLET_A


# ---------------------------------------------------------------------------
# Routing, specific-first order
# ---------------------------------------------------------------------------


def test_specific_order_prefers_balance_over_sol():
    call = IntentRouter(prefer_specific=True).route(f"solana balance for {WALLET_A}")
    assert call == ToolCall("getSolBalance", {"publicKey": WALLET_A})


def test_specific_order_connected_is_status():
    call = IntentRouter(prefer_specific=True).route("is my wallet connected?")
    assert call == ToolCall("getConnectedWallet")


def test_specific_order_connect_sol_wallet():
    call = IntentRouter(prefer_specific=True).route(f"connect my SOL wallet {WALLET_A}")
    assert call == ToolCall("connectWallet", {"publicKey": WALLET_A})


def test_specific_order_still_routes_price():
    assert IntentRouter(prefer_specific=True).route("sol price?") == ToolCall("getCurrentSolanaPrice")


# ---------------------------------------------------------------------------
# Chat replies
# ---------------------------------------------------------------------------


def test_price_reply():
    response = _reply(_make_service(price=Decimal("142.5")), "price please")
    assert response == ChatResponse(content="💰 Current SOL price: $142.50 USD")


def test_price_failure_is_apology():
    response = _reply(_make_service(price=ProviderError("HTTP 500")), "SOL price?")
    assert response.content == "Sorry, I couldn't fetch the current Solana price right now."
    assert response.error is None


def test_balance_reply_shortens_address():
    response = _reply(_make_service(), f"balance for {WALLET_A}")
    assert response.content == (
        "💳 Balance for 9WzDXwBb...9zYtAWWM:\nSOL Balance: 1.5000 SOL\nUSD Value: $225.00"
    )


def test_balance_reply_when_rpc_rejects_address():
    service = _make_service(balance=ProviderError("Invalid param: WrongSize"))
    response = _reply(service, f"balance for {WALLET_A}")
    assert response.content == "Sorry, I couldn't fetch the balance for that address."


def test_balance_without_address_reply():
    response = _reply(_make_service(), "balance?")
    assert response.content == chat.BALANCE_USAGE


def test_connect_status_disconnect_flow():
    service = _make_service()

    connected = _reply(service, f"Connect wallet {WALLET_A}")
    assert connected.content.startswith("✅ Wallet connected successfully!")
    assert f"Public Key: {WALLET_A}" in connected.content

    status = _reply(service, "wallet status")
    assert "Status: Connected" in status.content
    assert "Balance: 1.5000 SOL" in status.content

    disconnected = _reply(service, "disconnect wallet")
    assert disconnected.content == "✅ Wallet disconnected successfully."

    status = _reply(service, "wallet status")
    assert status.content.startswith("No wallet currently connected.")
    assert "connect wallet [your-public-key]" in status.content


def test_connect_failure_is_apology():
    service = _make_service(balance=ProviderError("rpc down"))
    response = _reply(service, f"connect {WALLET_A}")
    assert response.content == "Sorry, I couldn't connect to that wallet."
    assert service.dispatcher.session.get() is None


def test_unmatched_message_gets_help():
    response = _reply(_make_service(), "hello")
    assert response.content == chat.HELP_TEXT
    assert "Check SOL price" in response.content


def test_every_reply_has_content():
    service = _make_service(price=ProviderError("down"), balance=ProviderError("down"))
    for message in [
        "price",
        f"balance {WALLET_A}",
        f"connect {WALLET_A}",
        "wallet status",
        "disconnect",
        "???",
    ]:
        assert _reply(service, message).content


def test_chat_response_to_dict():
    assert ChatResponse("hi").to_dict() == {"content": "hi"}
    assert ChatResponse("hi", "boom").to_dict() == {"content": "hi", "error": "boom"}


def test_from_config_uses_intent_flag():
    from sol_wallet import SolConfig

    service = ChatService.from_config(SolConfig(prefer_specific_intent=True))
    assert service.router.prefer_specific is True
