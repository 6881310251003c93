"""
Tool catalog and dispatcher for the Solana wallet tools.

Both the MCP stdio server and the chat service go through ToolDispatcher, so
argument validation, wallet session handling and error wrapping live here.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Awaitable, Callable, Iterable, Literal, Union

from sol_amounts import AmountContext
from sol_wallet import (
    NotFoundError,
    ProviderError,
    SolConfig,
    SolWalletError,
    ValidationError,
    WalletSessionStore,
    _fetch_sol_price,
    get_balance_sol,
    validate_address,
)

logger = logging.getLogger(__name__)

ParamType = Literal["string", "number", "integer", "boolean", "object", "array"]

PriceLookup = Callable[[], Decimal]
BalanceLookup = Callable[[str], Decimal]

_PY_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "number": (int, float, Decimal),
    "integer": (int,),
    "boolean": (bool,),
    "object": (dict,),
    "array": (list, tuple),
}


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ToolParam:
    type: ParamType
    description: str
    required: bool = False


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    parameters: dict[str, ToolParam] = field(default_factory=dict)

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                pname: {"type": p.type, "description": p.description}
                for pname, p in self.parameters.items()
            },
            "required": [pname for pname, p in self.parameters.items() if p.required],
        }


@dataclass(frozen=True)
class ToolCall:
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Success:
    text: str
    ok: Literal[True] = True


@dataclass(frozen=True)
class Failure:
    error_text: str
    ok: Literal[False] = False


ToolResult = Union[Success, Failure]


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


_PUBLIC_KEY_PARAM = "publicKey"

TOOLS: tuple[Tool, ...] = (
    Tool(
        name="getCurrentSolanaPrice",
        description="Fetches the current Solana (SOL) price in USD from CoinGecko API",
    ),
    Tool(
        name="getSolBalance",
        description="Fetches the SOL balance for a given Solana public key",
        parameters={
            _PUBLIC_KEY_PARAM: ToolParam(
                type="string",
                description="The Solana public key as a string",
                required=True,
            ),
        },
    ),
    Tool(
        name="connectWallet",
        description="Connect a Solana wallet using its public key.",
        parameters={
            _PUBLIC_KEY_PARAM: ToolParam(
                type="string",
                description="The Solana wallet public key to connect",
                required=True,
            ),
        },
    ),
    Tool(
        name="getConnectedWallet",
        description="Get information about the currently connected wallet",
    ),
    Tool(
        name="disconnectWallet",
        description="Disconnect the currently connected wallet",
    ),
)


class ToolRegistry:
    """Fixed, ordered catalog of tools."""

    def __init__(self, tools: Iterable[Tool]) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            self._tools[tool.name] = tool

    def list(self) -> tuple[Tool, ...]:
        return tuple(self._tools.values())

    def find(self, name: str) -> Tool:
        try:
            return self._tools[name]
        except KeyError:
            raise NotFoundError(f"Unknown tool: {name}") from None

    def validate(self, call: ToolCall) -> dict[str, Any]:
        """
        Check call against the tool's schema and return the arguments to use.

        Unknown tools raise NotFoundError; missing or mistyped arguments raise
        ValidationError. Arguments not in the schema are dropped.
        """
        tool = self.find(call.name)
        if not isinstance(call.arguments, dict):
            raise ValidationError("Invalid arguments. Expected an object.")

        cleaned: dict[str, Any] = {}
        for pname, param in tool.parameters.items():
            value = call.arguments.get(pname)
            if value is None:
                if param.required:
                    raise ValidationError(f"{pname} parameter is required")
                continue
            expected = _PY_TYPES[param.type]
            # bool is a subclass of int
            if not isinstance(value, expected) or (
                isinstance(value, bool) and param.type != "boolean"
            ):
                raise ValidationError(f"Invalid {pname}. Expected type {param.type}.")
            cleaned[pname] = value
        return cleaned


registry = ToolRegistry(TOOLS)


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


def _default_price_lookup(cfg: SolConfig) -> PriceLookup:
    return lambda: _fetch_sol_price(cfg)


def _default_balance_lookup(cfg: SolConfig) -> BalanceLookup:
    return lambda address: get_balance_sol(cfg, address)


class ToolDispatcher:
    """
    Execute tool calls against a wallet session store and lookup capabilities.

    invoke() always returns exactly one Success or Failure and never raises.
    Lookups are blocking callables and run in a worker thread.
    """

    def __init__(
        self,
        session: WalletSessionStore | None = None,
        price_lookup: PriceLookup | None = None,
        balance_lookup: BalanceLookup | None = None,
        tool_registry: ToolRegistry | None = None,
        cfg: SolConfig | None = None,
    ) -> None:
        if price_lookup is None or balance_lookup is None:
            cfg = cfg or SolConfig.from_env()
        self.session = session if session is not None else WalletSessionStore()
        self.registry = tool_registry if tool_registry is not None else registry
        self._price_lookup = price_lookup or _default_price_lookup(cfg)  # type: ignore[arg-type]
        self._balance_lookup = balance_lookup or _default_balance_lookup(cfg)  # type: ignore[arg-type]
        self._handlers: dict[str, Callable[[dict[str, Any]], Awaitable[str]]] = {
            "getCurrentSolanaPrice": self._handle_get_price,
            "getSolBalance": self._handle_get_balance,
            "connectWallet": self._handle_connect_wallet,
            "getConnectedWallet": self._handle_get_connected_wallet,
            "disconnectWallet": self._handle_disconnect_wallet,
        }

    async def invoke(self, call: ToolCall) -> ToolResult:
        try:
            arguments = self.registry.validate(call)
            handler = self._handlers.get(call.name)
            if handler is None:
                raise NotFoundError(f"Unknown tool: {call.name}")
            return Success(await handler(arguments))
        except SolWalletError as exc:
            return Failure(f"Error: {exc}")
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected error in tool %s", call.name)
            return Failure(f"Error: {type(exc).__name__}: {exc}")

    async def fetch_price(self) -> Decimal:
        return await self._lookup(self._price_lookup)

    async def fetch_balance(self, address: str) -> Decimal:
        return await self._lookup(self._balance_lookup, address)

    async def amount_context(self, refresh_balance: bool = False) -> AmountContext:
        """
        Build an AmountContext from the connected wallet and the current price.

        With refresh_balance the balance is refetched and written back to the
        session, unless a different wallet was connected in the meantime.
        """
        current = self.session.get()
        balance = current.balance if current is not None else None
        if current is not None and (refresh_balance or balance is None):
            balance = await self.fetch_balance(current.public_key)
            self.session.update_balance(current.public_key, balance)
        price = await self.fetch_price()
        return AmountContext(balance=balance, reference_price=price)

    async def _lookup(self, fn: Callable[..., Decimal], *args: Any) -> Decimal:
        try:
            value = await asyncio.to_thread(fn, *args)
        except ProviderError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise ProviderError(str(exc) or type(exc).__name__) from exc
        return value if isinstance(value, Decimal) else Decimal(str(value))

    async def _handle_get_price(self, arguments: dict[str, Any]) -> str:
        price = await self.fetch_price()
        return f"Current SOL price: ${price:.2f} USD"

    async def _handle_get_balance(self, arguments: dict[str, Any]) -> str:
        address = validate_address(arguments.get(_PUBLIC_KEY_PARAM))
        balance, price = await asyncio.gather(
            self.fetch_balance(address), self.fetch_price()
        )
        usd_value = balance * price
        return f"SOL Balance: {balance:.4f} SOL\nUSD Value: ${usd_value:.2f}"

    async def _handle_connect_wallet(self, arguments: dict[str, Any]) -> str:
        address = validate_address(arguments.get(_PUBLIC_KEY_PARAM))
        balance = await self.fetch_balance(address)
        session = self.session.connect(address, balance)
        return (
            "Wallet connected successfully!\n"
            f"Public Key: {session.public_key}\n"
            f"Balance: {_format_balance(session.balance)}"
        )

    async def _handle_get_connected_wallet(self, arguments: dict[str, Any]) -> str:
        current = self.session.get()
        if current is None:
            return "No wallet currently connected. Use connectWallet to connect a wallet first."
        return (
            "Connected Wallet:\n"
            f"Public Key: {current.public_key}\n"
            f"Balance: {_format_balance(current.balance)}\n"
            "Status: Connected"
        )

    async def _handle_disconnect_wallet(self, arguments: dict[str, Any]) -> str:
        self.session.disconnect()
        return "Wallet disconnected successfully."


def _format_balance(balance: Decimal | None) -> str:
    if balance is None:
        return "unknown"
    return f"{balance:.4f} SOL"
