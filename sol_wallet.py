from __future__ import annotations

import logging
import os
import re
import threading
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Literal

import requests
from dotenv import load_dotenv

# Load .env from the module directory or its parent
PROJECT_ROOT = Path(__file__).resolve().parent
load_dotenv(PROJECT_ROOT / ".env")
load_dotenv(PROJECT_ROOT.parent / ".env")

logger = logging.getLogger(__name__)

SolCommitment = Literal["processed", "confirmed", "finalized"]

LAMPORTS_PER_SOL = Decimal(1_000_000_000)

DEFAULT_RPC_URL = "https://api.devnet.solana.com"
DEFAULT_PRICE_API_URL = (
    "https://api.coingecko.com/api/v3/simple/price?ids=solana&vs_currencies=usd"
)

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_ADDRESS_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class SolWalletError(Exception):
    """Base class for all Solana wallet errors."""


class ConfigError(SolWalletError):
    """Invalid or missing configuration."""


class ValidationError(SolWalletError):
    """Bad or missing argument, raised before any side effect."""


class ParseError(SolWalletError):
    """Amount text could not be turned into a number."""


class ProviderError(SolWalletError):
    """Price, balance or RPC lookup failed."""


class NotFoundError(SolWalletError):
    """Unknown tool name, or no wallet where one is required."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() not in ("false", "0", "no", "off", "")


@dataclass
class SolConfig:
    """
    Configuration for the Solana wallet tools.

    Values are sourced from environment variables or a .env file.

    - SOLANA_RPC_URL: JSON-RPC endpoint (defaults to devnet).
    - SOLANA_COMMITMENT: processed, confirmed or finalized (defaults to confirmed).
    - SOL_PRICE_API_URL: CoinGecko-compatible simple price endpoint.
    - SOL_HTTP_TIMEOUT: seconds before any outbound request is abandoned.
    - SOL_CHAT_HOST / SOL_CHAT_PORT: bind address of the chat HTTP server.
    - SOL_CHAT_PREFER_SPECIFIC_INTENT: route the most specific keyword first.
    - SOL_LOG_LEVEL: logging level name for the entry points.
    """

    rpc_url: str = DEFAULT_RPC_URL
    commitment: SolCommitment = "confirmed"
    price_api_url: str = DEFAULT_PRICE_API_URL
    http_timeout: float = 10.0
    chat_host: str = "127.0.0.1"
    chat_port: int = 3001
    prefer_specific_intent: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> SolConfig:
        raw_commitment = os.getenv("SOLANA_COMMITMENT", "confirmed").strip().lower()
        if raw_commitment not in ("processed", "confirmed", "finalized"):
            raise ConfigError(
                f"Invalid SOLANA_COMMITMENT={raw_commitment!r}. "
                "Expected 'processed', 'confirmed' or 'finalized'."
            )

        raw_timeout = os.getenv("SOL_HTTP_TIMEOUT", "10")
        try:
            http_timeout = float(raw_timeout)
        except ValueError as exc:
            raise ConfigError(f"Invalid SOL_HTTP_TIMEOUT={raw_timeout!r}. Must be a number.") from exc
        if http_timeout <= 0:
            raise ConfigError("Invalid SOL_HTTP_TIMEOUT. Must be greater than zero.")

        raw_port = os.getenv("SOL_CHAT_PORT", "3001")
        try:
            chat_port = int(raw_port)
        except ValueError as exc:
            raise ConfigError(f"Invalid SOL_CHAT_PORT={raw_port!r}. Must be an integer.") from exc

        return cls(
            rpc_url=os.getenv("SOLANA_RPC_URL", DEFAULT_RPC_URL).strip() or DEFAULT_RPC_URL,
            commitment=raw_commitment,  # type: ignore[arg-type]
            price_api_url=os.getenv("SOL_PRICE_API_URL", DEFAULT_PRICE_API_URL).strip()
            or DEFAULT_PRICE_API_URL,
            http_timeout=http_timeout,
            chat_host=os.getenv("SOL_CHAT_HOST", "127.0.0.1"),
            chat_port=chat_port,
            prefer_specific_intent=_env_flag("SOL_CHAT_PREFER_SPECIFIC_INTENT"),
            log_level=os.getenv("SOL_LOG_LEVEL", "INFO").upper(),
        )


# ---------------------------------------------------------------------------
# Addresses
# ---------------------------------------------------------------------------


def is_valid_address(value: Any) -> bool:
    """True when value looks like a base-58 account address (32-44 chars)."""
    return isinstance(value, str) and bool(_ADDRESS_RE.match(value))


def validate_address(value: Any, field_name: str = "publicKey") -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"Missing {field_name}.")
    if not isinstance(value, str):
        raise ValidationError(f"Invalid {field_name}. Expected a string.")
    address = value.strip()
    if not is_valid_address(address):
        raise ValidationError(
            f"Invalid {field_name}: {address!r}. Expected a base-58 address of 32-44 "
            "characters (no 0, O, I or l)."
        )
    return address


def shorten_address(address: str) -> str:
    if len(address) <= 16:
        return address
    return f"{address[:8]}...{address[-8:]}"


# ---------------------------------------------------------------------------
# Price and balance lookups
# ---------------------------------------------------------------------------


def _fetch_sol_price(cfg: SolConfig) -> Decimal:
    """
    Fetch the current SOL price in USD from CoinGecko.

    Raises ProviderError on transport errors, HTTP errors or an unexpected payload.
    """
    try:
        resp = requests.get(cfg.price_api_url, timeout=cfg.http_timeout)
        resp.raise_for_status()
        data = resp.json()
    except (requests.RequestException, ValueError) as exc:
        logger.warning("SOL price lookup failed: %s", exc)
        raise ProviderError(f"Failed to fetch price: {exc}") from exc

    try:
        price = Decimal(str(data["solana"]["usd"]))
    except (KeyError, TypeError, InvalidOperation) as exc:
        raise ProviderError("Failed to fetch price: unexpected response from price API.") from exc
    if price <= 0:
        raise ProviderError("Failed to fetch price: price API returned a non-positive price.")
    return price


def _rpc_call(cfg: SolConfig, method: str, params: list[Any]) -> Any:
    """POST a JSON-RPC request to the configured Solana endpoint."""
    payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
    try:
        resp = requests.post(cfg.rpc_url, json=payload, timeout=cfg.http_timeout)
        resp.raise_for_status()
        data = resp.json()
    except (requests.RequestException, ValueError) as exc:
        logger.warning("Solana RPC %s failed: %s", method, exc)
        raise ProviderError(f"Solana RPC {method} failed: {exc}") from exc

    if not isinstance(data, dict):
        raise ProviderError(f"Solana RPC {method} returned an unexpected response.")
    if data.get("error"):
        error = data["error"]
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise ProviderError(f"Solana RPC {method} failed: {message}")
    return data.get("result")


def get_balance_sol(cfg: SolConfig, address: str) -> Decimal:
    """Return the balance of address in SOL (lamports / 1e9)."""
    result = _rpc_call(cfg, "getBalance", [address, {"commitment": cfg.commitment}])
    try:
        lamports = int(result["value"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ProviderError("Solana RPC getBalance returned an unexpected response.") from exc
    return Decimal(lamports) / LAMPORTS_PER_SOL


# ---------------------------------------------------------------------------
# Wallet session
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WalletSession:
    public_key: str
    balance: Decimal | None = None


class WalletSessionStore:
    """
    Single-slot holder for the connected wallet.

    Sessions are immutable snapshots; every mutation swaps the whole slot under
    a lock, so readers see either the old or the new session in full.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._session: WalletSession | None = None

    def get(self) -> WalletSession | None:
        with self._lock:
            return self._session

    @property
    def connected(self) -> bool:
        return self.get() is not None

    def connect(self, public_key: str, balance: Decimal | None) -> WalletSession:
        session = WalletSession(public_key=public_key, balance=balance)
        with self._lock:
            previous = self._session
            self._session = session
        if previous is not None and previous.public_key != public_key:
            logger.info(
                "Replaced wallet %s with %s",
                shorten_address(previous.public_key),
                shorten_address(public_key),
            )
        else:
            logger.info("Connected wallet %s", shorten_address(public_key))
        return session

    def disconnect(self) -> WalletSession | None:
        with self._lock:
            previous = self._session
            self._session = None
        if previous is not None:
            logger.info("Disconnected wallet %s", shorten_address(previous.public_key))
        return previous

    def update_balance(self, public_key: str, balance: Decimal) -> WalletSession | None:
        """
        Store a fresh balance only if public_key is still the connected wallet.

        Returns the updated session, or None when the slot changed meanwhile.
        """
        with self._lock:
            current = self._session
            if current is None or current.public_key != public_key:
                return None
            self._session = replace(current, balance=balance)
            return self._session
