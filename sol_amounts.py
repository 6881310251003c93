"""
Natural-language amount parsing.

Turns expressions like "1.5 SOL", "$100", "half my balance" or "all" into a
Decimal. Relative markers are checked first, in a fixed order:

1. "all" / "everything" -> the whole balance
2. "half"               -> balance / 2
3. "quarter"            -> balance / 4

Anything else must contain an explicit positive number.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from sol_wallet import ParseError

_SYMBOLS_RE = re.compile(r"[$,]")
_UNITS_RE = re.compile(r"\b(usd|dollars?|sol|solana)\b")
_NUMBER_RE = re.compile(r"(-?)(\d+\.?\d*)")


@dataclass(frozen=True)
class AmountContext:
    balance: Decimal | None = None
    reference_price: Decimal | None = None


def parse_natural_language_amount(text: str, context: AmountContext | None = None) -> Decimal:
    if context is None:
        context = AmountContext()
    normalized = (text or "").lower().strip()
    balance = context.balance if context.balance is not None else Decimal(0)

    if "all" in normalized or "everything" in normalized:
        return balance
    if "half" in normalized:
        return balance / 2
    if "quarter" in normalized:
        return balance / 4

    cleaned = _UNITS_RE.sub("", _SYMBOLS_RE.sub("", normalized)).strip()
    match = _NUMBER_RE.search(cleaned)
    if match is None:
        raise ParseError(
            f'Could not parse amount from: "{text}". '
            'Please use a numeric value like "1.5" or "$100"'
        )

    sign, digits = match.groups()
    if sign:
        raise ParseError(f'Negative amounts are not allowed: "{text}".')
    try:
        amount = Decimal(digits)
    except InvalidOperation as exc:
        raise ParseError(f'Could not parse amount from: "{text}".') from exc
    if amount <= 0:
        raise ParseError(f'Amount must be greater than zero: "{text}".')
    return amount
