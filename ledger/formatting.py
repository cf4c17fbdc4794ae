"""
Currency formatting for views, the CLI and PDF exports.

Defaults mirror the en-IN rupee display used across the ERP screens:
₹1,00,000 (lakh grouping, no decimals).  Western grouping (₹100,000) is
available for other locales.
"""
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from .balance import to_decimal

GROUPING_INDIAN = "indian"
GROUPING_WESTERN = "western"


def _group_indian(digits: str) -> str:
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs) + "," + tail


def _group_western(digits: str) -> str:
    return f"{int(digits):,}"


def format_currency(
    amount,
    symbol: str = "₹",
    decimals: int = 0,
    grouping: str = GROUPING_INDIAN,
) -> str:
    value = to_decimal(amount)
    quantum = Decimal(1).scaleb(-decimals) if decimals > 0 else Decimal(1)
    value = value.quantize(quantum, rounding=ROUND_HALF_UP)

    sign = "-" if value < 0 else ""
    text = f"{abs(value):.{max(decimals, 0)}f}"
    whole, _, fraction = text.partition(".")

    if grouping == GROUPING_WESTERN:
        whole = _group_western(whole)
    else:
        whole = _group_indian(whole)

    number = f"{whole}.{fraction}" if fraction else whole
    return f"{sign}{symbol}{number}"


@dataclass(frozen=True)
class CurrencyFormatter:
    """format_currency with the settings bound, usable as a plain callable."""
    symbol: str = "₹"
    decimals: int = 0
    grouping: str = GROUPING_INDIAN

    def __call__(self, amount) -> str:
        return format_currency(amount, self.symbol, self.decimals, self.grouping)

    @classmethod
    def from_config(cls, config) -> "CurrencyFormatter":
        return cls(
            symbol=config.currency_symbol,
            decimals=config.currency_decimals,
            grouping=config.digit_grouping,
        )
