"""
Amount Parsing and Arithmetic Helpers

All money is Decimal. Floats arriving from forms are converted through
their string form so 0.1 stays 0.1.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional


# Split rows may differ from their parent by at most one cent.
SPLIT_TOLERANCE = Decimal("0.01")

CENT = Decimal("0.01")
ZERO = Decimal("0")


def parse_amount(value: Any) -> Optional[Decimal]:
    """
    Parse a user-entered amount.

    Accepts Decimal, int, float and strings such as "12.34", "$1,234.50".
    Returns None for anything unparsable, empty, NaN or infinite.

    Examples:
        parse_amount("$45.99") -> Decimal("45.99")
        parse_amount("abc") -> None
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    else:
        clean = str(value).replace("$", "").replace(",", "").strip()
        if not clean:
            return None
        try:
            amount = Decimal(clean)
        except (InvalidOperation, ValueError):
            return None
    if not amount.is_finite():
        return None
    return amount


def percent_of(part: Decimal, whole: Decimal) -> int:
    """
    Whole-number percentage, rounded half up. 0 when `whole` is 0.

    Example:
        percent_of(Decimal("190"), Decimal("400")) -> 48
    """
    if whole == 0:
        return 0
    ratio = Decimal(part) / Decimal(whole) * 100
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_cents(amount: Decimal) -> Decimal:
    """Quantize to two decimal places, half up."""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def signed_for_type(amount: Decimal, transaction_type: str) -> Decimal:
    """Expenses are negative, income positive, transfers keep the magnitude."""
    magnitude = abs(amount)
    if transaction_type == "expense":
        return -magnitude
    return magnitude
