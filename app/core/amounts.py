from __future__ import annotations

import re
from decimal import Decimal, ROUND_HALF_UP, localcontext

from app.core.errors import InvalidAmount

WEI_PER_ETH = 10**18
UNIT = "ETH"
DISPLAY_PLACES = Decimal("0.000001")
MAX_WEI = 2**256 - 1

# plain decimal text only: no sign, exponent, separators or special values
_DECIMAL_RE = re.compile(r"^(\d+(\.\d*)?|\.\d+)$")

# wide enough that no uint256 amount is ever rounded
_PRECISION = 100


def format_eth(wei: int) -> str:
    """Render wei as '0.010000 ETH'."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        eth = (Decimal(int(wei)) / WEI_PER_ETH).quantize(DISPLAY_PLACES, rounding=ROUND_HALF_UP)
    return f"{eth:.6f} {UNIT}"


def parse_eth(value) -> int:
    """
    '0.01', '0.01 ETH', ' 1.5ETH ' -> wei.

    Rejects negatives, exponents, anything finer than 1 wei and anything
    that does not fit in a uint256.
    """
    cleaned = str(value).strip()
    if cleaned.upper().endswith(UNIT):
        cleaned = cleaned[: -len(UNIT)].strip()
    if not _DECIMAL_RE.match(cleaned):
        raise InvalidAmount(f"Invalid amount: {value!r}")

    whole, _, frac = cleaned.partition(".")
    if len(frac.rstrip("0")) > 18:
        raise InvalidAmount(f"Too many decimals: {value!r}")
    # uint256 has 78 digits, so longer integer parts cannot fit
    if len(whole.lstrip("0")) > 78:
        raise InvalidAmount(f"Amount too large: {value!r}")

    with localcontext() as ctx:
        ctx.prec = _PRECISION
        wei = int(Decimal(cleaned) * WEI_PER_ETH)
    if wei > MAX_WEI:
        raise InvalidAmount(f"Amount too large: {value!r}")
    return wei
