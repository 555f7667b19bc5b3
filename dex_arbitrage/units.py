"""
Raw/human unit conversion for ERC-20 amounts.

On-chain amounts are integers in the token's smallest denomination; human
amounts are Decimals scaled by the token's own decimal count. Always convert
with the decimals of the token the amount is denominated in.
"""

from decimal import ROUND_DOWN, Decimal, getcontext

# High precision so 256-bit raw amounts convert exactly
getcontext().prec = 100


def to_raw(amount: Decimal, decimals: int) -> int:
    """Scale a human amount to raw units, truncating any sub-unit remainder."""
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    scaled = amount * (Decimal(10) ** decimals)
    return int(scaled.quantize(Decimal(1), rounding=ROUND_DOWN))


def from_raw(raw: int, decimals: int) -> Decimal:
    """Convert a raw integer amount to a human Decimal (exact)."""
    return Decimal(raw).scaleb(-decimals)
