from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

CARD_FEE_PERCENTAGE = Decimal("0.039")
CARD_FEE_FIXED = Decimal("0.30")
_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class FeeBreakdown:
    gross: Decimal
    fee: Decimal
    net: Decimal


def to_major_units(amount_in_cents: int | None) -> Decimal:
    """Convert a processor amount (smallest currency unit) to major units."""
    return (Decimal(amount_in_cents or 0) / 100).quantize(_CENTS)


def card_fee(gross: Decimal) -> Decimal:
    """Processor fee on a card charge: 3.9% of gross plus 0.30, rounded to cents."""
    return (gross * CARD_FEE_PERCENTAGE + CARD_FEE_FIXED).quantize(_CENTS, rounding=ROUND_HALF_UP)


def breakdown_from_cents(amount_in_cents: int | None) -> FeeBreakdown:
    """Split a charged total into gross, fee and net (what the business keeps)."""
    gross = to_major_units(amount_in_cents)
    if gross <= 0:
        return FeeBreakdown(gross=gross, fee=Decimal("0.00"), net=gross)
    fee = card_fee(gross)
    return FeeBreakdown(gross=gross, fee=fee, net=gross - fee)
