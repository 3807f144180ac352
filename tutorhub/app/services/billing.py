"""Money helpers: Decimal rounding, minor-unit conversion and early-end pricing."""

from decimal import Decimal, ROUND_HALF_UP

CENTS = Decimal("0.01")


def to_money(value: Decimal | float | int | str) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal | float) -> int:
    """Major currency units to the integer cents Stripe expects."""
    return int((to_money(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(cents: int) -> Decimal:
    return (Decimal(cents) / Decimal("100")).quantize(CENTS)


def clamp_actual_duration(elapsed_minutes: int, scheduled_minutes: int) -> int:
    """Billable minutes never go below zero or past the booked duration."""
    return max(0, min(elapsed_minutes, scheduled_minutes))


def calculate_actual_cost(price: Decimal | float, scheduled_minutes: int, actual_minutes: int) -> Decimal:
    """Pro-rate ``price`` by the share of the session that actually ran."""
    if scheduled_minutes <= 0:
        return to_money(price)
    actual = clamp_actual_duration(actual_minutes, scheduled_minutes)
    cost = Decimal(str(price)) * Decimal(actual) / Decimal(scheduled_minutes)
    return cost.quantize(CENTS, rounding=ROUND_HALF_UP)
