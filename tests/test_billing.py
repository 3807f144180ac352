from decimal import Decimal

from tutorhub.app.services.billing import (
    calculate_actual_cost,
    clamp_actual_duration,
    from_minor_units,
    to_minor_units,
    to_money,
)


def test_calculate_actual_cost_prorates_early_end():
    assert calculate_actual_cost(Decimal("45.00"), 60, 30) == Decimal("22.50")
    assert calculate_actual_cost(Decimal("80.00"), 90, 45) == Decimal("40.00")


def test_calculate_actual_cost_never_exceeds_price():
    assert calculate_actual_cost(Decimal("45.00"), 60, 75) == Decimal("45.00")
    assert calculate_actual_cost(Decimal("45.00"), 60, 60) == Decimal("45.00")


def test_calculate_actual_cost_zero_minutes_is_free():
    assert calculate_actual_cost(Decimal("45.00"), 60, 0) == Decimal("0.00")
    assert calculate_actual_cost(Decimal("45.00"), 60, -5) == Decimal("0.00")


def test_calculate_actual_cost_rounds_half_up():
    # 10.00 * 20 / 60 = 3.333...
    assert calculate_actual_cost(Decimal("10.00"), 60, 20) == Decimal("3.33")
    # 0.05 * 30 / 60 = 0.025
    assert calculate_actual_cost(Decimal("0.05"), 60, 30) == Decimal("0.03")


def test_clamp_actual_duration():
    assert clamp_actual_duration(-3, 60) == 0
    assert clamp_actual_duration(42, 60) == 42
    assert clamp_actual_duration(61, 60) == 60


def test_minor_unit_conversion():
    assert to_minor_units(Decimal("45.00")) == 4500
    assert to_minor_units(19.99) == 1999
    assert from_minor_units(2250) == Decimal("22.50")
    assert to_money("3.005") == Decimal("3.01")
