"""Yearly subscription fee calculation.

Pure functions only: no database access, no configuration lookups. Callers
pass every rate explicitly (see ``FeeQuoteService`` for the configured
defaults).
"""

from dataclasses import dataclass
from decimal import Decimal

from tvfees.core.errors import ValidationError
from tvfees.models.shared import quantize

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class FeeInput:
    base_amount: Decimal
    wire_length_m: Decimal = Decimal("0")
    wire_rate_per_m: Decimal = Decimal("0")
    late_fee_percent: Decimal = Decimal("0")
    overdue_years: int = 0
    extra_charges: Decimal = Decimal("0")


@dataclass(frozen=True)
class FeeBreakdown:
    base_amount: Decimal
    wire_surcharge: Decimal
    late_fee: Decimal
    extra_charges: Decimal

    @property
    def total_amount(self) -> Decimal:
        return self.base_amount + self.late_fee + self.wire_surcharge + self.extra_charges


def _non_negative(name: str, value: Decimal) -> Decimal:
    amount = Decimal(str(value))
    if amount < 0:
        raise ValidationError(f"{name} cannot be negative", field=name, value=value)
    return amount


def wire_surcharge(length_m: Decimal, rate_per_m: Decimal) -> Decimal:
    """Wiring surcharge: length times the per-meter rate."""
    return quantize(
        _non_negative("wire_length_m", length_m) * _non_negative("wire_rate_per_m", rate_per_m)
    )


def late_fee(base_amount: Decimal, percent: Decimal, overdue_years: int) -> Decimal:
    """Simple late fee: a percentage of the base per whole overdue year."""
    if isinstance(overdue_years, bool) or not isinstance(overdue_years, int):
        raise ValidationError(
            "overdue_years must be a whole number of years", field="overdue_years"
        )
    if overdue_years < 0:
        raise ValidationError(
            "overdue_years cannot be negative", field="overdue_years", value=overdue_years
        )
    base = _non_negative("base_amount", base_amount)
    rate = _non_negative("late_fee_percent", percent)
    return quantize(base * rate / HUNDRED * overdue_years)


def calculate_fee(data: FeeInput) -> FeeBreakdown:
    """Compute the amount due for one service year.

    Example: base 1000, 10 m of wire at 5/m, 10% late fee over 2 years
    gives 1000 + 50 + 200 = 1250.
    """
    base = quantize(_non_negative("base_amount", data.base_amount))
    extra = quantize(_non_negative("extra_charges", data.extra_charges))

    return FeeBreakdown(
        base_amount=base,
        wire_surcharge=wire_surcharge(data.wire_length_m, data.wire_rate_per_m),
        late_fee=late_fee(base, data.late_fee_percent, data.overdue_years),
        extra_charges=extra,
    )


def check_total(
    base_amount: Decimal,
    late_fee_amount: Decimal,
    wire_surcharge_amount: Decimal,
    extra_charges: Decimal,
) -> Decimal:
    """Validate stored fee components and return their total."""
    parts = {
        "base_amount": base_amount,
        "late_fee": late_fee_amount,
        "wire_surcharge": wire_surcharge_amount,
        "extra_charges": extra_charges,
    }
    return sum(
        (quantize(_non_negative(name, value)) for name, value in parts.items()),
        Decimal("0"),
    )
