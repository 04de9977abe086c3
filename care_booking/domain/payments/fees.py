"""Platform fee split and price bounds, all amounts in integer cents"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from ...config import APPOINTMENT_FEE_RATE, CONSULTATION_FEE_RATE, MAX_HOURLY_RATE, MIN_HOURLY_RATE
from ...exceptions import ValidationError
from ...models import BookingPath


@dataclass(frozen=True)
class FeeSplit:
    total_amount: int
    platform_fee: int
    expert_earnings: int


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def split(total_amount: int, fee_rate: Union[float, Decimal, str]) -> FeeSplit:
    """
    Split a total between platform and expert.

    platform_fee = total * rate rounded half-up to a whole cent;
    expert_earnings is the remainder, so the two always sum to the total.
    """
    if not _is_int(total_amount) or total_amount <= 0:
        raise ValidationError("Total amount must be a positive number of cents")

    rate = Decimal(str(fee_rate))
    if rate < 0 or rate > 1:
        raise ValidationError("Fee rate must be between 0 and 1")

    platform_fee = int((Decimal(total_amount) * rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return FeeSplit(
        total_amount=total_amount,
        platform_fee=platform_fee,
        expert_earnings=total_amount - platform_fee,
    )


class FeeSchedule:
    """Named platform fee rates per booking path"""

    def __init__(self, rates: dict = None):
        self.rates = rates or {
            BookingPath.APPOINTMENT.value: APPOINTMENT_FEE_RATE,
            BookingPath.CONSULTATION.value: CONSULTATION_FEE_RATE,
        }

    def rate_for(self, booking_path: str) -> float:
        key = booking_path.value if isinstance(booking_path, BookingPath) else booking_path
        if key not in self.rates:
            raise ValidationError(f"Unknown booking path '{booking_path}'")
        return self.rates[key]

    def split_for(self, total_amount: int, booking_path: str) -> FeeSplit:
        return split(total_amount, self.rate_for(booking_path))


def validate_hourly_rate(rate: int) -> int:
    if not _is_int(rate) or not MIN_HOURLY_RATE <= rate <= MAX_HOURLY_RATE:
        raise ValidationError(
            f"Hourly rate must be between ${MIN_HOURLY_RATE / 100:.2f} and ${MAX_HOURLY_RATE / 100:.2f}"
        )
    return rate


def total_bounds(duration_minutes: int) -> tuple[int, int]:
    """Min and max total (cents) for a duration, from the hourly rate bounds"""
    low = Decimal(MIN_HOURLY_RATE) * duration_minutes / 60
    high = Decimal(MAX_HOURLY_RATE) * duration_minutes / 60
    return (
        int(low.quantize(Decimal("1"), rounding=ROUND_HALF_UP)),
        int(high.quantize(Decimal("1"), rounding=ROUND_HALF_UP)),
    )


def validate_total(total_amount: int, duration_minutes: int) -> int:
    """Total must fall inside the hourly rate bounds prorated to the duration"""
    if not _is_int(total_amount) or total_amount <= 0:
        raise ValidationError("Total amount must be a positive number of cents")
    low, high = total_bounds(duration_minutes)
    if not low <= total_amount <= high:
        raise ValidationError(
            f"Total amount {total_amount} is outside the allowed range {low}-{high} for {duration_minutes} minutes"
        )
    return total_amount
