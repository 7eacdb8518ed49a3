from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import List

from services.errors import ValidationError
from services.scheduling import validate_interval

CENTS = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ShareQuote:
    share_index: int
    share_amount: Decimal
    service_fee: Decimal
    total_owed: Decimal


def price(hourly_rate, start, end) -> Decimal:
    """Hourly rate times fractional hours, rounded to cents."""
    start_min, end_min = validate_interval(start, end)
    hours = Decimal(end_min - start_min) / Decimal(60)
    return to_money(Decimal(str(hourly_rate)) * hours)


def split_shares(total, attendees: int, fee) -> List[ShareQuote]:
    """
    Equal split of ``total`` across ``attendees`` payers, each paying the
    service fee on top. Shares are rounded independently, so their sum can
    differ from ``total`` by a few cents.
    """
    if attendees is None or int(attendees) < 1:
        raise ValidationError("attendees must be at least 1")
    attendees = int(attendees)
    share_amount = to_money(Decimal(str(total)) / Decimal(attendees))
    service_fee = to_money(fee)
    return [
        ShareQuote(
            share_index=i,
            share_amount=share_amount,
            service_fee=service_fee,
            total_owed=share_amount + service_fee,
        )
        for i in range(1, attendees + 1)
    ]
