"""
Pricing Policy - platform commission split for a note sale

Rounding rule: the platform fee is rounded DOWN to a whole minor unit and the
creator absorbs the remainder, so ``platform_fee + creator_amount == price``
holds exactly for every price.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN
from typing import Optional

from notemarket.core.config import settings


@dataclass(frozen=True)
class PriceSplit:
    price: int
    platform_fee: int
    creator_amount: int


def split(price: int, commission_rate: Optional[Decimal] = None) -> PriceSplit:
    """Split a sale price between the platform and the creator.

    ``price`` is validated by the caller (non-negative integer).
    """
    rate = settings.PLATFORM_COMMISSION_RATE if commission_rate is None else Decimal(str(commission_rate))
    platform_fee = int((Decimal(price) * rate).to_integral_value(rounding=ROUND_DOWN))
    return PriceSplit(
        price=price,
        platform_fee=platform_fee,
        creator_amount=price - platform_fee,
    )
