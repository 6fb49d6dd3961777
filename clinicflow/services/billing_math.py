# clinicflow/services/billing_math.py
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Tuple


def D(x) -> Decimal:
    try:
        return Decimal(str(x or 0))
    except Exception:
        return Decimal("0")


def money2(x) -> Decimal:
    return D(x).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def percent_of(amount, percent) -> Decimal:
    amount = D(amount)
    percent = D(percent)
    if amount < 0:
        amount = Decimal("0")
    if percent < 0:
        percent = Decimal("0")
    return money2(amount * percent / Decimal("100"))


def discounted_fee(fee_amount, discount_percent) -> Tuple[Decimal, Decimal]:
    """Returns (discount_amount, net_amount) for a consultation fee."""
    fee = money2(fee_amount)
    discount = percent_of(fee, discount_percent)
    return discount, money2(fee - discount)


def money_str(x) -> str:
    """JSON snapshots keep money as fixed 2dp strings."""
    return str(money2(x))
