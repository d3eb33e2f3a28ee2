from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

CENT = Decimal('0.01')


def to_money(value, strict=False):
    """
    Convert ``value`` to a cent-quantized Decimal. Floats go through ``str`` to avoid binary drift.

    With ``strict`` a value that does not fit in whole cents is refused instead of rounded.
    """
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(f"Invalid monetary amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Monetary amount must be finite: {value!r}")
    try:
        quantized = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"Monetary amount is out of range: {value!r}")
    if strict and quantized != amount:
        raise ValueError(f"Monetary amount must have at most two decimal places: {value!r}")
    return quantized


def validate_fee_rate(rate):
    try:
        rate = rate if isinstance(rate, Decimal) else Decimal(str(rate))
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(f"Invalid platform fee rate: {rate!r}")
    if not rate.is_finite() or rate < 0 or rate >= 1:
        raise ValueError(f"Platform fee rate must be in [0, 1), got {rate}")
    return rate


def get_platform_fee_rate():
    """The single source of the platform fee rate for every balance-moving path."""
    try:
        return validate_fee_rate(settings.PLATFORM_FEE_RATE)
    except (ValueError, InvalidOperation) as exc:
        raise ImproperlyConfigured(f"PLATFORM_FEE_RATE is invalid: {exc}")


def split_amount(amount, rate=None):
    """
    Split a settlement amount into ``(platform_fee, amount_to_freelancer)``.

    The fee is rounded half-up to the cent and the payout is the exact remainder,
    so ``platform_fee + amount_to_freelancer == amount`` always holds.
    """
    amount = to_money(amount)
    if amount <= 0:
        raise ValueError("Amount must be greater than zero.")
    rate = get_platform_fee_rate() if rate is None else validate_fee_rate(rate)

    fee = (amount * rate).quantize(CENT, rounding=ROUND_HALF_UP)
    return fee, amount - fee


def fee_percentage(rate=None):
    """Rate expressed as a percentage, e.g. ``Decimal('2.00')`` for 0.02."""
    rate = get_platform_fee_rate() if rate is None else validate_fee_rate(rate)
    return (rate * 100).quantize(CENT, rounding=ROUND_HALF_UP)
