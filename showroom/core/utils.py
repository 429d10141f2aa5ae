import json
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Union
import pytz
from showroom.core.config import settings
from showroom.core.exceptions import InvalidAmount

CENT = Decimal("0.01")

def dumps(data: Any) -> str:
    """json.dumps that writes Decimals as strings, so amounts survive a round trip exactly."""
    return json.dumps(data, ensure_ascii=False, default=_encode_decimal)

def _encode_decimal(obj):
    if isinstance(obj, Decimal):
        return str(obj)
    raise TypeError(f"{type(obj).__name__} is not JSON serializable")

def get_now():
    """Returns current time in configured timezone (default Asia/Shanghai)"""
    tz = pytz.timezone(settings.TIMEZONE)
    return datetime.now(tz)

def today_str() -> str:
    """Calendar date in the configured timezone, as stored on orders/deposits (YYYY-MM-DD)."""
    return get_now().date().isoformat()

def to_timezone(dt: datetime):
    """Converts a datetime to configured timezone"""
    if dt is None:
        return None
    tz = pytz.timezone(settings.TIMEZONE)
    if dt.tzinfo is None:
        # SQLite drops tzinfo; func.now() values are UTC
        return pytz.utc.localize(dt).astimezone(tz)
    return dt.astimezone(tz)

def to_decimal(value: Union[Decimal, float, int, str]) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Not a valid amount: {value!r}")

def to_cents(value: Union[Decimal, float, int, str]) -> Decimal:
    """
    Parses a CNY amount as stored (two decimal places). Sub-cent precision
    is rejected, not rounded, so the stored amount is always the one the
    payer asked for.
    """
    amount = to_decimal(value)
    try:
        cents = amount.quantize(CENT)
    except InvalidOperation:
        raise ValueError(f"Not a valid amount: {value!r}")
    if cents != amount:
        raise ValueError(f"Amounts are limited to two decimal places: {value!r}")
    return cents

def positive_amount(value) -> Decimal:
    """to_cents for amounts that must be above zero. Raises InvalidAmount."""
    try:
        amount = to_cents(value)
    except ValueError:
        raise InvalidAmount()
    if amount <= 0:
        raise InvalidAmount()
    return amount

def format_cny(amount: Union[Decimal, float, int, str]) -> str:
    """¥212,800 for whole amounts, ¥1,234.50 otherwise."""
    value = to_decimal(amount)
    if value == value.to_integral_value():
        return f"¥{int(value):,}"
    return f"¥{value:,.2f}"
