"""Conversions between human stream units and the per-second atomic rate.

Display amounts are decimal strings in the native token (e.g. "0.1"), atomic
amounts are integers with ``atomic_decimals`` fractional digits (18 by
default). The token price and precision are read from settings at call time
unless passed explicitly, so changing them re-derives every quote.

Precision: ``usd_per_hour_to_atomic_per_second`` floors twice, once when the
hourly token amount is scaled to atomic units (loss < 1 unit) and once in the
division by 3600 (loss <= 3599 units). The hourly round trip therefore loses
strictly less than 3600 atomic units, see ``round_trip_tolerance_usd``.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, ROUND_FLOOR, ROUND_HALF_EVEN, Decimal, Inexact, localcontext

from .errors import InvalidDuration
from .settings import settings
from .types import RateQuote

SECONDS_PER_HOUR = 3600
DISPLAY_PLACES = 6
MAX_UINT256 = 2**256 - 1

# Wide enough for 78-digit uint256 amounts.
_PRECISION = 78


def _price(price_usd: Decimal | None) -> Decimal:
    return settings.token_price_usd if price_usd is None else Decimal(price_usd)


def _decimals(decimals: int | None) -> int:
    return settings.atomic_decimals if decimals is None else decimals


def to_decimal(value: str | int | Decimal) -> Decimal:
    """Parse a user-entered number, raising ValueError for anything non-finite."""
    try:
        d = Decimal(value.strip()) if isinstance(value, str) else Decimal(value)
    except ArithmeticError as exc:
        raise ValueError(f"Not a number: {value!r}") from exc
    if not d.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return d


def plain(d: Decimal) -> str:
    """Render without exponent or trailing zeros: Decimal('1.2500') -> '1.25'."""
    if d == 0:
        return "0"
    return format(d.normalize(), "f")


def parse_to_atomic(amount: str | Decimal, decimals: int | None = None) -> int:
    decimals = _decimals(decimals)
    d = to_decimal(amount)
    if d < 0:
        raise ValueError(f"Amount must not be negative, got {amount!r}")
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        ctx.traps[Inexact] = True
        try:
            scaled = d.scaleb(decimals)
        except ArithmeticError as exc:
            raise ValueError(f"Amount {amount!r} is out of range") from exc
        if scaled != scaled.to_integral_value():
            raise ValueError(f"Amount {amount!r} has more than {decimals} fractional digits")
        if scaled > MAX_UINT256:
            raise ValueError(f"Amount {amount!r} does not fit in a uint256")
        return int(scaled)


def format_atomic(atomic: int, places: int = DISPLAY_PLACES, decimals: int | None = None) -> str:
    """Atomic -> display string with ``places`` digits, truncated toward zero."""
    decimals = _decimals(decimals)
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        q = Decimal(atomic).scaleb(-decimals).quantize(Decimal(1).scaleb(-places), rounding=ROUND_DOWN)
    return f"{q:f}"


def hours_to_seconds(hours: str | Decimal) -> int:
    # Nearest whole second, so hour strings derived from seconds (e.g. 100/3600) map back exactly.
    d = to_decimal(hours)
    try:
        seconds = (d * SECONDS_PER_HOUR).to_integral_value(rounding=ROUND_HALF_EVEN)
    except ArithmeticError as exc:
        raise ValueError(f"Duration {hours!r} is out of range") from exc
    if seconds > MAX_UINT256:
        raise ValueError(f"Duration {hours!r} does not fit in a uint256")
    return int(seconds)


def usd_per_hour_to_atomic_per_second(
    usd_per_hour: str | Decimal,
    price_usd: Decimal | None = None,
    decimals: int | None = None,
) -> int:
    usd = to_decimal(usd_per_hour)
    if usd < 0:
        raise ValueError(f"USD rate must not be negative, got {usd_per_hour!r}")
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        tokens_per_hour = usd / _price(price_usd)
        atomic_per_hour = int(tokens_per_hour.scaleb(_decimals(decimals)).to_integral_value(rounding=ROUND_FLOOR))
    return atomic_per_hour // SECONDS_PER_HOUR


def atomic_per_second_to_usd_per_hour(
    atomic_per_second: int,
    price_usd: Decimal | None = None,
    decimals: int | None = None,
) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        tokens_per_hour = Decimal(atomic_per_second * SECONDS_PER_HOUR).scaleb(-_decimals(decimals))
        return tokens_per_hour * _price(price_usd)


def round_trip_tolerance_usd(price_usd: Decimal | None = None, decimals: int | None = None) -> Decimal:
    """Upper bound on |x - usd_back(atomic(x))| for any hourly USD rate x."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return Decimal(SECONDS_PER_HOUR).scaleb(-_decimals(decimals)) * _price(price_usd)


def total_and_duration_to_rate(total_atomic: int, duration_seconds: int) -> int:
    if duration_seconds <= 0:
        raise InvalidDuration(duration_seconds)
    if total_atomic < 0:
        raise ValueError(f"Total amount must not be negative, got {total_atomic}")
    return total_atomic // duration_seconds


def usd_to_amount(usd: str | Decimal, price_usd: Decimal | None = None, decimals: int | None = None) -> str:
    """USD value -> display token amount at the configured price, truncated to atomic precision."""
    value = to_decimal(usd)
    if value < 0:
        raise ValueError(f"USD value must not be negative, got {usd!r}")
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        total = (value / _price(price_usd)).quantize(Decimal(1).scaleb(-_decimals(decimals)), rounding=ROUND_DOWN)
    return plain(total)


def usd_rate_to_total_amount(
    usd_per_hour: str | Decimal,
    duration_hours: str | Decimal,
    price_usd: Decimal | None = None,
    decimals: int | None = None,
) -> str:
    """Back-compute the display total for a USD/hour hint: usd * hours / price."""
    usd = to_decimal(usd_per_hour)
    hours = to_decimal(duration_hours)
    if usd < 0 or hours < 0:
        raise ValueError("USD rate and duration must not be negative")
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        total_usd = usd * hours
    return usd_to_amount(total_usd, price_usd, decimals)


def format_duration(seconds: int) -> str:
    if seconds <= 0:
        return "0 seconds"
    parts = []
    remaining = seconds
    for name, size in (("day", 86400), ("hour", 3600), ("minute", 60), ("second", 1)):
        n, remaining = divmod(remaining, size)
        if n:
            parts.append(f"{n} {name}" + ("" if n == 1 else "s"))
    return " ".join(parts)


def quote(
    total_amount: str | Decimal,
    duration_hours: str | Decimal,
    price_usd: Decimal | None = None,
    decimals: int | None = None,
) -> RateQuote:
    total_atomic = parse_to_atomic(total_amount, decimals)
    duration_seconds = hours_to_seconds(duration_hours)
    rate = total_and_duration_to_rate(total_atomic, duration_seconds)
    return RateQuote(
        total_amount_atomic=total_atomic,
        duration_seconds=duration_seconds,
        rate_per_second_atomic=rate,
        rate_per_hour_usd=atomic_per_second_to_usd_per_hour(rate, price_usd, decimals),
        rate_per_hour_display=format_atomic(rate * SECONDS_PER_HOUR, decimals=decimals),
        duration_display=format_duration(duration_seconds),
    )
