"""Null-safe numeric helpers for feature aggregation.

Every helper treats a missing operand, an empty sample or a zero
denominator as "unknown" and returns None. Nothing here returns 0 or
infinity in place of an undefined result unless the docstring says so.
"""

import math
from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal


def to_float(value: object) -> float | None:
    """Cast an upstream value to float, keeping None as None."""
    if value is None:
        return None
    return float(value)  # type: ignore[arg-type]


def _present(values: Iterable[float | None]) -> list[float]:
    return [v for v in values if v is not None]


def mean(values: Iterable[float | None]) -> float | None:
    """Arithmetic mean of the non-null values; None when there are none."""
    present = _present(values)
    if not present:
        return None
    return sum(present) / len(present)


def std_dev(values: Iterable[float | None]) -> float | None:
    """Sample standard deviation (Bessel-corrected, n - 1) of the non-null values.

    Returns None when fewer than two values are present.
    """
    present = _present(values)
    count = len(present)
    if count <= 1:
        return None

    avg = sum(present) / count
    variance = sum((v - avg) ** 2 for v in present) / (count - 1)
    return math.sqrt(variance)


def z_score(value: float | None, avg: float | None, std: float | None) -> float | None:
    """Standardize ``value`` against ``avg``/``std``; None if std is missing or zero."""
    if value is None or avg is None or not std:
        return None
    return (value - avg) / std


def safe_div(numerator: float | None, denominator: float | None) -> float | None:
    """``numerator / denominator`` or None for a missing operand or zero denominator."""
    if numerator is None or denominator is None or denominator == 0:
        return None
    return numerator / denominator


def safe_ratio(part: float | None, other: float | None) -> float | None:
    """Share of ``part`` in ``part + other``; None when the total is zero or unknown."""
    if part is None or other is None:
        return None
    return safe_div(part, part + other)


def percent_change(current: float | None, previous: float | None) -> float | None:
    """Percent change from ``previous`` to ``current``.

    Returns None if either value is unknown or ``previous`` is zero.
    """
    if current is None or previous is None or previous == 0:
        return None
    return (current - previous) / previous * 100


def percent_change_from_index(closes: Sequence[float | None], offset: int) -> float | None:
    """Percent change between the newest close and the close ``offset`` rows back.

    ``closes`` is ordered newest first. The lookup is by row count, not by
    time, so gaps in the upstream series shift the effective horizon.

    Args:
        closes: Close values, newest first.
        offset: Number of rows between the newest value and the reference.

    Returns:
        Percent change, or None when the series has ``offset`` or fewer rows
        or either endpoint is unknown/zero.
    """
    if len(closes) <= offset:
        return None
    return percent_change(closes[0], closes[offset])


def ema(values: Sequence[float | None], period: int) -> float | None:
    """Final Exponential Moving Average value over ``values`` (oldest first).

    Uses the standard recursive formula:
        k = 2 / (period + 1)
        EMA_t = k * value_t + (1 - k) * EMA_{t-1}

    The first non-null value seeds the average; null values are skipped.

    Returns:
        The last EMA value, or None when no value is present.
    """
    series = ema_series(values, period)
    return series[-1] if series else None


def ema_series(values: Sequence[float | None], period: int) -> list[float]:
    """Running EMA over ``values`` (oldest first), one entry per non-null value."""
    present = _present(values)
    if not present:
        return []

    k = 2 / (period + 1)
    result = [present[0]]
    for value in present[1:]:
        result.append(value * k + result[-1] * (1 - k))
    return result


def sum_values(values: Iterable[float | None]) -> float:
    """Sum where unknown values count as zero; used for flow and volume totals."""
    return float(sum(_present(values)))


def signed_streak(values: Sequence[float | None]) -> int:
    """Length of the same-sign run starting at the newest value.

    ``values`` is ordered newest first. Positive values yield a positive
    count, negative values a negative count. A zero or unknown newest value
    yields 0; the run stops at the first zero, unknown or sign flip.
    """
    if not values or values[0] is None or values[0] == 0:
        return 0

    positive = values[0] > 0
    run = 0
    for value in values:
        if value is None or value == 0 or (value > 0) != positive:
            break
        run += 1
    return run if positive else -run


def range_pct(values: Iterable[float | None]) -> float | None:
    """High-low range of the sample as a percent of its low.

    Returns None with fewer than two values or a zero low.
    """
    present = _present(values)
    if len(present) < 2:
        return None
    low = min(present)
    return safe_div((max(present) - low) * 100, low)


def round_half_up(value: float, places: int) -> float:
    """Round half away from zero on the shortest decimal repr of ``value``.

    Avoids banker's rounding so 0.0125 rounds to 0.013 at three places.
    """
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))
