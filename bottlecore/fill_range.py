from __future__ import annotations

from typing import Iterable, Sequence

from .models import Container, FillRange, Series

DEFAULT_MIN_FILL_PERCENT = 65.0
DEFAULT_MAX_FILL_PERCENT = 85.0


def calculate_fill_range(
    bottle: Container,
    min_percent: float = DEFAULT_MIN_FILL_PERCENT,
    max_percent: float = DEFAULT_MAX_FILL_PERCENT,
) -> FillRange:
    """Usable fill interval of one bottle.

    min = V * min% / 100, max = V * max% / 100, target at the midpoint percentage.
    """
    target_percent = (min_percent + max_percent) / 2.0
    volume = bottle.volume
    return FillRange(
        bottle_id=bottle.id,
        bottle_volume=volume,
        min_fill=volume * min_percent / 100.0,
        target_fill=volume * target_percent / 100.0,
        max_fill=volume * max_percent / 100.0,
        min_percent=min_percent,
        target_percent=target_percent,
        max_percent=max_percent,
    )


def calculate_fill_ranges(
    bottles: Iterable[Container],
    min_percent: float = DEFAULT_MIN_FILL_PERCENT,
    max_percent: float = DEFAULT_MAX_FILL_PERCENT,
) -> list[FillRange]:
    return [calculate_fill_range(b, min_percent, max_percent) for b in bottles]


def calculate_series_fill_ranges(series: Series) -> list[FillRange]:
    """Fill ranges at the series' own configured percentages."""
    return calculate_fill_ranges(series.bottles, series.config.fill_range_min, series.config.fill_range_max)


def get_total_coverage(ranges: Sequence[FillRange]) -> float:
    """Length of the union of [min_fill, max_fill] intervals, in mL."""
    if not ranges:
        return 0.0

    ordered = sorted(ranges, key=lambda r: r.min_fill)
    total = 0.0
    current_max = ordered[0].min_fill
    for r in ordered:
        start = max(r.min_fill, current_max)
        if r.max_fill > start:
            total += r.max_fill - start
            current_max = max(current_max, r.max_fill)
    return total
