"""Shared fixtures for the bottle core tests."""

from __future__ import annotations

import itertools
from datetime import datetime, timezone
from typing import Callable, Sequence

import pytest

from bottlecore.models import Container, Dimensions, FillRange, GenerationConfig, Series

FIXED_NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


@pytest.fixture
def id_factory() -> Callable[[], str]:
    """Deterministic ids: id-1, id-2, ..."""
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


def fill_range(min_fill: float, max_fill: float, bottle_id: str = "b", volume: float | None = None) -> FillRange:
    return FillRange(
        bottle_id=bottle_id,
        bottle_volume=volume if volume is not None else max_fill,
        min_fill=min_fill,
        target_fill=0.5 * (min_fill + max_fill),
        max_fill=max_fill,
        min_percent=65.0,
        target_percent=75.0,
        max_percent=85.0,
    )


@pytest.fixture
def make_range() -> Callable[..., FillRange]:
    return fill_range


def series_of(name: str, volumes: Sequence[float], fill_min: float = 65.0, fill_max: float = 85.0) -> Series:
    """Series whose bottles carry the given volumes directly."""
    bottles = tuple(
        Container(id=f"{name}-{i}", name=f"{v:g} mL", shape="boston-round", dimensions=Dimensions(), volume=v)
        for i, v in enumerate(volumes)
    )
    config = GenerationConfig(
        algorithm="linear",
        min_volume=min(volumes) if volumes else 0.0,
        max_volume=max(volumes) if volumes else 0.0,
        bottle_count=len(volumes),
        base_template_id="boston-round",
        fill_range_min=fill_min,
        fill_range_max=fill_max,
    )
    return Series(id=f"series-{name}", name=name, config=config, bottles=bottles)


@pytest.fixture
def make_series() -> Callable[..., Series]:
    return series_of
