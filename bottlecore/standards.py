from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class DiameterBracket:
    max_volume: float  # mL, inclusive upper bound
    diameter: float  # mm


@dataclass(frozen=True)
class CapSpec:
    bottle_diameter: float  # mm
    neck_diameter: float  # mm, roughly bottle diameter - 8 for a flush cap
    neck_finish: str


@dataclass(frozen=True)
class StandardsTables:
    """Manufacturable body diameters and their matching neck/cap finishes."""

    diameter_brackets: tuple[DiameterBracket, ...]
    cap_specs: tuple[CapSpec, ...]

    def __post_init__(self) -> None:
        if not self.diameter_brackets:
            raise ValueError("diameter_brackets must not be empty")
        if not self.cap_specs:
            raise ValueError("cap_specs must not be empty")
        limits = np.array([b.max_volume for b in self.diameter_brackets], dtype=float)
        if np.any(np.diff(limits) < 0):
            raise ValueError("diameter_brackets must be sorted by max_volume")


@dataclass(frozen=True)
class ScalingLimits:
    # Body height : body diameter band
    min_height_diameter_ratio: float = 1.2
    max_height_diameter_ratio: float = 3.0
    # Body height relative to the template's body height
    min_template_height_ratio: float = 0.3
    max_template_height_ratio: float = 3.0
    fine_tune_tolerance: float = 0.01  # fraction of the target volume
    fine_tune_iterations: int = 15


DEFAULT_STANDARDS = StandardsTables(
    diameter_brackets=(
        DiameterBracket(30, 48),
        DiameterBracket(60, 48),
        DiameterBracket(120, 58),
        DiameterBracket(200, 58),
        DiameterBracket(300, 58),
        DiameterBracket(500, 78),
        DiameterBracket(750, 78),
        DiameterBracket(1000, 78),
        DiameterBracket(2000, 98),
    ),
    cap_specs=(
        CapSpec(28, 20, "20-400"),
        CapSpec(33, 25, "24-400"),
        CapSpec(38, 30, "28-400"),
        CapSpec(43, 35, "28-400"),
        CapSpec(48, 40, "33-400"),
        CapSpec(53, 45, "33-400"),
        CapSpec(58, 50, "38-400"),
        CapSpec(63, 55, "38-400"),
        CapSpec(75, 67, "45-400"),
    ),
)

DEFAULT_LIMITS = ScalingLimits()

STANDARD_PHARMA_VOLUMES: tuple[float, ...] = (
    15, 30, 50, 60, 75, 100, 120, 150, 180, 200,
    240, 250, 300, 350, 400, 450, 500, 600, 750, 1000,
)


def standard_diameter(target_volume: float, tables: StandardsTables = DEFAULT_STANDARDS) -> float:
    """First bracket whose max_volume >= target; the largest diameter beyond the table."""
    for bracket in tables.diameter_brackets:
        if target_volume <= bracket.max_volume:
            return float(bracket.diameter)
    return float(tables.diameter_brackets[-1].diameter)


def standard_cap(bottle_diameter: float, tables: StandardsTables = DEFAULT_STANDARDS) -> CapSpec:
    """Cap entry whose bottle diameter is nearest; ties go to the earlier entry."""
    diameters = np.array([c.bottle_diameter for c in tables.cap_specs], dtype=float)
    return tables.cap_specs[int(np.argmin(np.abs(diameters - float(bottle_diameter))))]
