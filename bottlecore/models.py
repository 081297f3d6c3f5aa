from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal


ShapeFamily = Literal[
    "boston-round",
    "cylinder",
    "oval",
    "modern-pharmaceutical",
    "packer",
    "wide-mouth",
]

BaseProfile = Literal["flat", "concave", "convex", "petaloid"]

GenerationAlgorithm = Literal["linear", "golden-ratio", "logarithmic"]

GapSeverity = Literal["minor", "moderate", "major"]


SHAPE_NAMES: dict[str, str] = {
    "boston-round": "Boston Round",
    "cylinder": "Cylinder",
    "oval": "Oval",
    "modern-pharmaceutical": "Modern Pharmaceutical",
    "packer": "Packer",
    "wide-mouth": "Wide Mouth",
}

GENERATION_ALGORITHM_NAMES: dict[str, str] = {
    "linear": "Linear Progression",
    "golden-ratio": "Golden Ratio",
    "logarithmic": "Logarithmic Scale",
}


@dataclass(frozen=True)
class Dimensions:
    """Geometric parameters of a container, all lengths in mm.

    ``body_height >= neck_height`` is expected but not enforced; iterative
    solvers may pass through invalid states on the way to a result.
    """

    height: float = 100.0
    body_height: float = 85.0
    diameter: float = 45.0
    neck_height: float = 15.0
    neck_diameter: float = 22.0
    neck_finish: str = "28-400"
    shoulder_curve_radius: float = 15.0
    shoulder_angle: float = 45.0  # degrees
    base_profile: BaseProfile = "flat"
    base_diameter: float = 45.0
    base_indent_depth: float = 0.0
    wall_thickness: float = 1.5
    width_ratio: float | None = None  # oval / rectangular cross-sections


@dataclass(frozen=True)
class LabelZone:
    id: str
    name: str
    top_offset: float  # mm from shoulder
    height: float
    wrap_angle: float = 360.0
    color: str | None = None


@dataclass(frozen=True)
class Container:
    """A bottle. ``volume`` (mL) and ``surface_area`` (cm²) are derived.

    Whoever changes ``shape`` or ``dimensions`` must recompute both via
    ``geometry.compute_volume`` / ``geometry.compute_surface_area``.
    """

    id: str
    name: str
    shape: ShapeFamily
    dimensions: Dimensions
    volume: float = 0.0
    surface_area: float = 0.0
    cap_style: str = "screw-cap"
    cap_color: str = "#FFFFFF"
    body_color: str = "#FFFFFF"
    material: str = "HDPE"
    opacity: float = 1.0
    label_zones: tuple[LabelZone, ...] = ()
    is_custom: bool = False
    preset_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class GenerationConfig:
    algorithm: GenerationAlgorithm
    min_volume: float  # mL
    max_volume: float  # mL
    bottle_count: int  # 3-10 in the UI
    base_template_id: str  # container id or shape family
    fill_range_min: float = 65.0  # %
    fill_range_max: float = 85.0  # %


DEFAULT_GENERATION_CONFIG = GenerationConfig(
    algorithm="linear",
    min_volume=65.0,
    max_volume=700.0,
    bottle_count=5,
    base_template_id="boston-round",
    fill_range_min=65.0,
    fill_range_max=85.0,
)


@dataclass(frozen=True)
class Series:
    id: str
    name: str
    config: GenerationConfig
    bottles: tuple[Container, ...]
    description: str = ""
    category: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class FillRange:
    bottle_id: str
    bottle_volume: float
    min_fill: float  # mL
    target_fill: float
    max_fill: float
    min_percent: float
    target_percent: float
    max_percent: float


@dataclass(frozen=True)
class CoverageGap:
    """Uncovered volume interval ``[start_volume, end_volume)``."""

    start_volume: float
    end_volume: float
    gap_size: float
    severity: GapSeverity

    @property
    def midpoint(self) -> float:
        return 0.5 * (self.start_volume + self.end_volume)


@dataclass(frozen=True)
class IntraSeriesOverlap:
    start_volume: float
    end_volume: float
    overlap_size: float
    bottle1_id: str
    bottle2_id: str


@dataclass(frozen=True)
class CoverageOverlap:
    start_volume: float
    end_volume: float
    overlap_size: float
    series1_bottles: tuple[str, ...]
    series2_bottles: tuple[str, ...]


@dataclass(frozen=True)
class IntraSeriesAnalysis:
    series_id: str
    series_name: str
    gaps: tuple[CoverageGap, ...]
    total_gap_size: float
    overlaps: tuple[IntraSeriesOverlap, ...]
    total_overlap_size: float
    coverage_span: float  # mL from lowest min fill to highest max fill
    covered_range: float  # mL in the union of fill ranges
    coverage_efficiency: float  # % of span covered
    space_utilization: float  # % of the bottle-volume spread covered


@dataclass(frozen=True)
class CoverageSummary:
    series1: float
    series2: float
    combined: float


@dataclass(frozen=True)
class SeriesComparison:
    id: str
    name: str
    series1_id: str
    series2_id: str
    series1_analysis: IntraSeriesAnalysis
    series2_analysis: IntraSeriesAnalysis
    gaps: tuple[CoverageGap, ...]
    overlaps: tuple[CoverageOverlap, ...]
    series1_coverage: float
    series2_coverage: float
    combined_coverage: float
    recommendations: tuple[str, ...] = field(default_factory=tuple)
    notes: str = ""
    created_at: datetime | None = None


SHAPE_DEFAULTS: dict[str, Dimensions] = {
    "boston-round": Dimensions(
        height=90.0,
        body_height=85.0,
        diameter=45.0,
        neck_height=5.0,
        neck_diameter=37.0,
        neck_finish="28-400",
        shoulder_curve_radius=4.0,
        shoulder_angle=45.0,
        base_diameter=45.0,
        wall_thickness=1.5,
    ),
    "cylinder": Dimensions(
        height=120.0,
        body_height=105.0,
        diameter=50.0,
        neck_height=15.0,
        neck_diameter=24.0,
        neck_finish="28-400",
        shoulder_curve_radius=5.0,
        shoulder_angle=90.0,
        base_diameter=50.0,
        wall_thickness=1.5,
    ),
    "oval": Dimensions(
        height=110.0,
        body_height=95.0,
        diameter=55.0,
        neck_height=15.0,
        neck_diameter=24.0,
        neck_finish="28-400",
        shoulder_curve_radius=12.0,
        shoulder_angle=40.0,
        base_diameter=55.0,
        width_ratio=0.6,
        wall_thickness=1.5,
    ),
    "modern-pharmaceutical": Dimensions(
        height=130.0,
        body_height=115.0,
        diameter=60.0,
        neck_height=15.0,
        neck_diameter=28.0,
        neck_finish="33-400",
        shoulder_curve_radius=8.0,
        shoulder_angle=60.0,
        base_diameter=60.0,
        width_ratio=0.5,
        wall_thickness=2.0,
    ),
    "packer": Dimensions(
        height=95.0,
        body_height=80.0,
        diameter=55.0,
        neck_height=15.0,
        neck_diameter=38.0,
        neck_finish="38-400",
        shoulder_curve_radius=10.0,
        shoulder_angle=70.0,
        base_diameter=55.0,
        wall_thickness=2.0,
    ),
    "wide-mouth": Dimensions(
        height=85.0,
        body_height=70.0,
        diameter=60.0,
        neck_height=15.0,
        neck_diameter=53.0,
        neck_finish="53-400",
        shoulder_curve_radius=8.0,
        shoulder_angle=80.0,
        base_diameter=60.0,
        wall_thickness=2.0,
    ),
}


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
