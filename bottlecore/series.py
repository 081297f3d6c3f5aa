from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import datetime
from typing import Callable, Literal, Mapping, Sequence

import numpy as np

from .geometry import compute_volume, with_derived_metrics
from .math_utils import ConvergenceResult, clamp, converge, round_half_up
from .models import (
    SHAPE_DEFAULTS,
    Container,
    Dimensions,
    GenerationConfig,
    Series,
    new_id,
    utc_now,
)
from .standards import (
    DEFAULT_LIMITS,
    DEFAULT_STANDARDS,
    STANDARD_PHARMA_VOLUMES,
    ScalingLimits,
    StandardsTables,
    standard_cap,
    standard_diameter,
)

logger = logging.getLogger(__name__)

PHI = 1.618033988749895

FALLBACK_SHAPE = "boston-round"
BOSTON_NECK_CLEARANCE_MM = 8.0


# ---------------- Volume progressions ----------------


def linear_progression(min_volume: float, max_volume: float, count: int) -> list[float]:
    """V(i) = V_min + (V_max - V_min) * i / (n - 1)"""
    if count <= 1:
        return [float(min_volume)]
    step = (max_volume - min_volume) / (count - 1)
    return [round_half_up(min_volume + step * i) for i in range(count)]


def _require_positive_range(min_volume: float, max_volume: float) -> None:
    if min_volume <= 0 or max_volume <= 0:
        raise ValueError("min_volume and max_volume must be > 0")


def golden_ratio_progression(min_volume: float, max_volume: float, count: int) -> list[float]:
    """V(i) = V_min * r^i with r = max(φ, (V_max / V_min)^(1/(n-1))).

    After the value at index n-2 is emitted the running value is reset to
    V_max, so the last element is always V_max. When φ overshoots, the
    elements before it can exceed V_max.
    """
    if count <= 1:
        return [float(min_volume)]
    _require_positive_range(min_volume, max_volume)

    needed = (max_volume / min_volume) ** (1.0 / (count - 1))
    ratio = PHI if needed <= PHI else needed

    volumes: list[float] = []
    current = float(min_volume)
    for i in range(count):
        volumes.append(round_half_up(current))
        current *= ratio
        if i == count - 2:
            current = float(max_volume)
    return volumes


def logarithmic_progression(min_volume: float, max_volume: float, count: int) -> list[float]:
    """Evenly spaced in log-space: V(i) = exp(log V_min + i * Δ)."""
    if count <= 1:
        return [float(min_volume)]
    _require_positive_range(min_volume, max_volume)

    logs = np.linspace(math.log(min_volume), math.log(max_volume), int(count))
    return [round_half_up(v) for v in np.exp(logs)]


PROGRESSIONS: dict[str, Callable[[float, float, int], list[float]]] = {
    "linear": linear_progression,
    "golden-ratio": golden_ratio_progression,
    "logarithmic": logarithmic_progression,
}


def calculate_volumes(config: GenerationConfig) -> list[float]:
    progression = PROGRESSIONS.get(config.algorithm)
    if progression is None:
        logger.warning("Unknown algorithm %r, using linear progression", config.algorithm)
        progression = linear_progression
    return progression(config.min_volume, config.max_volume, config.bottle_count)


def standard_volumes(
    min_volume: float,
    max_volume: float,
    catalogue: Sequence[float] = STANDARD_PHARMA_VOLUMES,
) -> list[float]:
    """Catalogue pharmaceutical sizes inside [min_volume, max_volume]."""
    return [float(v) for v in catalogue if min_volume <= v <= max_volume]


# ---------------- Templates ----------------


def create_template_from_shape(shape: str) -> Container:
    dims = SHAPE_DEFAULTS[shape]
    if shape == "boston-round":
        dims = replace(
            dims,
            shoulder_curve_radius=4.0,
            neck_height=5.0,
            neck_diameter=dims.diameter - BOSTON_NECK_CLEARANCE_MM,
            height=dims.body_height + 5.0,
        )

    template = Container(
        id="template",
        name=shape,
        shape=shape,  # type: ignore[arg-type]
        dimensions=dims,
        body_color="#9696FF" if shape == "boston-round" else "#FFFFFF",
    )
    return with_derived_metrics(template)


def get_template(base_template_id: str, existing: Mapping[str, Container] | None = None) -> Container:
    """Resolve an existing container id, then a shape family, then boston-round."""
    if existing and base_template_id in existing:
        return existing[base_template_id]
    if base_template_id in SHAPE_DEFAULTS:
        return create_template_from_shape(base_template_id)
    logger.warning("Template %r not found, falling back to %s", base_template_id, FALLBACK_SHAPE)
    return create_template_from_shape(FALLBACK_SHAPE)


# ---------------- Standards-snapped scaling ----------------


def _set_body_height(dims: Dimensions, body_height: float) -> Dimensions:
    return replace(dims, body_height=body_height, height=body_height + dims.neck_height)


def enforce_ratio_limits(dims: Dimensions, limits: ScalingLimits = DEFAULT_LIMITS) -> Dimensions:
    """Pull body height back into the height:diameter band."""
    if dims.diameter <= 0:
        return dims
    ratio = dims.body_height / dims.diameter
    if ratio > limits.max_height_diameter_ratio:
        return _set_body_height(dims, dims.diameter * limits.max_height_diameter_ratio)
    if ratio < limits.min_height_diameter_ratio:
        return _set_body_height(dims, dims.diameter * limits.min_height_diameter_ratio)
    return dims


def fine_tune_volume(
    shape: str,
    dims: Dimensions,
    target_volume: float,
    limits: ScalingLimits = DEFAULT_LIMITS,
) -> ConvergenceResult[Dimensions]:
    """Stretch body height by target/current until within tolerance of the target."""

    def evaluate(d: Dimensions) -> float:
        return compute_volume(shape, d)

    def adjust(d: Dimensions, current: float) -> Dimensions:
        if current <= 0:
            return d
        body_height = clamp(
            d.body_height * (target_volume / current),
            d.diameter * limits.min_height_diameter_ratio,
            d.diameter * limits.max_height_diameter_ratio,
        )
        return _set_body_height(d, body_height)

    return converge(
        dims,
        evaluate,
        adjust,
        target=target_volume,
        tolerance=target_volume * limits.fine_tune_tolerance,
        max_iterations=limits.fine_tune_iterations,
    )


def _round_lengths(dims: Dimensions) -> Dimensions:
    return replace(
        dims,
        height=round_half_up(dims.height, 1),
        body_height=round_half_up(dims.body_height, 1),
        diameter=round_half_up(dims.diameter, 1),
        neck_height=round_half_up(dims.neck_height, 1),
        neck_diameter=round_half_up(dims.neck_diameter, 1),
        shoulder_curve_radius=round_half_up(dims.shoulder_curve_radius, 1),
        base_diameter=round_half_up(dims.base_diameter, 1),
        base_indent_depth=round_half_up(dims.base_indent_depth, 1),
    )


def finalize_bottle(
    bottle: Container,
    target_volume: float,
    id_factory: Callable[[], str] = new_id,
    clock: Callable[[], datetime] = utc_now,
) -> Container:
    """Fresh identity, volume-based name, rounded lengths, recomputed metrics."""
    now = clock()
    finalized = replace(
        bottle,
        id=id_factory(),
        name=f"{int(round_half_up(target_volume))} mL",
        dimensions=_round_lengths(bottle.dimensions),
        is_custom=False,
        created_at=now,
        updated_at=now,
    )
    return with_derived_metrics(finalized)


def scale_bottle_to_volume(
    template: Container,
    target_volume: float,
    index: int = 0,
    *,
    standards: StandardsTables = DEFAULT_STANDARDS,
    limits: ScalingLimits = DEFAULT_LIMITS,
    id_factory: Callable[[], str] = new_id,
    clock: Callable[[], datetime] = utc_now,
) -> Container:
    """Scale a copy of ``template`` to ``target_volume`` (mL) on standard diameters.

    1. body diameter from the volume brackets, neck/finish from the cap table
    2. body height from the inverted cylinder formula, clamped to the
       height:diameter band and to the template-relative band
    3. fine-tune body height against the real shape formula
    4. clamp to the height:diameter band once more and finalize
    """
    if template.volume <= 0:
        return finalize_bottle(template, target_volume, id_factory, clock)

    base = template.dimensions
    diameter = standard_diameter(target_volume, standards)
    cap = standard_cap(diameter, standards)

    inner_r = (diameter - 2.0 * base.wall_thickness) / 2.0
    body_height = target_volume * 1000.0 / (math.pi * inner_r * inner_r)
    body_height = clamp(
        body_height,
        diameter * limits.min_height_diameter_ratio,
        diameter * limits.max_height_diameter_ratio,
    )
    body_height = clamp(
        body_height,
        base.body_height * limits.min_template_height_ratio,
        base.body_height * limits.max_template_height_ratio,
    )

    shoulder = base.shoulder_curve_radius
    if base.diameter > 0:
        shoulder = shoulder * diameter / base.diameter

    dims = replace(
        base,
        diameter=diameter,
        base_diameter=diameter,
        neck_diameter=cap.neck_diameter,
        neck_finish=cap.neck_finish,
        shoulder_curve_radius=shoulder,
    )
    dims = _set_body_height(dims, body_height)

    tuned = fine_tune_volume(template.shape, dims, target_volume, limits)
    if not tuned.converged:
        logger.warning(
            "Bottle %d: %.1f mL target reached only %.1f mL within ratio limits",
            index,
            target_volume,
            tuned.measured,
        )
    dims = enforce_ratio_limits(tuned.value, limits)

    logger.debug(
        "Bottle %d: %.1f mL -> d=%.1f mm, body=%.1f mm, neck %s (%d fine-tune steps)",
        index,
        target_volume,
        dims.diameter,
        dims.body_height,
        dims.neck_finish,
        tuned.iterations,
    )
    return finalize_bottle(replace(template, dimensions=dims), target_volume, id_factory, clock)


def generate_series(
    config: GenerationConfig,
    existing: Mapping[str, Container] | None = None,
    *,
    standards: StandardsTables = DEFAULT_STANDARDS,
    limits: ScalingLimits = DEFAULT_LIMITS,
    id_factory: Callable[[], str] = new_id,
    clock: Callable[[], datetime] = utc_now,
) -> list[Container]:
    """Target volumes -> template -> one scaled container per volume, in order."""
    volumes = calculate_volumes(config)
    template = get_template(config.base_template_id, existing)
    return [
        scale_bottle_to_volume(
            template,
            volume,
            i,
            standards=standards,
            limits=limits,
            id_factory=id_factory,
            clock=clock,
        )
        for i, volume in enumerate(volumes)
    ]


def create_series(
    config: GenerationConfig,
    name: str,
    *,
    description: str = "",
    category: str = "",
    existing: Mapping[str, Container] | None = None,
    standards: StandardsTables = DEFAULT_STANDARDS,
    limits: ScalingLimits = DEFAULT_LIMITS,
    id_factory: Callable[[], str] = new_id,
    clock: Callable[[], datetime] = utc_now,
) -> Series:
    bottles = generate_series(
        config,
        existing,
        standards=standards,
        limits=limits,
        id_factory=id_factory,
        clock=clock,
    )
    now = clock()
    return Series(
        id=id_factory(),
        name=name,
        config=config,
        bottles=tuple(bottles),
        description=description,
        category=category,
        created_at=now,
        updated_at=now,
    )


# ---------------- Ordering ----------------

SortKey = Literal["volume", "height", "diameter"]
SortDirection = Literal["ascending", "descending"]

_SORT_KEYS: dict[str, Callable[[Container], float]] = {
    "volume": lambda c: c.volume,
    "height": lambda c: c.dimensions.height,
    "diameter": lambda c: c.dimensions.diameter,
}


def sort_containers(
    containers: Sequence[Container],
    by: SortKey = "volume",
    direction: SortDirection = "ascending",
) -> list[Container]:
    if by not in _SORT_KEYS:
        raise ValueError(f"Unknown sort key: {by}")
    if direction not in ("ascending", "descending"):
        raise ValueError(f"Unknown sort direction: {direction}")
    return sorted(containers, key=_SORT_KEYS[by], reverse=direction == "descending")
