from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Callable

import numpy as np

from .math_utils import (
    converge,
    integrate_simpson,
    linspace_grid,
    round_half_up,
    safe_clip_nonnegative,
    sample_function_on_grid,
)
from .models import Container, Dimensions

logger = logging.getLogger(__name__)

MM3_PER_ML = 1000.0
MM2_PER_CM2 = 100.0

ESTIMATE_TOLERANCE_ML = 0.5
ESTIMATE_MAX_ITERATIONS = 20

GRID_STEP_MM = 0.1
SNAP_DIAMETER_STEPS = 10


# ---------------- Primitive solids (mm, mm³) ----------------


def cylinder(radius: float, height: float) -> float:
    """V = π r² h"""
    return math.pi * radius * radius * height


def frustum(r1: float, r2: float, height: float) -> float:
    """Truncated cone: V = (π h / 3)(r1² + r1 r2 + r2²)"""
    return (math.pi * height / 3.0) * (r1 * r1 + r1 * r2 + r2 * r2)


def spherical_cap(radius: float, height: float) -> float:
    """Dome of height h cut from a sphere of radius r: V = (π h² / 3)(3r - h)"""
    if height <= 0 or radius <= 0:
        return 0.0
    return (math.pi * height * height / 3.0) * (3.0 * radius - height)


def elliptical_cylinder(a: float, b: float, height: float) -> float:
    """V = π a b h"""
    return math.pi * a * b * height


def ellipsoid_section(a: float, b: float, c: float, fraction: float = 1.0) -> float:
    """V = (4/3) π a b c, times the fraction of the ellipsoid kept."""
    return (4.0 / 3.0) * math.pi * a * b * c * fraction


# ---------------- Shape families ----------------


class ShapeFormula(ABC):
    """Volume/area decomposition of one shape family.

    Radii bounding the liquid are internal radii (outer radius minus wall).
    """

    @abstractmethod
    def volume_mm3(self, dims: Dimensions) -> float:
        ...

    def surface_area_mm2(self, dims: Dimensions) -> float:
        """Closed body cylinder, A = 2πrh + 2πr². Coarse, meant for label sizing."""
        r = dims.diameter / 2.0
        h = dims.body_height - dims.neck_height
        return 2.0 * math.pi * r * h + 2.0 * math.pi * r * r


SHAPE_FORMULAS: dict[str, ShapeFormula] = {}


def register_shape(*families: str) -> Callable[[type[ShapeFormula]], type[ShapeFormula]]:
    def decorator(cls: type[ShapeFormula]) -> type[ShapeFormula]:
        formula = cls()
        for family in families:
            SHAPE_FORMULAS[family] = formula
        return cls

    return decorator


def _inner_radius(diameter: float, wall: float) -> float:
    return diameter / 2.0 - wall


@register_shape("boston-round")
class BostonRound(ShapeFormula):
    """Cylinder body + frustum shoulder + cylinder neck - spherical-cap base indent."""

    def volume_mm3(self, dims: Dimensions) -> float:
        body_r = _inner_radius(dims.diameter, dims.wall_thickness)
        neck_r = _inner_radius(dims.neck_diameter, dims.wall_thickness)

        shoulder_h = dims.shoulder_curve_radius * (1.0 - math.cos(math.radians(dims.shoulder_angle)))
        body_h = dims.body_height - dims.neck_height - shoulder_h - dims.base_indent_depth

        body = cylinder(body_r, max(0.0, body_h))
        shoulder = frustum(body_r, neck_r, shoulder_h)
        neck = cylinder(neck_r, dims.neck_height)

        indent = 0.0
        if dims.base_profile == "concave" and dims.base_indent_depth > 0:
            indent = spherical_cap(dims.base_diameter / 2.0, dims.base_indent_depth)

        return body + shoulder + neck - indent


@register_shape("cylinder")
class CylinderBottle(ShapeFormula):
    """Cylinder body + cylinder neck + a short (<= 5 mm) frustum transition."""

    def volume_mm3(self, dims: Dimensions) -> float:
        body_r = _inner_radius(dims.diameter, dims.wall_thickness)
        neck_r = _inner_radius(dims.neck_diameter, dims.wall_thickness)

        body = cylinder(body_r, dims.body_height - dims.neck_height)
        neck = cylinder(neck_r, dims.neck_height)
        transition = frustum(body_r, neck_r, min(5.0, dims.shoulder_curve_radius))
        return body + neck + transition


@register_shape("oval")
class Oval(ShapeFormula):
    """Elliptical-cylinder body bridged to a round neck.

    The transition frustum uses the equivalent radius sqrt(a b), i.e. the
    circle with the same cross-section area as the ellipse.
    """

    DEFAULT_WIDTH_RATIO = 0.6

    def volume_mm3(self, dims: Dimensions) -> float:
        width_ratio = dims.width_ratio or self.DEFAULT_WIDTH_RATIO
        a = _inner_radius(dims.diameter, dims.wall_thickness)
        b = a * width_ratio

        body_h = dims.body_height - dims.neck_height - dims.shoulder_curve_radius
        body = elliptical_cylinder(a, b, max(0.0, body_h))

        neck_r = _inner_radius(dims.neck_diameter, dims.wall_thickness)
        neck = cylinder(neck_r, dims.neck_height)

        transition = frustum(math.sqrt(a * b), neck_r, dims.shoulder_curve_radius)
        return body + neck + transition


@register_shape("modern-pharmaceutical")
class ModernPharmaceutical(ShapeFormula):
    """Rounded-rectangle prism.

    Each rounded corner removes (1 - π/4) r² of the rectangle's cross-section,
    so the four corners together remove (4 - π) r² h.
    """

    DEFAULT_WIDTH_RATIO = 0.5
    MAX_CORNER_RADIUS = 10.0
    TRANSITION_HEIGHT = 5.0

    def volume_mm3(self, dims: Dimensions) -> float:
        corner_r = min(dims.shoulder_curve_radius, self.MAX_CORNER_RADIUS)
        width = dims.diameter - 2.0 * dims.wall_thickness
        depth = width * (dims.width_ratio or self.DEFAULT_WIDTH_RATIO)
        height = dims.body_height - dims.neck_height

        body = width * depth * height - (4.0 - math.pi) * corner_r * corner_r * height

        neck_r = _inner_radius(dims.neck_diameter, dims.wall_thickness)
        neck = cylinder(neck_r, dims.neck_height)

        equivalent_r = math.sqrt(width * depth / math.pi)
        transition = frustum(equivalent_r, neck_r, self.TRANSITION_HEIGHT)
        return body + neck + transition


@register_shape("packer", "wide-mouth")
class Packer(ShapeFormula):
    """Short-neck body + shoulder frustum + neck. Wide-mouth bottles share it."""

    def volume_mm3(self, dims: Dimensions) -> float:
        body_r = _inner_radius(dims.diameter, dims.wall_thickness)
        neck_r = _inner_radius(dims.neck_diameter, dims.wall_thickness)

        body_h = dims.body_height - dims.neck_height - dims.shoulder_curve_radius
        body = cylinder(body_r, max(0.0, body_h))
        shoulder = frustum(body_r, neck_r, dims.shoulder_curve_radius)
        neck = cylinder(neck_r, dims.neck_height)
        return body + shoulder + neck


def shape_formula(shape: str) -> ShapeFormula:
    formula = SHAPE_FORMULAS.get(shape)
    if formula is None:
        logger.warning("Unknown shape %r, falling back to boston-round", shape)
        return SHAPE_FORMULAS["boston-round"]
    return formula


# ---------------- Public API ----------------


def compute_volume(shape: str, dims: Dimensions) -> float:
    """Internal volume in mL (never negative)."""
    mm3 = shape_formula(shape).volume_mm3(dims)
    return max(0.0, mm3 / MM3_PER_ML)


def compute_container_volume(container: Container) -> float:
    return compute_volume(container.shape, container.dimensions)


def compute_surface_area(container: Container) -> float:
    """Approximate outer surface area in cm²."""
    return shape_formula(container.shape).surface_area_mm2(container.dimensions) / MM2_PER_CM2


def with_derived_metrics(container: Container) -> Container:
    """Copy of ``container`` with volume and surface area recomputed."""
    return replace(
        container,
        volume=compute_container_volume(container),
        surface_area=compute_surface_area(container),
    )


def volume_from_radius_profile(
    r_of_z: Callable[[np.ndarray], np.ndarray],
    height: float,
    segments: int = 100,
) -> float:
    """Volume of revolution in mL by Simpson's rule: V = π ∫ r(z)² dz.

    ``r_of_z`` gives the internal radius (mm) at height z (mm). Each of the
    ``segments`` panels uses its two ends and its midpoint, so the profile is
    sampled at 2 * segments + 1 points.
    """
    if segments < 1:
        raise ValueError("segments must be >= 1")
    if height <= 0:
        raise ValueError("height must be > 0")

    grid = linspace_grid(0.0, float(height), 2 * int(segments) + 1)
    r = safe_clip_nonnegative(sample_function_on_grid(r_of_z, grid))
    return float(np.pi * integrate_simpson(r * r, grid.z)) / MM3_PER_ML


def estimate_dimensions(
    target_volume: float,
    shape: str,
    base: Dimensions | None = None,
) -> Dimensions:
    """Fit ``base`` to ``target_volume`` (mL) by cube-root scaling.

    Diameter and body height are scaled together by (V_target / V_current)^(1/3)
    until the volume is within 0.5 mL, for at most 20 rounds. The result is
    rounded to 0.1 mm and then moved along that grid (body height first, then
    diameter) so the rounded dimensions still hold the target within 0.5 mL.
    """
    if target_volume <= 0:
        raise ValueError("target_volume must be > 0")

    def evaluate(dims: Dimensions) -> float:
        return compute_volume(shape, dims)

    def adjust(dims: Dimensions, current: float) -> Dimensions:
        if current <= 0:
            return dims
        s = (target_volume / current) ** (1.0 / 3.0)
        diameter = dims.diameter * s
        body_height = dims.body_height * s
        return replace(
            dims,
            diameter=diameter,
            body_height=body_height,
            height=body_height + dims.neck_height,
            base_diameter=diameter,
        )

    result = converge(
        base if base is not None else Dimensions(),
        evaluate,
        adjust,
        target=float(target_volume),
        tolerance=ESTIMATE_TOLERANCE_ML,
        max_iterations=ESTIMATE_MAX_ITERATIONS,
    )
    if not result.converged:
        logger.warning(
            "estimate_dimensions(%s, %.1f mL) stopped at %.2f mL after %d iterations",
            shape,
            target_volume,
            result.measured,
            result.iterations,
        )

    dims = result.value
    diameter = round_half_up(dims.diameter, 1)
    rounded = replace(
        dims,
        height=round_half_up(dims.height, 1),
        body_height=round_half_up(dims.body_height, 1),
        diameter=diameter,
        base_diameter=diameter,
    )
    return _snap_to_grid(shape, rounded, float(target_volume))


def _with_body_height(dims: Dimensions, body_height: float) -> Dimensions:
    body_height = round_half_up(max(0.0, body_height), 1)
    return replace(dims, body_height=body_height, height=round_half_up(body_height + dims.neck_height, 1))


def _fit_body_height(shape: str, dims: Dimensions, target_volume: float) -> Dimensions:
    """Best body height on the 0.1 mm grid for a fixed diameter.

    Volume is linear in body height, so one finite difference gives the step count.
    """
    current = compute_volume(shape, dims)
    per_step = compute_volume(shape, _with_body_height(dims, dims.body_height + GRID_STEP_MM)) - current
    start = dims.body_height
    if per_step > 0:
        start += round_half_up((target_volume - current) / per_step) * GRID_STEP_MM
    candidates = [_with_body_height(dims, start + j * GRID_STEP_MM) for j in (-1, 0, 1)]
    return min(candidates, key=lambda d: abs(compute_volume(shape, d) - target_volume))


def _snap_to_grid(shape: str, dims: Dimensions, target_volume: float) -> Dimensions:
    """Rounded dimensions closest to ``target_volume``.

    Diameters are tried outward from the rounded one, each with its best body
    height; the first within ESTIMATE_TOLERANCE_ML wins.
    """
    best = dims
    best_error = abs(compute_volume(shape, dims) - target_volume)
    if best_error <= ESTIMATE_TOLERANCE_ML:
        return best

    for k in sorted(range(-SNAP_DIAMETER_STEPS, SNAP_DIAMETER_STEPS + 1), key=abs):
        diameter = round_half_up(dims.diameter + k * GRID_STEP_MM, 1)
        if diameter <= 0:
            continue
        candidate = _fit_body_height(shape, replace(dims, diameter=diameter, base_diameter=diameter), target_volume)
        error = abs(compute_volume(shape, candidate) - target_volume)
        if error < best_error:
            best, best_error = candidate, error
        if best_error <= ESTIMATE_TOLERANCE_ML:
            break
    return best
