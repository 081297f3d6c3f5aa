from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

import numpy as np
from scipy.integrate import simpson

T = TypeVar("T")


@dataclass(frozen=True)
class Grid1D:
    z: np.ndarray


def linspace_grid(z0: float, z1: float, n: int) -> Grid1D:
    if n < 2:
        raise ValueError("n must be >= 2")
    if not np.isfinite(z0) or not np.isfinite(z1):
        raise ValueError("z0 and z1 must be finite")
    if z1 <= z0:
        raise ValueError("z1 must be > z0")
    return Grid1D(z=np.linspace(z0, z1, int(n), dtype=float))


def integrate_simpson(y: np.ndarray, x: np.ndarray) -> float:
    """Composite Simpson's rule.

    With an odd number of evenly spaced points this is the classic
    (h/3)(y0 + 4y1 + 2y2 + ... + yn) sum.
    """
    y = np.asarray(y, dtype=float)
    x = np.asarray(x, dtype=float)
    if y.size != x.size:
        raise ValueError("x and y must have same length")
    if y.size < 2:
        return 0.0
    return float(simpson(y, x=x))


def safe_clip_nonnegative(values: np.ndarray) -> np.ndarray:
    return np.maximum(values, 0.0)


def sample_function_on_grid(func: Callable[[np.ndarray], np.ndarray], grid: Grid1D) -> np.ndarray:
    try:
        y = np.asarray(func(grid.z), dtype=float)
    except TypeError:
        y = None
    if y is None or y.shape != grid.z.shape:
        # Scalar-only callables (math.* based): evaluate point by point.
        y = np.array([float(func(float(zk))) for zk in grid.z], dtype=float)
    if not np.all(np.isfinite(y)):
        raise ValueError("Function returned non-finite values")
    return y


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round halves away from zero for positives (62.5 -> 63, 1.25 -> 1.3)."""
    factor = 10.0**ndigits
    return math.floor(float(value) * factor + 0.5) / factor


def clamp(x: float, lo: float, hi: float) -> float:
    return float(max(lo, min(hi, float(x))))


@dataclass(frozen=True)
class ConvergenceResult(Generic[T]):
    value: T
    measured: float
    converged: bool
    iterations: int


def converge(
    initial: T,
    evaluate: Callable[[T], float],
    adjust: Callable[[T, float], T],
    target: float,
    tolerance: float,
    max_iterations: int,
) -> ConvergenceResult[T]:
    """Fixed-point loop: adjust until |evaluate(state) - target| <= tolerance.

    ``adjust`` receives the current state and its measured value. Running out
    of iterations is not an error; the last state is returned with
    ``converged=False``.
    """
    state = initial
    measured = evaluate(state)
    for i in range(int(max_iterations)):
        if abs(measured - target) <= tolerance:
            return ConvergenceResult(value=state, measured=measured, converged=True, iterations=i)
        state = adjust(state, measured)
        measured = evaluate(state)

    return ConvergenceResult(
        value=state,
        measured=measured,
        converged=abs(measured - target) <= tolerance,
        iterations=int(max_iterations),
    )
