from __future__ import annotations

from .math_utils import round_half_up
from .models import CoverageGap, IntraSeriesAnalysis


def _ml(value: float) -> int:
    return int(round_half_up(value))


def _span(gap: CoverageGap) -> str:
    return f"{_ml(gap.start_volume)}-{_ml(gap.end_volume)} mL"


def internal_gap_text(series_name: str, gap: CoverageGap) -> str:
    return (
        f"{series_name}: Add a ~{_ml(gap.midpoint)} mL bottle to fill the internal gap at "
        f"{_span(gap)} ({_ml(gap.gap_size)} mL)"
    )


def efficiency_text(analysis: IntraSeriesAnalysis) -> str:
    return (
        f"{analysis.series_name} has {analysis.coverage_efficiency:.1f}% coverage efficiency, "
        f"with {analysis.total_gap_size:.0f} mL of internal gaps. "
        "Consider adding bottles to improve fill range continuity."
    )


def combined_major_gap_text(gap: CoverageGap) -> str:
    return (
        f"Combined: Add a bottle with ~{_ml(gap.midpoint)} mL capacity to fill the major gap at "
        f"{_span(gap)} ({_ml(gap.gap_size)} mL gap)"
    )


def combined_moderate_gap_text(gap: CoverageGap) -> str:
    return (
        f"Combined: Consider adding a ~{_ml(gap.midpoint)} mL bottle to address the moderate gap at "
        f"{_span(gap)}"
    )


def redundancy_text(overlap_count: int) -> str:
    return (
        f"{overlap_count} overlapping fill ranges detected between the two series. "
        "Consider reducing redundancy."
    )


def low_coverage_text(combined: float) -> str:
    return f"Combined coverage is only {combined:.1f}%. Consider adding bottles to improve coverage."


def imbalance_text(weaker: str, weaker_coverage: float, stronger: str, stronger_coverage: float) -> str:
    return (
        f"{weaker} has significantly lower coverage ({weaker_coverage:.1f}%) than "
        f"{stronger} ({stronger_coverage:.1f}%). Consider adding bottles to {weaker}."
    )


def well_optimized_text() -> str:
    return "Both series provide good coverage with no major gaps. The lineup is well-optimized."
