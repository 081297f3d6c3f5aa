from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Sequence

from . import explain
from .fill_range import calculate_series_fill_ranges, get_total_coverage
from .models import (
    CoverageGap,
    CoverageOverlap,
    CoverageSummary,
    FillRange,
    GapSeverity,
    IntraSeriesAnalysis,
    IntraSeriesOverlap,
    Series,
    SeriesComparison,
    new_id,
    utc_now,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GapThresholds:
    minor: float = 20.0  # mL, gaps up to this size are minor
    moderate: float = 50.0  # mL, up to this size moderate, above it major


@dataclass(frozen=True)
class AnalysisSettings:
    gap_thresholds: GapThresholds = field(default_factory=GapThresholds)
    efficiency_warning: float = 80.0  # %
    coverage_warning: float = 80.0  # %
    overlap_warning_count: int = 3
    coverage_imbalance: float = 10.0  # percentage points


DEFAULT_ANALYSIS_SETTINGS = AnalysisSettings()


def assess_gap_severity(gap_size: float, thresholds: GapThresholds = GapThresholds()) -> GapSeverity:
    if gap_size <= thresholds.minor:
        return "minor"
    if gap_size <= thresholds.moderate:
        return "moderate"
    return "major"


# ---------------- Gaps ----------------


def _sweep_gaps(ranges: Sequence[FillRange], thresholds: GapThresholds) -> list[CoverageGap]:
    """Sort by min fill and report every stretch beyond the running max fill."""
    if len(ranges) <= 1:
        return []

    ordered = sorted(ranges, key=lambda r: r.min_fill)
    gaps: list[CoverageGap] = []
    running_max = ordered[0].max_fill
    for r in ordered[1:]:
        if r.min_fill > running_max:
            size = r.min_fill - running_max
            gaps.append(
                CoverageGap(
                    start_volume=running_max,
                    end_volume=r.min_fill,
                    gap_size=size,
                    severity=assess_gap_severity(size, thresholds),
                )
            )
        running_max = max(running_max, r.max_fill)
    return gaps


def find_intra_series_gaps(
    ranges: Sequence[FillRange],
    thresholds: GapThresholds = GapThresholds(),
) -> list[CoverageGap]:
    return _sweep_gaps(ranges, thresholds)


def find_gaps(
    ranges1: Sequence[FillRange],
    ranges2: Sequence[FillRange],
    thresholds: GapThresholds = GapThresholds(),
) -> list[CoverageGap]:
    """Gaps left by both series together (ranges pooled before the sweep)."""
    return _sweep_gaps([*ranges1, *ranges2], thresholds)


# ---------------- Overlaps ----------------


def _intersection(a: FillRange, b: FillRange) -> tuple[float, float] | None:
    start = max(a.min_fill, b.min_fill)
    end = min(a.max_fill, b.max_fill)
    if start < end:
        return start, end
    return None


def find_intra_series_overlaps(ranges: Sequence[FillRange]) -> list[IntraSeriesOverlap]:
    overlaps: list[IntraSeriesOverlap] = []
    for i, a in enumerate(ranges):
        for b in ranges[i + 1 :]:
            hit = _intersection(a, b)
            if hit is not None:
                overlaps.append(
                    IntraSeriesOverlap(
                        start_volume=hit[0],
                        end_volume=hit[1],
                        overlap_size=hit[1] - hit[0],
                        bottle1_id=a.bottle_id,
                        bottle2_id=b.bottle_id,
                    )
                )
    return overlaps


def find_overlaps(ranges1: Sequence[FillRange], ranges2: Sequence[FillRange]) -> list[CoverageOverlap]:
    """Overlaps between a bottle of series 1 and a bottle of series 2 only."""
    overlaps: list[CoverageOverlap] = []
    for a in ranges1:
        for b in ranges2:
            hit = _intersection(a, b)
            if hit is not None:
                overlaps.append(
                    CoverageOverlap(
                        start_volume=hit[0],
                        end_volume=hit[1],
                        overlap_size=hit[1] - hit[0],
                        series1_bottles=(a.bottle_id,),
                        series2_bottles=(b.bottle_id,),
                    )
                )
    return overlaps


# ---------------- Metrics ----------------


def analyze_series_internal(
    series: Series,
    ranges: Sequence[FillRange] | None = None,
    settings: AnalysisSettings = DEFAULT_ANALYSIS_SETTINGS,
) -> IntraSeriesAnalysis:
    """Gaps, overlaps and coverage of one series on its own.

    coverage_efficiency = union / (max fill - min fill) * 100
    space_utilization   = min(100, union / (max volume - min volume) * 100)
    Both are 100 when their denominator is zero.
    """
    fill_ranges = list(ranges) if ranges is not None else calculate_series_fill_ranges(series)

    if not fill_ranges:
        return IntraSeriesAnalysis(
            series_id=series.id,
            series_name=series.name,
            gaps=(),
            total_gap_size=0.0,
            overlaps=(),
            total_overlap_size=0.0,
            coverage_span=0.0,
            covered_range=0.0,
            coverage_efficiency=100.0,
            space_utilization=100.0,
        )

    gaps = find_intra_series_gaps(fill_ranges, settings.gap_thresholds)
    overlaps = find_intra_series_overlaps(fill_ranges)

    span = max(r.max_fill for r in fill_ranges) - min(r.min_fill for r in fill_ranges)
    covered = get_total_coverage(fill_ranges)
    efficiency = covered / span * 100.0 if span > 0 else 100.0

    volume_spread = max(r.bottle_volume for r in fill_ranges) - min(r.bottle_volume for r in fill_ranges)
    utilization = min(100.0, covered / volume_spread * 100.0) if volume_spread > 0 else 100.0

    return IntraSeriesAnalysis(
        series_id=series.id,
        series_name=series.name,
        gaps=tuple(gaps),
        total_gap_size=sum(g.gap_size for g in gaps),
        overlaps=tuple(overlaps),
        total_overlap_size=sum(o.overlap_size for o in overlaps),
        coverage_span=span,
        covered_range=covered,
        coverage_efficiency=efficiency,
        space_utilization=utilization,
    )


def calculate_coverage(
    ranges1: Sequence[FillRange],
    ranges2: Sequence[FillRange],
    gaps: Sequence[CoverageGap],
) -> CoverageSummary:
    """Coverage percentages against the combined min-to-max fill range."""
    pooled = [*ranges1, *ranges2]
    if not pooled:
        return CoverageSummary(series1=0.0, series2=0.0, combined=0.0)

    total_range = max(r.max_fill for r in pooled) - min(r.min_fill for r in pooled)
    if total_range <= 0:
        return CoverageSummary(series1=100.0, series2=100.0, combined=100.0)

    combined = (total_range - sum(g.gap_size for g in gaps)) / total_range * 100.0
    return CoverageSummary(
        series1=get_total_coverage(ranges1) / total_range * 100.0,
        series2=get_total_coverage(ranges2) / total_range * 100.0,
        combined=min(100.0, max(0.0, combined)),
    )


# ---------------- Recommendations ----------------


def generate_recommendations(
    gaps: Sequence[CoverageGap],
    overlaps: Sequence[CoverageOverlap],
    coverage: CoverageSummary,
    series1_analysis: IntraSeriesAnalysis | None = None,
    series2_analysis: IntraSeriesAnalysis | None = None,
    settings: AnalysisSettings = DEFAULT_ANALYSIS_SETTINGS,
) -> list[str]:
    """Advisory messages, in a fixed order; a single "well optimized" line if none apply."""
    analyses = [a for a in (series1_analysis, series2_analysis) if a is not None]
    out: list[str] = []

    for analysis in analyses:
        out.extend(
            explain.internal_gap_text(analysis.series_name, gap)
            for gap in analysis.gaps
            if gap.severity == "major"
        )

    for analysis in analyses:
        if analysis.coverage_efficiency < settings.efficiency_warning:
            out.append(explain.efficiency_text(analysis))

    out.extend(explain.combined_major_gap_text(g) for g in gaps if g.severity == "major")
    out.extend(explain.combined_moderate_gap_text(g) for g in gaps if g.severity == "moderate")

    if len(overlaps) > settings.overlap_warning_count:
        out.append(explain.redundancy_text(len(overlaps)))

    if coverage.combined < settings.coverage_warning:
        out.append(explain.low_coverage_text(coverage.combined))

    name1 = series1_analysis.series_name if series1_analysis else "Series 1"
    name2 = series2_analysis.series_name if series2_analysis else "Series 2"
    if coverage.series1 < coverage.series2 - settings.coverage_imbalance:
        out.append(explain.imbalance_text(name1, coverage.series1, name2, coverage.series2))
    elif coverage.series2 < coverage.series1 - settings.coverage_imbalance:
        out.append(explain.imbalance_text(name2, coverage.series2, name1, coverage.series1))

    if not out:
        out.append(explain.well_optimized_text())
    return out


def compare_series(
    series1: Series,
    series2: Series,
    *,
    settings: AnalysisSettings = DEFAULT_ANALYSIS_SETTINGS,
    id_factory: Callable[[], str] = new_id,
    clock: Callable[[], datetime] = utc_now,
) -> SeriesComparison:
    ranges1 = calculate_series_fill_ranges(series1)
    ranges2 = calculate_series_fill_ranges(series2)

    analysis1 = analyze_series_internal(series1, ranges1, settings)
    analysis2 = analyze_series_internal(series2, ranges2, settings)

    gaps = find_gaps(ranges1, ranges2, settings.gap_thresholds)
    overlaps = find_overlaps(ranges1, ranges2)
    coverage = calculate_coverage(ranges1, ranges2, gaps)
    recommendations = generate_recommendations(gaps, overlaps, coverage, analysis1, analysis2, settings)

    logger.debug(
        "Compared %r vs %r: %d gaps, %d overlaps, combined coverage %.1f%%",
        series1.name,
        series2.name,
        len(gaps),
        len(overlaps),
        coverage.combined,
    )

    return SeriesComparison(
        id=id_factory(),
        name=f"{series1.name} vs {series2.name}",
        series1_id=series1.id,
        series2_id=series2.id,
        series1_analysis=analysis1,
        series2_analysis=analysis2,
        gaps=tuple(gaps),
        overlaps=tuple(overlaps),
        series1_coverage=coverage.series1,
        series2_coverage=coverage.series2,
        combined_coverage=coverage.combined,
        recommendations=tuple(recommendations),
        created_at=clock(),
    )
