from __future__ import annotations

from datetime import datetime
from typing import Callable

import pytest

from bottlecore.coverage import (
    AnalysisSettings,
    GapThresholds,
    analyze_series_internal,
    assess_gap_severity,
    calculate_coverage,
    compare_series,
    find_gaps,
    find_intra_series_gaps,
    find_intra_series_overlaps,
    find_overlaps,
    generate_recommendations,
)
from bottlecore.models import CoverageOverlap, CoverageSummary, FillRange, Series

from .conftest import FIXED_NOW


class TestGapSeverity:
    @pytest.mark.parametrize(
        "size, severity",
        [(5, "minor"), (20, "minor"), (20.01, "moderate"), (35, "moderate"), (50, "moderate"), (60, "major")],
    )
    def test_default_thresholds(self, size: float, severity: str) -> None:
        assert assess_gap_severity(size) == severity

    def test_custom_thresholds(self) -> None:
        thresholds = GapThresholds(minor=5.0, moderate=10.0)
        assert assess_gap_severity(7.0, thresholds) == "moderate"
        assert assess_gap_severity(11.0, thresholds) == "major"


class TestGaps:
    def test_second_series_closes_internal_gap(self, make_range: Callable[..., FillRange]) -> None:
        a = [make_range(42, 55, "a1"), make_range(68, 89, "a2")]
        b = [make_range(50, 70, "b1")]

        internal = find_intra_series_gaps(a)
        assert len(internal) == 1
        assert (internal[0].start_volume, internal[0].end_volume) == (55, 68)
        assert internal[0].gap_size == pytest.approx(13.0)
        assert internal[0].severity == "minor"

        assert find_gaps(a, b) == []

    def test_single_range_has_no_gaps(self, make_range: Callable[..., FillRange]) -> None:
        assert find_intra_series_gaps([make_range(0, 10)]) == []
        assert find_gaps([], [make_range(0, 10)]) == []

    def test_nested_range_does_not_reset_running_max(self, make_range: Callable[..., FillRange]) -> None:
        gaps = find_intra_series_gaps([make_range(0, 100), make_range(10, 20), make_range(150, 160)])
        assert len(gaps) == 1
        assert (gaps[0].start_volume, gaps[0].end_volume) == (100, 150)
        assert gaps[0].severity == "moderate"

    def test_gap_midpoint(self, make_range: Callable[..., FillRange]) -> None:
        (gap,) = find_gaps([make_range(0, 10)], [make_range(70, 80)])
        assert gap.midpoint == 40.0
        assert gap.severity == "major"


class TestOverlaps:
    def test_intra_series_pairs(self, make_range: Callable[..., FillRange]) -> None:
        overlaps = find_intra_series_overlaps([make_range(0, 10, "x"), make_range(5, 15, "y"), make_range(8, 20, "z")])
        assert [(o.bottle1_id, o.bottle2_id) for o in overlaps] == [("x", "y"), ("x", "z"), ("y", "z")]
        assert [o.overlap_size for o in overlaps] == pytest.approx([5.0, 2.0, 7.0])

    def test_touching_ranges_do_not_overlap(self, make_range: Callable[..., FillRange]) -> None:
        assert find_intra_series_overlaps([make_range(0, 10), make_range(10, 20)]) == []

    def test_inter_series_only_cross_pairs(self, make_range: Callable[..., FillRange]) -> None:
        a = [make_range(0, 10, "a1"), make_range(5, 15, "a2")]
        b = [make_range(12, 30, "b1")]
        overlaps = find_overlaps(a, b)
        assert len(overlaps) == 1
        assert overlaps[0].series1_bottles == ("a2",)
        assert overlaps[0].series2_bottles == ("b1",)
        assert (overlaps[0].start_volume, overlaps[0].end_volume) == (12, 15)


class TestAnalyzeSeriesInternal:
    def test_gappy_series(self, make_series: Callable[..., Series], make_range: Callable[..., FillRange]) -> None:
        series = make_series("A", [55.0, 89.0])
        ranges = [make_range(42, 55, "A-0"), make_range(68, 89, "A-1")]
        analysis = analyze_series_internal(series, ranges)
        assert analysis.series_id == "series-A"
        assert analysis.total_gap_size == pytest.approx(13.0)
        assert analysis.coverage_span == pytest.approx(47.0)
        assert analysis.covered_range == pytest.approx(34.0)
        assert analysis.coverage_efficiency == pytest.approx(34.0 / 47.0 * 100.0)
        assert analysis.space_utilization == pytest.approx(100.0)

    def test_single_bottle(self, make_series: Callable[..., Series]) -> None:
        analysis = analyze_series_internal(make_series("S", [100.0]))
        assert analysis.gaps == ()
        assert analysis.overlaps == ()
        assert analysis.coverage_efficiency == 100.0
        assert analysis.space_utilization == 100.0

    def test_empty_series(self, make_series: Callable[..., Series]) -> None:
        analysis = analyze_series_internal(make_series("E", []))
        assert analysis.covered_range == 0.0
        assert analysis.coverage_efficiency == 100.0
        assert analysis.space_utilization == 100.0

    def test_ranges_computed_from_series(self, make_series: Callable[..., Series]) -> None:
        analysis = analyze_series_internal(make_series("S", [100.0, 300.0]))
        # fills 65-85 and 195-255
        assert analysis.gaps[0].gap_size == pytest.approx(110.0)
        assert analysis.covered_range == pytest.approx(80.0)
        assert analysis.space_utilization == pytest.approx(40.0)


class TestCalculateCoverage:
    def test_split_coverage(self, make_range: Callable[..., FillRange]) -> None:
        r1, r2 = [make_range(0, 10)], [make_range(20, 30)]
        coverage = calculate_coverage(r1, r2, find_gaps(r1, r2))
        assert coverage.series1 == pytest.approx(100.0 / 3.0)
        assert coverage.series2 == pytest.approx(100.0 / 3.0)
        assert coverage.combined == pytest.approx(200.0 / 3.0)

    def test_no_ranges(self) -> None:
        assert calculate_coverage([], [], []) == CoverageSummary(0.0, 0.0, 0.0)

    def test_zero_width_total_range(self, make_range: Callable[..., FillRange]) -> None:
        assert calculate_coverage([make_range(5, 5)], [], []) == CoverageSummary(100.0, 100.0, 100.0)

    def test_one_series_empty(self, make_range: Callable[..., FillRange]) -> None:
        coverage = calculate_coverage([make_range(0, 10)], [], [])
        assert (coverage.series1, coverage.series2, coverage.combined) == (100.0, 0.0, 100.0)


class TestRecommendations:
    def test_ordering(self, make_series: Callable[..., Series]) -> None:
        comparison = compare_series(make_series("A", [100.0, 300.0]), make_series("B", [150.0]))
        recs = comparison.recommendations
        assert len(recs) == 5
        assert recs[0].startswith("A: Add a ~140 mL bottle")
        assert "85-195 mL" in recs[0]
        assert recs[1].startswith("A has 42.1% coverage efficiency")
        assert recs[2].startswith("Combined: Add a bottle with ~161 mL capacity")
        assert recs[3] == "Combined coverage is only 57.9%. Consider adding bottles to improve coverage."
        assert recs[4].startswith("B has significantly lower coverage (15.8%) than A (42.1%)")

    def test_moderate_gap(self, make_series: Callable[..., Series]) -> None:
        comparison = compare_series(make_series("A", [100.0]), make_series("B", [150.0]))
        # 85 -> 97.5 is minor; nothing else is reported for a gap that small
        assert not any("moderate gap" in r for r in comparison.recommendations)
        comparison = compare_series(make_series("A", [100.0]), make_series("B", [200.0]))
        # 85 -> 130
        assert any(r.startswith("Combined: Consider adding a ~108 mL bottle") for r in comparison.recommendations)

    def test_well_optimized(self, make_series: Callable[..., Series]) -> None:
        comparison = compare_series(make_series("A", [100.0]), make_series("B", [100.0]))
        assert comparison.recommendations == (
            "Both series provide good coverage with no major gaps. The lineup is well-optimized.",
        )

    def test_redundancy(self, make_series: Callable[..., Series]) -> None:
        comparison = compare_series(make_series("A", [100.0, 100.0, 100.0, 100.0]), make_series("B", [100.0]))
        assert len(comparison.overlaps) == 4
        assert comparison.recommendations == (
            "4 overlapping fill ranges detected between the two series. Consider reducing redundancy.",
        )

    def test_custom_overlap_limit(self, make_series: Callable[..., Series]) -> None:
        settings = AnalysisSettings(overlap_warning_count=10)
        comparison = compare_series(
            make_series("A", [100.0, 100.0, 100.0, 100.0]), make_series("B", [100.0]), settings=settings
        )
        assert len(comparison.recommendations) == 1
        assert "well-optimized" in comparison.recommendations[0]

    def test_without_analyses_uses_default_names(self) -> None:
        recs = generate_recommendations([], [], CoverageSummary(series1=90.0, series2=50.0, combined=95.0))
        assert recs == [
            "Series 2 has significantly lower coverage (50.0%) than Series 1 (90.0%). Consider adding bottles to Series 2."
        ]

    def test_redundancy_threshold_is_strict(self) -> None:
        overlap = CoverageOverlap(0.0, 1.0, 1.0, ("a",), ("b",))
        coverage = CoverageSummary(100.0, 100.0, 100.0)
        assert "well-optimized" in generate_recommendations([], [overlap] * 3, coverage)[0]
        assert generate_recommendations([], [overlap] * 4, coverage)[0].startswith("4 overlapping")


class TestCompareSeries:
    def test_metadata(
        self,
        make_series: Callable[..., Series],
        id_factory: Callable[[], str],
        clock: Callable[[], datetime],
    ) -> None:
        comparison = compare_series(
            make_series("Syrups", [100.0]), make_series("Drops", [30.0]), id_factory=id_factory, clock=clock
        )
        assert comparison.id == "id-1"
        assert comparison.name == "Syrups vs Drops"
        assert (comparison.series1_id, comparison.series2_id) == ("series-Syrups", "series-Drops")
        assert comparison.created_at == FIXED_NOW

    def test_swapping_series_mirrors_the_result(self, make_series: Callable[..., Series]) -> None:
        a = make_series("A", [50.0, 120.0, 400.0])
        b = make_series("B", [80.0, 250.0])
        ab = compare_series(a, b)
        ba = compare_series(b, a)

        assert [(g.start_volume, g.end_volume) for g in ab.gaps] == [(g.start_volume, g.end_volume) for g in ba.gaps]
        assert len(ab.overlaps) == len(ba.overlaps)
        assert ab.combined_coverage == pytest.approx(ba.combined_coverage)
        assert ab.series1_coverage == pytest.approx(ba.series2_coverage)
        assert ab.series2_coverage == pytest.approx(ba.series1_coverage)

    def test_combined_coverage_bounds(self, make_series: Callable[..., Series]) -> None:
        comparison = compare_series(make_series("A", [30.0, 1000.0]), make_series("B", [60.0]))
        assert 0.0 <= comparison.combined_coverage <= 100.0
        assert comparison.series1_analysis.series_name == "A"
        assert comparison.series2_analysis.series_name == "B"
