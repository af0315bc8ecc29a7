"""
Tests for result QA checks and group summaries.
"""

import pandas as pd
import pytest

from biodiv_hotspots.qa import (
    ResultQAError,
    assert_hotspot_consistency,
    assert_result_covers_grid,
    summarize_group,
    validate_result,
)


@pytest.fixture
def result():
    return pd.DataFrame({
        "gridcell": [1100, 2100, 3100, 4100],
        "x": [1, 2, 3, 4],
        "y": [100, 100, 100, 100],
        "G": [9, 9, 2, 0],
        "hotspot_G": [True, False, True, False],
        "subtop_G": [True, True, False, False],
        "hotspot_id_G": [2, 2, 2, 0],
    })


class TestCoverage:
    """Every grid cell exactly once."""

    def test_complete(self, result):
        assert_result_covers_grid(result, [1100, 2100, 3100, 4100])

    def test_missing_cell(self, result):
        with pytest.raises(ResultQAError, match="missing"):
            assert_result_covers_grid(result, [1100, 2100, 3100, 4100, 5100])

    def test_extra_cell(self, result):
        with pytest.raises(ResultQAError, match="not in the grid"):
            assert_result_covers_grid(result, [1100, 2100, 3100])

    def test_duplicate_cell(self, result):
        doubled = pd.concat([result, result.iloc[[0]]], ignore_index=True)
        with pytest.raises(ResultQAError, match="Duplicate"):
            assert_result_covers_grid(doubled, [1100, 2100, 3100, 4100])


class TestConsistency:
    """Centers and ids fit together."""

    def test_overwritten_center_passes(self, result):
        # center 1100 lost its own id 1 to hotspot 2
        assert_hotspot_consistency(result, "G")

    def test_center_without_id(self, result):
        result.loc[2, "hotspot_id_G"] = 0
        with pytest.raises(ResultQAError, match="without hotspot id"):
            assert_hotspot_consistency(result, "G")

    def test_id_above_center_count(self, result):
        result.loc[1, "hotspot_id_G"] = 3
        with pytest.raises(ResultQAError, match="outside"):
            assert_hotspot_consistency(result, "G")

    def test_integer_flags(self, result):
        result["hotspot_G"] = result["hotspot_G"].astype("int64")
        assert_hotspot_consistency(result, "G")


class TestSummary:
    """Per-group counts for logs and sidecars."""

    def test_summary(self, result):
        summary = summarize_group(result, "G")
        assert summary["cells"] == 4
        assert summary["cells_with_species"] == 3
        assert summary["max_richness"] == 9
        assert summary["hotspot_centers"] == 2
        assert summary["hotspot_ids"] == 1
        assert summary["hotspot_cells"] == 3
        assert summary["min_center_richness"] == 2
        assert summary["subtop_cells"] == 2

    def test_summary_without_subtop(self, result):
        summary = summarize_group(result.drop(columns="subtop_G"), "G")
        assert "subtop_cells" not in summary

    def test_validate_result(self, result):
        summaries = validate_result(result, result["gridcell"], ["G"])
        assert list(summaries) == ["G"]
