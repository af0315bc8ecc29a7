"""
Tests for hotspot and subtop thresholds.
"""

import numpy as np
import pytest

from biodiv_hotspots.thresholds import (
    derive_thresholds,
    hotspot_threshold,
    normalize_subtop_mode,
    subtop_threshold,
    top_n_requirement,
)


class TestHotspotThreshold:
    """Richness of the N-th richest cell, floored at 1."""

    def test_nth_richest(self):
        assert hotspot_threshold([5, 3, 3, 1], 2) == 3
        assert hotspot_threshold([5, 3, 3, 1], 1) == 5

    def test_ties_counted_individually(self):
        assert top_n_requirement([4, 4, 4, 1], 3) == 4

    def test_more_requested_than_cells(self):
        assert top_n_requirement([5, 3], 10) == 3
        assert hotspot_threshold([5, 3], 10) == 3

    def test_floored_at_one(self):
        assert hotspot_threshold([2, 0, 0], 3) == 1
        assert hotspot_threshold([0, 0], 1) == 1

    def test_empty_raises(self):
        with pytest.raises(ValueError):
            top_n_requirement([], 1)


class TestSubtopThreshold:
    """Tests for the four subtop modes."""

    def test_none(self):
        assert subtop_threshold([5, 3, 1], "none") is None

    def test_unknown_mode_is_none(self):
        assert normalize_subtop_mode("quartile") == "none"
        assert normalize_subtop_mode(None) == "none"
        assert subtop_threshold([5, 3, 1], "quartile", sub_top=2) is None

    def test_amount(self):
        assert subtop_threshold([5, 3, 3, 1], "amount", sub_top=4) == 1.0
        assert subtop_threshold([5, 4, 3, 1], "amount", sub_top=2) == 4.0

    def test_amount_floored_at_one(self):
        assert subtop_threshold([3, 0, 0], "amount", sub_top=3) == 1.0

    def test_sd(self):
        richness = np.array([5, 3, 3, 1])
        mask = richness >= 3
        # sample sd of [5, 3, 3] is sqrt(4/3)
        expected = 3 - np.sqrt(4 / 3)
        assert subtop_threshold(richness, "sd", hotspot_mask=mask) == pytest.approx(expected)

    def test_2sd_floored_at_one(self):
        richness = np.array([5, 3, 3, 1])
        mask = richness >= 3
        # 3 - 2 * 1.1547 < 1
        assert subtop_threshold(richness, "2sd", hotspot_mask=mask) == 1.0

    def test_2sd(self):
        richness = np.array([20, 18, 16, 2])
        mask = richness >= 16
        # sample sd of [20, 18, 16] is 2
        assert subtop_threshold(richness, "2sd", hotspot_mask=mask) == pytest.approx(12.0)
        assert subtop_threshold(richness, "sd", hotspot_mask=mask) == pytest.approx(14.0)

    def test_single_qualifying_cell_has_zero_sd(self):
        richness = np.array([7, 2, 1])
        mask = richness >= 7
        assert subtop_threshold(richness, "sd", hotspot_mask=mask) == 7.0

    def test_no_qualifying_cell(self):
        richness = np.array([0, 0])
        mask = np.array([False, False])
        assert subtop_threshold(richness, "sd", hotspot_mask=mask) == 1.0


class TestDeriveThresholds:
    """Tests for the combined per-group thresholds."""

    def test_masks(self):
        t = derive_thresholds([9, 3, 0, 3, 1], 1, subtop_mode="amount", sub_top=3)
        assert t.hotspot == 9
        assert t.subtop == 3.0
        assert t.hotspot_mask.tolist() == [True, False, False, False, False]
        assert t.subtop_mask.tolist() == [True, True, False, True, False]
        assert t.subtop_active

    def test_no_subtop(self):
        t = derive_thresholds([9, 3], 1)
        assert t.subtop is None
        assert t.subtop_mask is None
        assert not t.subtop_active

    def test_hotspot_cell_need_not_be_subtop(self):
        # a small sub_top leaves hotspot-qualifying cells outside subtop
        t = derive_thresholds([9, 5, 5], 3, subtop_mode="amount", sub_top=1)
        assert t.hotspot_mask.all()
        assert t.subtop_mask.tolist() == [True, False, False]
