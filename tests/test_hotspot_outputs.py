"""
Tests for the sample-data pipeline and the outputs of scripts 01 and 02.

Output tests skip when the scripts have not been run yet.
"""

import geopandas as gpd
import pandas as pd
import pytest

from biodiv_hotspots.hotspots import detect_hotspots
from biodiv_hotspots.io_utils import load_hotspot_inputs, read_yaml, resolve_input_paths
from biodiv_hotspots.paths import HOTSPOTS_DIR, PARAMS_FILE, SENSITIVITY_DIR
from biodiv_hotspots.qa import validate_result

STATUS_PARQUET = HOTSPOTS_DIR / "hotspot_status.parquet"
CELLS_GEOJSON = HOTSPOTS_DIR / "hotspot_cells.geojson"
GROUP_SUMMARY = HOTSPOTS_DIR / "group_summary.csv"
SENSITIVITY_SUMMARY = SENSITIVITY_DIR / "hotspot_sensitivity_summary.csv"


@pytest.fixture(scope="module")
def sample_inputs():
    inputs_config = read_yaml(PARAMS_FILE)["inputs"]
    return load_hotspot_inputs(inputs_config, resolve_input_paths(inputs_config))


@pytest.mark.smoke
class TestSampleRun:
    """Hotspot detection on data/raw/sample."""

    def test_inputs_loaded(self, sample_inputs):
        gridcells, observations, species = sample_inputs
        assert len(gridcells) == 20
        assert {"species", "x", "y"} <= set(observations.columns)
        assert list(species.columns) == ["species", "group"]

    def test_groups_and_centers(self, sample_inputs):
        gridcells, observations, species = sample_inputs
        run = detect_hotspots(observations, gridcells, species_table=species, number_of_hotspots=2)
        result = run.to_frame()
        validate_result(result, gridcells, run.groups)

        assert run.groups == ["Group1", "Group2"]
        by_cell = result.set_index("gridcell")
        assert by_cell.loc[20380, "Group1"] == 4
        assert by_cell.loc[22382, "Group2"] == 4
        # species 99 is not accepted
        assert by_cell.loc[24381, "Group1"] == 0
        assert by_cell.loc[24381, "Group2"] == 0

        centers1 = by_cell.index[by_cell["hotspot_Group1"].to_numpy()].tolist()
        centers2 = by_cell.index[by_cell["hotspot_Group2"].to_numpy()].tolist()
        assert sorted(centers1) == [20380, 23383]
        assert sorted(centers2) == [22382, 24380]
        assert by_cell.loc[22382, "hotspot_id_Group2"] == 1

    def test_configured_run(self, sample_inputs):
        gridcells, observations, species = sample_inputs
        params = read_yaml(PARAMS_FILE)["hotspots"]
        params["print_progress"] = False
        run = detect_hotspots(observations, gridcells, species_table=species, **params)
        summaries = validate_result(run.to_frame(), gridcells, run.groups)
        for summary in summaries.values():
            assert summary["hotspot_centers"] >= params["number_of_hotspots"]


@pytest.fixture
def df_status():
    if not STATUS_PARQUET.exists():
        pytest.skip(f"Missing: {STATUS_PARQUET}")
    return pd.read_parquet(STATUS_PARQUET)


@pytest.fixture
def gdf_cells():
    if not CELLS_GEOJSON.exists():
        pytest.skip(f"Missing: {CELLS_GEOJSON}")
    return gpd.read_file(CELLS_GEOJSON)


class TestStatusOutput:
    """Tests for hotspot_status.parquet."""

    def test_one_row_per_cell(self, df_status):
        assert df_status["gridcell"].is_unique

    def test_base_columns_first(self, df_status):
        assert list(df_status.columns[:3]) == ["gridcell", "x", "y"]

    def test_ids_non_negative(self, df_status):
        id_cols = [c for c in df_status.columns if c.startswith("hotspot_id_")]
        assert id_cols
        for col in id_cols:
            assert (df_status[col] >= 0).all()


class TestHotspotCellsGeoJSON:
    """Tests for hotspot_cells.geojson."""

    def test_has_geometry(self, gdf_cells):
        assert gdf_cells.geometry.notna().all()

    def test_every_cell_in_a_hotspot(self, gdf_cells):
        id_cols = [c for c in gdf_cells.columns if c.startswith("hotspot_id_")]
        assert (gdf_cells[id_cols] > 0).any(axis=1).all()


class TestSummaries:
    """Tests for the group and sensitivity summaries."""

    def test_group_summary(self):
        if not GROUP_SUMMARY.exists():
            pytest.skip(f"Missing: {GROUP_SUMMARY}")
        df = pd.read_csv(GROUP_SUMMARY)
        assert df["group"].is_unique
        assert (df["hotspot_centers"] >= 0).all()

    def test_sensitivity_summary(self):
        if not SENSITIVITY_SUMMARY.exists():
            pytest.skip(f"Missing: {SENSITIVITY_SUMMARY}")
        df = pd.read_csv(SENSITIVITY_SUMMARY)
        assert not df.duplicated(["number_of_hotspots", "subtop_mode", "group"]).any()
