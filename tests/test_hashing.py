"""
Tests for hashing, metadata sidecars and cache validation.
"""

import pytest

from biodiv_hotspots.hashing import (
    hash_dict,
    hash_file,
    hash_string,
    read_metadata_sidecar,
    validate_cache,
    write_metadata_sidecar,
)


class TestHashes:
    """Deterministic content hashes."""

    def test_hash_string_stable(self):
        assert hash_string("abc") == hash_string("abc")
        assert hash_string("abc") != hash_string("abd")

    def test_hash_dict_ignores_key_order(self):
        assert hash_dict({"a": 1, "b": 2}) == hash_dict({"b": 2, "a": 1})

    def test_hash_file_tracks_content(self, tmp_path):
        path = tmp_path / "f.txt"
        path.write_text("one")
        first = hash_file(path)
        path.write_text("two")
        assert hash_file(path) != first


class TestCache:
    """Outputs are reused only while inputs and config are unchanged."""

    @pytest.fixture
    def setup(self, tmp_path):
        inp = tmp_path / "input.csv"
        inp.write_text("1100\n")
        out = tmp_path / "out.parquet"
        out.write_bytes(b"result")
        meta = tmp_path / "metadata"
        config = {"hotspots": {"number_of_hotspots": 2}}
        write_metadata_sidecar(out, {"gridcells": str(inp)}, config, run_id="r1", metadata_dir=meta)
        return inp, out, meta, config

    def test_sidecar_contents(self, setup):
        inp, out, meta, config = setup
        metadata = read_metadata_sidecar(out, metadata_dir=meta)
        assert metadata["run_id"] == "r1"
        assert metadata["config_digest"] == hash_dict(config)
        assert metadata["inputs"]["gridcells"]["hash"] == hash_file(inp)
        assert (meta / "out_metadata.json").exists()

    def test_cache_valid(self, setup):
        inp, out, meta, config = setup
        assert validate_cache(out, {"gridcells": str(inp)}, config, metadata_dir=meta)

    def test_cache_invalid_after_input_change(self, setup):
        inp, out, meta, config = setup
        inp.write_text("2100\n")
        assert not validate_cache(out, {"gridcells": str(inp)}, config, metadata_dir=meta)

    def test_cache_invalid_after_config_change(self, setup):
        inp, out, meta, _ = setup
        changed = {"hotspots": {"number_of_hotspots": 3}}
        assert not validate_cache(out, {"gridcells": str(inp)}, changed, metadata_dir=meta)

    def test_cache_invalid_without_sidecar(self, setup, tmp_path):
        inp, out, _, config = setup
        assert not validate_cache(out, {"gridcells": str(inp)}, config, metadata_dir=tmp_path / "none")

    def test_missing_sidecar_reads_none(self, tmp_path):
        assert read_metadata_sidecar(tmp_path / "x.parquet", metadata_dir=tmp_path) is None
