"""Tests for persistence sinks and catalog file IO."""

import json

import pytest

from heightmap.catalog_io import load_catalog, load_settings, save_catalog
from heightmap.persistence import JsonFileSink, MemorySink
from heightmap.types import (
    CellAssignment,
    HeightCapability,
    TerrainCatalog,
    TerrainType,
)


class TestMemorySink:
    def test_store_and_load_are_copies(self):
        sink = MemorySink()
        cells = [CellAssignment((0, 0), "wall").to_dict()]
        sink.store(cells)
        cells[0]["height"] = 9.0
        loaded = sink.load()
        assert loaded[0]["height"] == 1.0
        loaded[0]["height"] = 5.0
        assert sink.cells[0]["height"] == 1.0
        assert sink.store_count == 1

    def test_initial_cells(self):
        sink = MemorySink([{"position": [1, 2], "terrainTypeId": "wall"}])
        assert sink.load() == [{"position": [1, 2], "terrainTypeId": "wall"}]
        assert sink.store_count == 0


class TestJsonFileSink:
    def test_missing_file_loads_empty(self, tmp_path):
        assert JsonFileSink(tmp_path / "cells.json").load() == []

    def test_store_creates_parent_dirs(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "cells.json"
        sink = JsonFileSink(path)
        cells = [CellAssignment((0, 1), "wall", 2.0, 1.0).to_dict()]
        sink.store(cells)
        assert path.exists()
        assert path.read_text().endswith("\n")
        assert sink.load() == cells

    def test_loaded_cells_parse(self, tmp_path):
        path = tmp_path / "cells.json"
        path.write_text(
            json.dumps([{"position": [3, 4], "terrainTypeId": "wall"}])
        )
        cells = [CellAssignment.from_dict(d) for d in JsonFileSink(path).load()]
        assert cells == [CellAssignment((3, 4), "wall", 1.0, 0.0)]

    def test_rejects_non_array(self, tmp_path):
        path = tmp_path / "cells.json"
        path.write_text(json.dumps({"cells": []}))
        with pytest.raises(ValueError, match="JSON array"):
            JsonFileSink(path).load()


class TestCatalogIO:
    def test_load_catalog(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text(
            json.dumps(
                {
                    "terrainTypes": [
                        {"id": "wall", "name": "Wall", "usesHeight": True},
                        {"id": "difficult", "usesHeight": False},
                        {"id": "ruin"},
                    ]
                }
            )
        )
        catalog = load_catalog(path)
        assert [t.id for t in catalog.terrain_types] == [
            "wall",
            "difficult",
            "ruin",
        ]
        assert catalog.uses_height("wall")
        assert not catalog.uses_height("difficult")
        assert catalog.uses_height("ruin")
        assert not catalog.uses_height("missing")
        assert catalog.exists("difficult")
        assert not catalog.exists("missing")

    def test_settings_defaults(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps({"terrainTypes": []}))
        settings = load_settings(path)
        assert settings.max_history == 10
        assert settings.skim_angle_threshold == 0.05
        assert settings.skim_distance_squared == 16.0
        assert settings.hole_probe_offset == 0.05

    def test_settings_override(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text(
            json.dumps(
                {
                    "terrainTypes": [],
                    "settings": {"maxHistory": 20, "skimDistanceSquared": 4},
                }
            )
        )
        settings = load_settings(path)
        assert settings.max_history == 20
        assert settings.skim_distance_squared == 4
        assert settings.skim_angle_threshold == 0.05

    def test_save_and_reload(self, tmp_path):
        catalog = TerrainCatalog(
            terrain_types=[
                TerrainType(id="wall", name="Wall"),
                TerrainType(
                    id="difficult", capability=HeightCapability.NO_HEIGHT
                ),
            ]
        )
        path = tmp_path / "out" / "catalog.json"
        save_catalog(catalog, path, settings={"maxHistory": 5})
        assert load_catalog(path) == catalog
        assert load_settings(path).max_history == 5
