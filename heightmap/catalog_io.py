"""Load terrain catalogs and height map settings from JSON files.

A catalog file looks like::

    {
      "terrainTypes": [
        {"id": "wall", "name": "Wall", "usesHeight": true},
        {"id": "difficult", "usesHeight": false}
      ],
      "settings": {"maxHistory": 20}
    }

The ``settings`` block is optional; missing fields take their defaults.
"""

from __future__ import annotations

import json
from pathlib import Path

from .types import HeightMapSettings, TerrainCatalog


def load_catalog(path: Path | str) -> TerrainCatalog:
    """Load a JSON catalog file and return a typed ``TerrainCatalog``.

    Args:
        path: Path to the catalog file.

    Returns:
        The catalog. Terrain types without ``usesHeight`` use height.
    """
    with open(path) as f:
        data = json.load(f)
    return TerrainCatalog.from_dict(data)


def load_settings(path: Path | str) -> HeightMapSettings:
    """Read the optional ``settings`` block of a catalog file."""
    with open(path) as f:
        data = json.load(f)
    return HeightMapSettings.from_dict(data.get("settings"))


def save_catalog(
    catalog: TerrainCatalog,
    path: Path | str,
    settings: dict | None = None,
) -> None:
    """Write a catalog (and optional raw settings dict) to a JSON file.

    Creates parent directories if they don't exist.
    """
    path = Path(path)
    data = catalog.to_dict()
    if settings:
        data["settings"] = settings
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
        f.write("\n")
