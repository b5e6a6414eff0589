"""Terrain height map geometry: cell shapes and line of sight."""
