"""Client for Bing Maps' web endpoints: directions, places and vector tiles.

The geometry module implements the Bing Maps Tile System and needs no network.
"""

from .geometry import GeoPoint, InvalidQuadKeyDigit, Pixel, QuadTile, Tile
from .session import BingMaps

__all__ = ["BingMaps", "GeoPoint", "InvalidQuadKeyDigit", "Pixel", "QuadTile", "Tile"]
