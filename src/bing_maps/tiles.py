"""Vector map tiles from the Bing Maps tile servers.

Tiles are Mapbox Vector Tiles downloaded from the virtualearth.net dynamic tile
service, keyed by {z}-{x}-{y}, and cached locally in the config's tiles
directory. Only the "landmark" and "road" layers are interpreted.

Feature geometry is kept in tile-local coordinates (0..extent, y axis down) as
a list of rings/lines of XY points. Landmark.location projects the first
vertex back to latitude/longitude through the owning tile.
"""

import asyncio
from pathlib import Path
from typing import NamedTuple

import httpx
import mapbox_vector_tile
from loguru import logger

from .config import get_config
from .geometry import TILE_SIZE, GeoPoint, QuadTile, pixel_to_geo
from .places import Place

TILE_URL = (
    "https://t.ssl.ak.dynamic.tiles.virtualearth.net/comp/ch/{key}.mvt"
    "?it=G,LC,AP,L,LA&js=1&mvt=1&features=mvt,mvttxtmaxw,mvtfcall,mvtjustlabels&og=2359"
)
DEFAULT_EXTENT = 4096


class TileFetchError(RuntimeError):
    """Raised when a tile cannot be downloaded."""


class XY(NamedTuple):
    """A vertex in tile-local coordinates."""

    x: float
    y: float


def tile_url(x: int, y: int, z: int) -> str:
    return TILE_URL.format(key=QuadTile(x, y, z))


def _rings(geometry: dict) -> list[list[XY]]:
    """Flatten any GeoJSON-style geometry into a list of vertex sequences."""
    kind = geometry.get("type")
    coordinates = geometry.get("coordinates") or []
    if kind == "Point":
        return [[XY(*coordinates[:2])]]
    if kind == "MultiPoint":
        return [[XY(*point[:2])] for point in coordinates]
    if kind == "LineString":
        return [[XY(*point[:2]) for point in coordinates]]
    if kind in ("MultiLineString", "Polygon"):
        return [[XY(*point[:2]) for point in line] for line in coordinates]
    if kind == "MultiPolygon":
        return [[XY(*point[:2]) for point in ring] for polygon in coordinates for ring in polygon]
    logger.warning(f"Unknown geometry type {kind!r}, ignoring")
    return []


class Landmark:
    """A point of interest on a tile. Its id doubles as a place filter."""

    def __init__(self, feature: dict, tile: QuadTile, extent: int = DEFAULT_EXTENT):
        properties = feature.get("properties") or {}
        self.id = f'ypid:"{properties.get("lmk-ypid")}"'
        self.name: str | None = properties.get("name")
        self.geometry = _rings(feature.get("geometry") or {})
        self.tile = tile
        self.extent = extent

    def __repr__(self) -> str:
        return f"Landmark({self.name!r}, {self.id})"

    @property
    def position(self) -> XY | None:
        """First vertex of the geometry, in tile-local coordinates."""
        return self.geometry[0][0] if self.geometry and self.geometry[0] else None

    @property
    def location(self) -> GeoPoint | None:
        position = self.position
        if position is None:
            return None
        scale = TILE_SIZE / self.extent
        pixel_x = self.tile.x * TILE_SIZE + position.x * scale
        pixel_y = self.tile.y * TILE_SIZE + position.y * scale
        return pixel_to_geo(pixel_x, pixel_y, self.tile.level)

    async def to_place(self, client: httpx.AsyncClient) -> Place | None:
        return await Place.from_landmark(client, self)


class Road:
    """A road; roads have several segments, so geometry holds one line per segment."""

    def __init__(self, feature: dict):
        properties = feature.get("properties") or {}
        self.id = feature.get("id")
        self.name: str | None = properties.get("name")
        self.geometry = _rings(feature.get("geometry") or {})

    def __repr__(self) -> str:
        return f"Road({self.name!r})"


class VectorTile:
    """Decoded landmark and road layers of one tile."""

    def __init__(self, layers: dict, tile: QuadTile):
        self.tile = tile
        landmark_layer = layers.get("landmark") or {}
        extent = landmark_layer.get("extent", DEFAULT_EXTENT)
        self.landmarks = [Landmark(f, tile, extent) for f in landmark_layer.get("features") or ()]
        self.roads = [Road(f) for f in (layers.get("road") or {}).get("features") or ()]

    @classmethod
    def from_bytes(cls, data: bytes, tile: QuadTile) -> "VectorTile":
        layers = mapbox_vector_tile.decode(data, default_options={"y_coord_down": True})
        return cls(layers, tile)

    @classmethod
    async def get(cls, client: httpx.AsyncClient, x: int, y: int, z: int) -> "VectorTile":
        """Fetch and decode a tile, using the local cache when enabled."""
        tile = QuadTile(x, y, z)
        data = await fetch_tile(client, tile)
        return await asyncio.to_thread(cls.from_bytes, data, tile)

    @classmethod
    async def at(cls, client: httpx.AsyncClient, latitude: float, longitude: float, level: int) -> "VectorTile":
        """Fetch the tile containing the given coordinate."""
        tile = GeoPoint(latitude, longitude).to_tile(level)
        return await cls.get(client, tile.x, tile.y, level)


async def fetch_tile(client: httpx.AsyncClient, tile: QuadTile) -> bytes:
    """Returns the raw MVT payload for a tile, from cache or from the tile server."""
    cfg = get_config()
    cache_path = cfg.tiles_dir / f"{tile}.mvt"
    if cfg.cache_tiles and cache_path.exists():
        logger.debug(f"Tile {tile}: served from cache")
        return await asyncio.to_thread(cache_path.read_bytes)

    url = tile_url(tile.x, tile.y, tile.level)
    logger.debug(f"Tile {tile}: GET {url}")
    response = await client.get(url)
    if response.status_code != 200:
        raise TileFetchError(f"Tile {tile}: HTTP {response.status_code}")

    data = response.content
    if cfg.cache_tiles:
        await asyncio.to_thread(_write_cache, cache_path, data)
    return data


def _write_cache(path: Path, data: bytes) -> None:
    """Write through a sibling temp file so readers never see a partial tile."""
    path.parent.mkdir(parents=True, exist_ok=True)
    partial = path.with_name(path.name + ".part")
    try:
        partial.write_bytes(data)
        partial.replace(path)
    except BaseException:
        partial.unlink(missing_ok=True)
        raise
