"""Bing Maps Tile System: projection and tile indexing math.

Converts between four coordinate representations at a given level of detail:
- GeoPoint: latitude/longitude in degrees, clamped to the projectable range
- Pixel: position in the global pixel grid, 256 * 2**level pixels on each side
- Tile: 256x256 pixel cells of that grid
- quadkey: base-4 string naming a tile as a path through the quadtree

Everything here is a pure function of its arguments. See
https://learn.microsoft.com/en-us/bingmaps/articles/bing-maps-tile-system
"""

from math import atan, cos, exp, floor, log, pi, sin
from typing import NamedTuple

EARTH_RADIUS_METERS = 6378137
MIN_LATITUDE = -85.05112878
MAX_LATITUDE = 85.05112878
MIN_LONGITUDE = -180
MAX_LONGITUDE = 180
TILE_SIZE = 256
METERS_PER_INCH = 0.0254

# quadkey digit -> (x bit, y bit)
_QUADKEY_BITS = {"0": (0, 0), "1": (1, 0), "2": (0, 1), "3": (1, 1)}


class InvalidQuadKeyDigit(ValueError):
    """A quadkey contained a character other than 0, 1, 2 or 3."""

    def __init__(self, digit: str, position: int):
        super().__init__(f"Invalid quadkey digit {digit!r} at position {position}")
        self.digit = digit
        self.position = position


class GeoPoint(NamedTuple):
    """Latitude/longitude coordinates in degrees."""

    latitude: float
    longitude: float

    def __str__(self) -> str:
        return f"{self.latitude},{self.longitude}"

    def to_pixel(self, level: int) -> "Pixel":
        return geo_to_pixel(self.latitude, self.longitude, level)

    def to_tile(self, level: int) -> "Tile":
        """Tile containing this point at the given level of detail."""
        return self.to_pixel(level).to_tile()


class Pixel(NamedTuple):
    """Pixel coordinates in the global pixel grid of some level of detail."""

    x: int = 0
    y: int = 0

    def to_tile(self) -> "Tile":
        return pixel_to_tile(self.x, self.y)

    def to_geo(self, level: int) -> GeoPoint:
        return pixel_to_geo(self.x, self.y, level)


class Tile(NamedTuple):
    """Tile indices; a tile covers TILE_SIZE x TILE_SIZE pixels."""

    x: int = 0
    y: int = 0

    def __str__(self) -> str:
        return f"{self.x}_{self.y}"

    def to_pixel(self) -> Pixel:
        """Top-left pixel of this tile."""
        return tile_to_pixel(self.x, self.y)

    def to_quadkey(self, level: int) -> str:
        return tile_to_quadkey(self.x, self.y, level)


class QuadTile(NamedTuple):
    """A tile together with its level of detail, as addressed by a quadkey."""

    x: int
    y: int
    level: int

    @classmethod
    def from_quadkey(cls, quadkey: str) -> "QuadTile":
        return quadkey_to_tile(quadkey)

    @property
    def tile(self) -> Tile:
        return Tile(self.x, self.y)

    @property
    def quadkey(self) -> str:
        return tile_to_quadkey(self.x, self.y, self.level)

    def __str__(self) -> str:
        """Key in the {z}-{x}-{y} form used by tile URLs."""
        return f"{self.level}-{self.x}-{self.y}"


def clip(n: float, min_value: float, max_value: float) -> float:
    """Clamp n into [min_value, max_value]."""
    return min(max(n, min_value), max_value)


def map_size(level: int) -> int:
    """Width and height of the whole map in pixels at the given level of detail."""
    return TILE_SIZE << level


def ground_resolution(latitude: float, level: int) -> float:
    """Meters on the ground represented by one pixel at this latitude and level."""
    latitude = clip(latitude, MIN_LATITUDE, MAX_LATITUDE)
    return cos(latitude * pi / 180) * 2 * pi * EARTH_RADIUS_METERS / map_size(level)


def map_scale(latitude: float, level: int, screen_dpi: float) -> float:
    """Map scale as 1 : N, for a screen of the given resolution in dots per inch."""
    return ground_resolution(latitude, level) * screen_dpi / METERS_PER_INCH


def _round_half_up(n: float) -> int:
    return floor(n + 0.5)


def geo_to_pixel(latitude: float, longitude: float, level: int) -> Pixel:
    """Forward projection from degrees to pixel coordinates. Out of range inputs are clamped."""
    latitude = clip(latitude, MIN_LATITUDE, MAX_LATITUDE)
    longitude = clip(longitude, MIN_LONGITUDE, MAX_LONGITUDE)

    x = (longitude + 180) / 360
    sin_latitude = sin(latitude * pi / 180)
    y = 0.5 - log((1 + sin_latitude) / (1 - sin_latitude)) / (4 * pi)

    size = map_size(level)
    pixel_x = _round_half_up(clip(x * size + 0.5, 0, size - 1))
    pixel_y = _round_half_up(clip(y * size + 0.5, 0, size - 1))
    return Pixel(pixel_x, pixel_y)


def pixel_to_geo(pixel_x: float, pixel_y: float, level: int) -> GeoPoint:
    """Inverse projection from pixel coordinates to degrees. Pixels are clamped to the map first."""
    size = map_size(level)
    x = clip(pixel_x, 0, size - 1) / size - 0.5
    y = 0.5 - clip(pixel_y, 0, size - 1) / size

    latitude = 90 - 360 * atan(exp(-y * 2 * pi)) / pi
    longitude = 360 * x
    return GeoPoint(latitude, longitude)


def pixel_to_tile(pixel_x: int, pixel_y: int) -> Tile:
    """Tile containing the given pixel. Not clamped."""
    return Tile(pixel_x // TILE_SIZE, pixel_y // TILE_SIZE)


def tile_to_pixel(tile_x: int, tile_y: int) -> Pixel:
    """Top-left pixel of the given tile."""
    return Pixel(tile_x * TILE_SIZE, tile_y * TILE_SIZE)


def tile_to_quadkey(tile_x: int, tile_y: int, level: int) -> str:
    """Encode tile indices as a quadkey of `level` digits, most significant first."""
    digits = []
    for i in range(level, 0, -1):
        mask = 1 << (i - 1)
        digit = 0
        if tile_x & mask:
            digit += 1
        if tile_y & mask:
            digit += 2
        digits.append(str(digit))
    return "".join(digits)


def quadkey_to_tile(quadkey: str) -> QuadTile:
    """Decode a quadkey into tile indices and its level of detail.

    Raises:
        InvalidQuadKeyDigit: if any character is not one of 0, 1, 2, 3
    """
    tile_x = tile_y = 0
    level = len(quadkey)
    for position, digit in enumerate(quadkey):
        try:
            x_bit, y_bit = _QUADKEY_BITS[digit]
        except KeyError:
            raise InvalidQuadKeyDigit(digit, position) from None
        shift = level - position - 1
        tile_x |= x_bit << shift
        tile_y |= y_bit << shift
    return QuadTile(tile_x, tile_y, level)
