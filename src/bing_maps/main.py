"""Command-line entry point for bing-maps.

Subcommands:
    locate LAT LON [-z LEVEL]   pixel, tile and quadkey of a coordinate (offline)
    quadkey KEY                 tile, level and top-left coordinate of a quadkey (offline)
    tile X Y Z                  landmarks on a vector tile
    place QUERY                 details of the best matching place
    directions WP WP [WP...]    routes between waypoints

Every command accepts --home to choose the data directory (see config.py).
"""

import argparse
import asyncio
import sys

import httpx
from loguru import logger

from . import config
from .config import get_config, load_config
from .directions import AVOIDANCES, METHODS, UNITS, DirectionalQueryBuilder, DirectionsError, InvalidQuery
from .geometry import GeoPoint, InvalidQuadKeyDigit, QuadTile
from .places import PlaceLookupError
from .session import BingMaps, SessionUnavailable
from .tiles import TileFetchError

FAILURES = (
    InvalidQuadKeyDigit,
    InvalidQuery,
    DirectionsError,
    PlaceLookupError,
    SessionUnavailable,
    TileFetchError,
    httpx.HTTPError,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bing-maps", description="Query Bing Maps tiles, places and directions.")
    parser.add_argument("--home", help="data directory (default: ./.bing-maps or $BING_MAPS_HOME)")
    commands = parser.add_subparsers(dest="command", required=True)

    locate = commands.add_parser("locate", help="pixel, tile and quadkey of a coordinate")
    locate.add_argument("latitude", type=float)
    locate.add_argument("longitude", type=float)
    locate.add_argument("-z", "--level", type=int, default=15)

    quadkey = commands.add_parser("quadkey", help="decode a quadkey")
    quadkey.add_argument("quadkey")

    tile = commands.add_parser("tile", help="list landmarks on a vector tile")
    tile.add_argument("x", type=int)
    tile.add_argument("y", type=int)
    tile.add_argument("z", type=int)

    place = commands.add_parser("place", help="look up a place")
    place.add_argument("query")

    directions = commands.add_parser("directions", help="routes between waypoints")
    directions.add_argument("waypoints", nargs="+")
    directions.add_argument("--method", choices=sorted(METHODS), default="recommended")
    directions.add_argument("--units", choices=UNITS, default="mi")
    directions.add_argument("--avoid", choices=AVOIDANCES, action="append", default=[])
    directions.add_argument("--alternatives", type=int, default=1)
    return parser


def locate(args: argparse.Namespace) -> None:
    point = GeoPoint(args.latitude, args.longitude)
    pixel = point.to_pixel(args.level)
    tile = pixel.to_tile()
    print(f"pixel:   {pixel.x}, {pixel.y}")
    print(f"tile:    {tile.x}, {tile.y} (level {args.level})")
    print(f"quadkey: {tile.to_quadkey(args.level)}")


def decode_quadkey(args: argparse.Namespace) -> None:
    quad = QuadTile.from_quadkey(args.quadkey)
    corner = quad.tile.to_pixel().to_geo(quad.level)
    print(f"tile:    {quad.x}, {quad.y} (level {quad.level})")
    print(f"corner:  {corner.latitude:.6f}, {corner.longitude:.6f}")


async def show_tile(maps: BingMaps, args: argparse.Namespace) -> None:
    vector_tile = await maps.tile(args.x, args.y, args.z)
    print(f"{len(vector_tile.landmarks)} landmarks, {len(vector_tile.roads)} roads")
    for landmark in vector_tile.landmarks:
        location = landmark.location
        where = f"{location.latitude:.6f}, {location.longitude:.6f}" if location else "?"
        print(f"  {landmark.name} [{where}] {landmark.id}")


async def show_place(maps: BingMaps, args: argparse.Namespace) -> None:
    place = await maps.place(args.query)
    if place is None:
        print("No place found.")
        return
    print(place.name)
    if place.category:
        print(f"  category: {place.category}")
    if place.address and place.address.formatted_address:
        print(f"  address:  {place.address.formatted_address}")
    if place.phone:
        print(f"  phone:    {place.phone}")
    if place.rating:
        print(f"  rating:   {place.rating.score} ({place.rating.count} reviews, {place.rating.provider})")
    if place.website:
        print(f"  website:  {place.website}")


async def show_directions(maps: BingMaps, args: argparse.Namespace) -> None:
    builder = DirectionalQueryBuilder()
    builder.method = args.method
    builder.units = args.units
    for waypoint in args.waypoints:
        builder.add_waypoint(waypoint)
    for avoidance in args.avoid:
        builder.avoid(avoidance)
    routes = await maps.directions.from_query(builder.build(args.alternatives))
    for route in routes:
        print(f"{route.distance} {route.units.distance}, {route.est_duration} {route.units.duration} ({route.mode})")
        for leg in route.path:
            for node in leg.path:
                print(f"  - {node.instruction.text}")


ONLINE_COMMANDS = {"tile": show_tile, "place": show_place, "directions": show_directions}


async def _run_online(args: argparse.Namespace) -> None:
    async with await BingMaps.instantiate() as maps:
        await ONLINE_COMMANDS[args.command](maps, args)


def setup_logging() -> None:
    cfg = get_config()
    log_file = cfg.logs_dir / "bing-maps.log"
    log_fmt = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"
    logger.add(log_file, rotation="10 MB", retention="7 days", level="DEBUG", format=log_fmt)
    logger.debug(f"bing-maps-home: {cfg.home}")


def main(argv: list[str] | None = None) -> int:
    """Main entry point for bing-maps."""
    args = build_parser().parse_args(argv)
    if args.home is not None:
        config.CONFIG = load_config(["--home", args.home])
    setup_logging()
    try:
        if args.command == "locate":
            locate(args)
        elif args.command == "quadkey":
            decode_quadkey(args)
        else:
            asyncio.run(_run_online(args))
    except FAILURES as e:
        logger.error(f"{args.command}: {e}")
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
