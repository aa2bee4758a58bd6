"""Route queries against the Bing Maps directions endpoint.

DirectionalQueryBuilder assembles the query string the Bing Maps web app sends
to https://dev.virtualearth.net/REST/v1/Routes/{method}. Directions runs such a
query with the scraped session key and maps the JSON resources into Route,
RouteLeg and PathNode values. Only the fields listed here are interpreted; the
rest of the response schema is Bing's and may change without notice.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, NamedTuple

import httpx
from loguru import logger

from .dates import parse_date
from .geometry import GeoPoint

ROUTES_URL = "https://dev.virtualearth.net/REST/v1/Routes/{method}"

# Public method name -> endpoint path segment
METHODS = {
    "recommended": "alternate",
    "driving": "driving",
    "transit": "multimodal",
    "walking": "walking",
}
UNITS = ("mi", "km")
AVOIDANCES = ("highways", "tolls", "ferry", "borderCrossing")
MAX_WAYPOINTS = 25

Query = dict[str, str | int | bool]


class InvalidQuery(ValueError):
    """Raised when a route query cannot be built as requested."""


class DirectionsError(RuntimeError):
    """Raised when the directions endpoint returns no routes."""

    def __init__(self, status_code: int, details: list[str]):
        super().__init__(f"Directions request failed (HTTP {status_code}): {'; '.join(details) or 'no details'}")
        self.status_code = status_code
        self.details = details


def _geo(coordinates: list[float] | None) -> GeoPoint | None:
    if not coordinates:
        return None
    return GeoPoint(coordinates[0], coordinates[1])


class RouteUnits(NamedTuple):
    distance: str | None
    duration: str | None
    currency: str | None  # None when the route has no tolls


class Traffic(NamedTuple):
    congestion: str | None
    data_used: int | None


class Instruction(NamedTuple):
    text: str | None
    type: str | None


class PathDetail(NamedTuple):
    angle: float | None
    start_path_indices: list[int]
    end_path_indices: list[int]
    type: str | None
    names: list[str]
    road_type: str | None

    @classmethod
    def from_json(cls, data: dict) -> "PathDetail":
        return cls(
            angle=data.get("compassDegrees"),
            start_path_indices=data.get("startPathIndices") or [],
            end_path_indices=data.get("endPathIndices") or [],
            type=data.get("maneuverType", data.get("manueverType")),  # Bing spells it both ways
            names=data.get("names") or [],
            road_type=data.get("roadType"),
        )


@dataclass(frozen=True)
class PathNode:
    """One itinerary item: a maneuver along a route leg."""

    direction: str | None
    details: list[PathDetail]
    exit: str | None
    instruction: Instruction
    is_real_time: bool
    real_time_delay: float | None
    location: GeoPoint | None
    side_of_street: str | None
    toll_zone: str | None
    distance: float | None
    duration: float | None
    mode: str | None

    @classmethod
    def from_json(cls, data: dict) -> "PathNode":
        instruction = data.get("instruction") or {}
        return cls(
            direction=data.get("compassDirection"),
            details=[PathDetail.from_json(d) for d in data.get("details") or ()],
            exit=data.get("exit"),
            instruction=Instruction(instruction.get("text"), instruction.get("maneuverType")),
            is_real_time=bool(data.get("isRealTimeTransit")),
            real_time_delay=data.get("realTimeTransitDelay"),
            location=_geo((data.get("maneuverPoint") or {}).get("coordinates")),
            side_of_street=data.get("sideOfStreet"),
            toll_zone=data.get("tollZone"),
            distance=data.get("travelDistance"),
            duration=data.get("travelDuration"),
            mode=data.get("travelMode"),
        )


@dataclass(frozen=True)
class RouteLeg:
    """The part of a route between two consecutive waypoints."""

    start: GeoPoint | None
    end: GeoPoint | None
    description: str | None
    start_time: datetime | None
    end_time: datetime | None
    path: list[PathNode]
    region: str | None
    distance: float | None
    duration: float | None
    mode: str | None

    @classmethod
    def from_json(cls, data: dict) -> "RouteLeg":
        return cls(
            start=_geo((data.get("actualStart") or {}).get("coordinates")),
            end=_geo((data.get("actualEnd") or {}).get("coordinates")),
            description=data.get("description"),
            start_time=parse_date(data.get("startTime")),
            end_time=parse_date(data.get("endTime")),
            path=[PathNode.from_json(item) for item in data.get("itineraryItems") or ()],
            region=data.get("routeRegion"),
            distance=data.get("travelDistance"),
            duration=data.get("travelDuration"),
            mode=data.get("travelMode"),
        )


@dataclass(frozen=True)
class Route:
    """A route resource. Distances are in units.distance, durations in units.duration."""

    id: str | None
    bounding_box: list[float]
    units: RouteUnits
    traffic: Traffic
    distance: float | None
    raw_duration: float | None  # without traffic
    est_duration: float | None  # with traffic
    mode: str | None
    path: list[RouteLeg]

    @classmethod
    def from_json(cls, data: dict) -> "Route":
        return cls(
            id=data.get("id"),
            bounding_box=data.get("bbox") or [],
            units=RouteUnits(data.get("distanceUnit"), data.get("durationUnit"), data.get("currencyCode")),
            traffic=Traffic(data.get("trafficCongestion"), data.get("trafficDataUsed")),
            distance=data.get("travelDistance"),
            raw_duration=data.get("travelDuration"),
            est_duration=data.get("travelDurationTraffic"),
            mode=data.get("travelMode"),
            path=[RouteLeg.from_json(leg) for leg in data.get("routeLegs") or ()],
        )


def _format_datetime(value: datetime | str) -> str:
    if isinstance(value, datetime):
        return value.strftime("%m/%d/%Y %H:%M:%S")
    return value


class DirectionalQueryBuilder:
    """Fluent builder for directions queries.

    Usage:
        method, query = DirectionalQueryBuilder().add_waypoint("Seattle").add_waypoint("Portland").build()
    """

    def __init__(self):
        self._waypoints: list[str | GeoPoint] = []
        self._units = "mi"
        self._method = "recommended"
        self._avoid: set[str] = set()  # only honoured for driving
        self._time_type = "departure"
        self._date_time: str | None = None

    @property
    def method(self) -> str:
        return self._method

    @method.setter
    def method(self, method: str) -> None:
        if method not in METHODS:
            raise InvalidQuery(f"Invalid method: {method}")
        self._method = method

    @property
    def units(self) -> str:
        return self._units

    @units.setter
    def units(self, units: str) -> None:
        if units not in UNITS:
            raise InvalidQuery(f"Invalid unit of measurement: {units}")
        self._units = units

    @property
    def waypoints(self) -> list[str | GeoPoint]:
        return list(self._waypoints)

    @property
    def avoidances(self) -> frozenset[str]:
        return frozenset(self._avoid)

    def arrive_by(self, when: datetime | str) -> "DirectionalQueryBuilder":
        self._time_type = "arrival"
        self._date_time = _format_datetime(when)
        return self

    def depart_at(self, when: datetime | str) -> "DirectionalQueryBuilder":
        self._time_type = "departure"
        self._date_time = _format_datetime(when)
        return self

    def add_waypoint(self, waypoint: str | GeoPoint) -> "DirectionalQueryBuilder":
        self._waypoints.append(waypoint)
        return self

    def remove_waypoint(self, waypoint: int | str | GeoPoint) -> "DirectionalQueryBuilder":
        """Remove a waypoint by index or by value."""
        if isinstance(waypoint, int) and not isinstance(waypoint, bool):
            if not -len(self._waypoints) <= waypoint < len(self._waypoints):
                raise InvalidQuery(f"Invalid waypoint index: {waypoint}")
            del self._waypoints[waypoint]
        elif waypoint in self._waypoints:
            self._waypoints.remove(waypoint)
        else:
            raise InvalidQuery(f"Invalid waypoint: {waypoint}")
        return self

    def avoid(self, avoidance: str) -> "DirectionalQueryBuilder":
        if avoidance not in AVOIDANCES:
            raise InvalidQuery(f"Invalid avoidance: {avoidance}")
        self._avoid.add(avoidance)
        return self

    def un_avoid(self, avoidance: str) -> "DirectionalQueryBuilder":
        self._avoid.discard(avoidance)
        return self

    def build(self, num_solutions: int = 1) -> tuple[str, Query]:
        """Validate and return (endpoint method, query parameters)."""
        self._validate_waypoints(num_solutions)
        query = self._build_query(num_solutions)
        for i, waypoint in enumerate(self._waypoints):
            query[f"wp.{i}"] = str(waypoint)
        return METHODS[self._method], query

    def _validate_waypoints(self, num_solutions: int) -> None:
        count = len(self._waypoints)
        if (num_solutions > 1 or self._method == "transit") and count != 2:
            raise InvalidQuery(f"Alternatives and transit routes need exactly 2 waypoints, got {count}")
        if count < 2 or count > MAX_WAYPOINTS:
            raise InvalidQuery(f"Routes need between 2 and {MAX_WAYPOINTS} waypoints, got {count}")
        if count > 2 and self._method not in ("driving", "walking"):
            raise InvalidQuery(f"Only driving and walking routes may have more than 2 waypoints, got {count}")

    def _build_query(self, num_solutions: int) -> Query:
        # Fixed values are what the Bing Maps web app sends
        query: Query = {
            "o": "json",
            "fi": True,
            "errorDetail": True,
            "ur": "us",
            "c": "en-US",
            "setfeatures": "routingfeat2",
            "ig": True,
            "ra": "routepath,routepathannotations,routeproperties,includeCameras,routeInfoCard,TransitFrequency",
            "lm": "driving,transit",
            "cn": "parkandrides",
            "avoid": ",".join(sorted(self._avoid)),
            "optmz": "timeWithTraffic",
            "trt": "1,3,6,8",  # preferred transit types
            "du": self._units,
            "tt": self._time_type,
            "maxSolns": num_solutions,
            "rpo": "Points",
        }
        if self._date_time:
            query["dt"] = self._date_time
        return query


class Directions:
    """Runs directions queries with a Bing Maps session key."""

    def __init__(self, client: httpx.AsyncClient, session_key: str):
        self.client = client
        self.session_key = session_key

    async def from_query(self, built: tuple[str, Query]) -> list[Route]:
        """Run a query produced by DirectionalQueryBuilder.build()."""
        method, query = built
        params = {**query, "key": self.session_key}
        url = ROUTES_URL.format(method=method)
        logger.debug(f"Directions: GET {url} ({len(query)} params)")
        response = await self.client.get(url, params=params, headers={"Referer": "https://www.bing.com/"})

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        resource_sets = payload.get("resourceSets") or []
        if not resource_sets:
            raise DirectionsError(response.status_code, payload.get("errorDetails") or [])

        routes = [Route.from_json(resource) for resource in resource_sets[0].get("resources") or ()]
        logger.info(f"Directions: {len(routes)} route(s) via {method}")
        return routes

    async def from_waypoints(self, waypoints: Iterable[str | GeoPoint], method: str = "recommended") -> list[Route]:
        builder = DirectionalQueryBuilder()
        builder.method = method
        for waypoint in waypoints:
            builder.add_waypoint(waypoint)
        return await self.from_query(builder.build())
