"""Place details scraped from the Bing Maps overlay panel.

https://www.bing.com/maps/overlaybfpr returns an HTML fragment whose container
elements carry the place data as JSON in data-* attributes, and whose review
block carries a JSON "revdata" attribute. Place.from_response() merges those
into a single dict the way jQuery's .data() would and maps it into typed fields.
"""

import json
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, NamedTuple

import httpx
from bs4 import BeautifulSoup, Tag
from loguru import logger

from .dates import parse_date
from .geometry import GeoPoint

if TYPE_CHECKING:
    from .tiles import Landmark

OVERLAY_URL = "https://www.bing.com/maps/overlaybfpr"


class PlaceLookupError(RuntimeError):
    """Raised when the overlay endpoint does not answer with a page."""


class Address(NamedTuple):
    address_line: str | None = None
    city: str | None = None
    state_municipality: str | None = None
    country: str | None = None
    postal_code: str | None = None
    neighborhood: str | None = None
    formatted_address: str | None = None

    @classmethod
    def from_json(cls, data: dict) -> "Address":
        return cls(
            address_line=data.get("addressLine"),
            city=data.get("city"),
            state_municipality=data.get("stateMunicipality"),
            country=data.get("country"),
            postal_code=data.get("postalCode"),
            neighborhood=data.get("neighborhood"),
            formatted_address=data.get("formattedAddress"),
        )


class OpenHours(NamedTuple):
    day: str
    ranges: list[tuple[str, str]]

    @classmethod
    def from_json(cls, data: dict) -> "OpenHours":
        ranges = [(r.get("start"), r.get("end")) for r in data.get("hoursRanges") or ()]
        return cls(data.get("day", ""), ranges)


class Rating(NamedTuple):
    score: float | None
    count: int | None
    provider: str | None


class Review(NamedTuple):
    text: str | None
    score: float | None
    author: str | None
    date: datetime | None
    link: str | None
    provider: str | None

    @classmethod
    def from_json(cls, data: dict) -> "Review":
        rating = data.get("Rating") or {}
        return cls(
            text=data.get("Text"),
            score=rating.get("ReviewRating"),
            author=rating.get("ReviewerName"),
            date=parse_date(rating.get("ReviewTimeStamp")),
            link=(data.get("FullReviewLink") or {}).get("Url"),
            provider=rating.get("ProviderName"),
        )


def _data_value(raw: str) -> Any:
    """Decode a data-* attribute value the way jQuery's .data() does."""
    if raw == "true":
        return True
    if raw == "false":
        return False
    if raw == "null":
        return None
    if raw.startswith(("{", "[")):
        try:
            return json.loads(raw)
        except ValueError:
            return raw
    try:
        number = float(raw)
    except ValueError:
        return raw
    # Only strings that survive a round trip become numbers, e.g. "007" and "1.0" stay strings
    if not math.isfinite(number):
        return raw
    if number.is_integer():
        return int(number) if str(int(number)) == raw else raw
    return number if repr(number) == raw else raw


def _data_attributes(element: Tag | None) -> dict[str, Any]:
    if element is None:
        return {}
    return {name[5:]: _data_value(value) for name, value in element.attrs.items() if name.startswith("data-")}


@dataclass
class Place:
    """A place (business, landmark or address) as shown in the Bing Maps side panel."""

    type: str | None = None
    id: str | None = None
    name: str | None = None
    bounds: list[float] | None = None
    location: GeoPoint | None = None
    thumbnail: str | None = None
    category: str | None = None
    website: str | None = None

    localization_lang: str | None = None
    address: Address | None = None
    open_hours: list[OpenHours] = field(default_factory=list)

    phone: str | None = None
    rating: Rating | None = None
    price: str | None = None
    categories: list[str] = field(default_factory=list)

    reviews: list[Review] = field(default_factory=list)

    @classmethod
    def from_data(cls, data: dict) -> "Place":
        """Build a Place from the merged overlay data."""
        place = cls(type=data.get("segmenttype"))
        place._parse_entity(data.get("entity") or {})
        if data.get("facts"):
            place._parse_facts(data["facts"])
        if data.get("itineraryfacts"):
            place._parse_itinerary_facts(data["itineraryfacts"])
        if data.get("revdata"):
            place._parse_reviews(data["revdata"])
        return place

    @classmethod
    def from_response(cls, html: str) -> "Place | None":
        """Parse an overlay page. Returns None if Bing reports no match."""
        soup = BeautifulSoup(html, "html.parser")
        if soup.select_one(".errmsg") is not None:
            return None

        data: dict[str, Any] = {}
        data.update(_data_attributes(soup.select_one(".overlay-container")))
        data.update(_data_attributes(soup.select_one(".overlay-taskpane")))
        reviews = soup.select_one(".reviews_rct")
        if reviews is not None and reviews.get("revdata"):
            data["revdata"] = json.loads(reviews["revdata"])
        return cls.from_data(data)

    @classmethod
    async def from_filter(cls, client: httpx.AsyncClient, filter: str) -> "Place | None":
        return await cls._fetch(client, {"filters": filter, "count": 1})

    @classmethod
    async def from_query(cls, client: httpx.AsyncClient, query: str) -> "Place | None":
        return await cls._fetch(client, {"q": query, "count": 1})

    @classmethod
    async def from_landmark(cls, client: httpx.AsyncClient, landmark: "Landmark") -> "Place | None":
        return await cls.from_filter(client, landmark.id)

    @classmethod
    async def _fetch(cls, client: httpx.AsyncClient, params: dict) -> "Place | None":
        logger.debug(f"Place: GET {OVERLAY_URL} {params}")
        response = await client.get(OVERLAY_URL, params=params)
        if response.status_code != 200:
            raise PlaceLookupError(f"Place lookup {params} failed: HTTP {response.status_code}")
        place = cls.from_response(response.text)
        if place is None:
            logger.info(f"Place: no result for {params}")
        return place

    def _parse_entity(self, entity: dict) -> None:
        details = entity.get("entity") or {}
        self.bounds = (entity.get("geometry") or {}).get("bounds")
        point = entity.get("routablePoint") or {}
        if "latitude" in point and "longitude" in point:
            self.location = GeoPoint(point["latitude"], point["longitude"])
        self.name = details.get("title")
        self.id = details.get("id")
        self.thumbnail = details.get("imageUrl")
        self.category = details.get("primaryCategory")
        self.website = details.get("website")

    def _parse_facts(self, facts: dict) -> None:
        self.localization_lang = facts.get("languageCultureName")
        if facts.get("addressFields"):
            self.address = Address.from_json(facts["addressFields"])
        self.open_hours = [OpenHours.from_json(h) for h in facts.get("openHours") or ()]

    def _parse_itinerary_facts(self, facts: dict) -> None:
        self.phone = facts.get("PhoneNumber")
        rating = facts.get("Rating")
        self.rating = Rating(rating.get("Rating"), rating.get("TotalNo"), rating.get("Provider")) if rating else None
        self.price = facts.get("PriceInfo")
        self.categories = facts.get("Categories") or []

    def _parse_reviews(self, revdata: dict) -> None:
        values = (revdata.get("Reviews") or {}).get("Values") or ()
        self.reviews = [Review.from_json(review) for review in values]
