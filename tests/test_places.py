"""Tests for place overlay parsing and lookups."""

import json
from datetime import datetime, timezone
from html import escape

import httpx
import pytest

from bing_maps.geometry import GeoPoint
from bing_maps.places import Address, OpenHours, Place, PlaceLookupError, Rating, _data_value

ENTITY = {
    "geometry": {"bounds": [47.61, -122.35, 47.63, -122.34]},
    "routablePoint": {"latitude": 47.6205, "longitude": -122.3493},
    "entity": {
        "title": "Space Needle",
        "id": "YN873x123",
        "imageUrl": "https://example.invalid/thumb.jpg",
        "primaryCategory": "Landmark",
        "website": "https://www.spaceneedle.com",
    },
}
FACTS = {
    "languageCultureName": "en-US",
    "addressFields": {
        "addressLine": "400 Broad St",
        "city": "Seattle",
        "stateMunicipality": "WA",
        "country": "United States",
        "postalCode": "98109",
        "neighborhood": "Lower Queen Anne",
        "formattedAddress": "400 Broad St, Seattle, WA 98109",
    },
    "openHours": [{"day": "Monday", "hoursRanges": [{"start": "10:00", "end": "20:00"}]}],
}
ITINERARY_FACTS = {
    "PhoneNumber": "(206) 905-2100",
    "Rating": {"Rating": 4.6, "TotalNo": 1234, "Provider": "Tripadvisor"},
    "PriceInfo": "$$",
    "Categories": ["Landmark", "Observation deck"],
}
REVDATA = {
    "Reviews": {
        "Values": [
            {
                "Text": "Great view",
                "Rating": {
                    "ReviewRating": 5,
                    "ReviewerName": "sam",
                    "ReviewTimeStamp": "2023-11-15T12:45:26Z",
                    "ProviderName": "Tripadvisor",
                },
                "FullReviewLink": {"Url": "https://example.invalid/review/1"},
            }
        ]
    }
}


def _attr(value) -> str:
    return escape(json.dumps(value), quote=True)


def _overlay_html(*, with_facts=True, with_reviews=True) -> str:
    taskpane = ""
    if with_facts:
        taskpane = (
            f'<div class="overlay-taskpane" data-facts="{_attr(FACTS)}" '
            f'data-itineraryfacts="{_attr(ITINERARY_FACTS)}"></div>'
        )
    reviews = f'<div class="reviews_rct" revdata="{_attr(REVDATA)}"></div>' if with_reviews else ""
    return (
        "<html><body>"
        f'<div class="overlay-container" data-segmenttype="Business" data-entity="{_attr(ENTITY)}">'
        f"{taskpane}{reviews}</div>"
        "</body></html>"
    )


def test_from_response_full_place():
    place = Place.from_response(_overlay_html())
    assert place is not None
    assert place.type == "Business"
    assert place.name == "Space Needle"
    assert place.id == "YN873x123"
    assert place.bounds == [47.61, -122.35, 47.63, -122.34]
    assert place.location == GeoPoint(47.6205, -122.3493)
    assert place.category == "Landmark"
    assert place.website == "https://www.spaceneedle.com"

    assert place.localization_lang == "en-US"
    assert place.address == Address(
        address_line="400 Broad St",
        city="Seattle",
        state_municipality="WA",
        country="United States",
        postal_code="98109",
        neighborhood="Lower Queen Anne",
        formatted_address="400 Broad St, Seattle, WA 98109",
    )
    assert place.open_hours == [OpenHours("Monday", [("10:00", "20:00")])]

    assert place.phone == "(206) 905-2100"
    assert place.rating == Rating(4.6, 1234, "Tripadvisor")
    assert place.price == "$$"
    assert place.categories == ["Landmark", "Observation deck"]

    (review,) = place.reviews
    assert review.text == "Great view"
    assert review.score == 5
    assert review.author == "sam"
    assert review.date == datetime(2023, 11, 15, 12, 45, 26, tzinfo=timezone.utc)
    assert review.link == "https://example.invalid/review/1"


def test_from_response_entity_only():
    place = Place.from_response(_overlay_html(with_facts=False, with_reviews=False))
    assert place.name == "Space Needle"
    assert place.address is None
    assert place.rating is None
    assert place.open_hours == []
    assert place.reviews == []


def test_from_response_error_message():
    assert Place.from_response('<div class="errmsg">No results</div>') is None


def test_itinerary_facts_without_rating():
    place = Place.from_data({"entity": ENTITY, "itineraryfacts": {"PhoneNumber": "555"}})
    assert place.phone == "555"
    assert place.rating is None
    assert place.categories == []


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("true", True),
        ("false", False),
        ("null", None),
        ("42", 42),
        ("4.5", 4.5),
        ("007", "007"),
        ("1.50", "1.50"),
        ("1.0", "1.0"),
        ("-3", -3),
        ("-0", "-0"),
        ("1e3", "1e3"),
        ("inf", "inf"),
        ("nan", "nan"),
        ('{"a": 1}', {"a": 1}),
        ("[1, 2]", [1, 2]),
        ("{not json", "{not json"),
        ("Business", "Business"),
    ],
)
def test_data_value_decoding(raw, expected):
    assert _data_value(raw) == expected


async def test_from_query_requests_overlay(mock_client):
    client = mock_client(httpx.Response(200, text=_overlay_html()))

    place = await Place.from_query(client, "space needle")

    assert place.name == "Space Needle"
    url, kwargs = client.calls[0]
    assert url == "https://www.bing.com/maps/overlaybfpr"
    assert kwargs["params"] == {"q": "space needle", "count": 1}


async def test_from_filter_no_result(mock_client):
    client = mock_client(httpx.Response(200, text='<div class="errmsg">Nothing</div>'))

    assert await Place.from_filter(client, 'ypid:"123"') is None
    assert client.calls[0][1]["params"] == {"filters": 'ypid:"123"', "count": 1}


async def test_lookup_http_error(mock_client):
    client = mock_client(httpx.Response(503, text="busy"))
    with pytest.raises(PlaceLookupError):
        await Place.from_query(client, "anything")
