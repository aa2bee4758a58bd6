"""Session bootstrap and the BingMaps facade.

Bing Maps' internal endpoints need the session key and app id the web app
embeds in https://www.bing.com/maps as an inline script:

    var mapControlViewData = {..., "globalConfigs": {"dynamicProperties": {"sessionKey": ..., "appId": ...}}};

BingMaps.instantiate() scrapes them once, then hands out the directions module
and place/tile lookups sharing a single httpx.AsyncClient.
"""

import json
from typing import Iterable

import httpx
from bs4 import BeautifulSoup
from loguru import logger

from . import geometry
from .config import get_config
from .directions import DirectionalQueryBuilder, Directions, Route
from .geometry import GeoPoint
from .places import Place
from .tiles import VectorTile

MAPS_URL = "https://www.bing.com/maps"
VIEW_DATA_PREFIX = "var mapControlViewData"


class SessionUnavailable(RuntimeError):
    """Raised when the session key cannot be scraped from the Bing Maps page."""


def parse_view_data(html: str) -> dict:
    """Extract the mapControlViewData object from the Bing Maps page."""
    soup = BeautifulSoup(html, "html.parser")
    for script in soup.find_all("script", src=False):
        text = (script.string or "").strip()
        if text.startswith(VIEW_DATA_PREFIX):
            try:
                return json.loads(text[text.index("{") : text.rindex("}") + 1])
            except ValueError as e:
                raise SessionUnavailable(f"Malformed mapControlViewData: {e}") from e
    raise SessionUnavailable("mapControlViewData script not found on the Bing Maps page")


def make_client() -> httpx.AsyncClient:
    cfg = get_config()
    headers = {"User-Agent": cfg.user_agent, "Accept-Language": cfg.market}
    return httpx.AsyncClient(timeout=cfg.timeout, headers=headers, follow_redirects=True)


async def _credentials(client: httpx.AsyncClient, api_key: str | None) -> tuple[str, str | None]:
    """Session key and app id, from arguments and config.toml first, scraped from the page otherwise."""
    cfg = get_config()
    session_key = api_key or cfg.session_key
    app_id = cfg.app_id

    if session_key is None or app_id is None:
        logger.debug(f"Session: GET {MAPS_URL}")
        response = await client.get(MAPS_URL)
        if response.status_code != 200:
            if session_key is None:
                raise SessionUnavailable(f"Bing Maps page returned HTTP {response.status_code}")
            logger.warning(f"Bing Maps page returned HTTP {response.status_code}, continuing without app id")
        else:
            view_data = parse_view_data(response.text)
            properties = (view_data.get("globalConfigs") or {}).get("dynamicProperties") or {}
            session_key = session_key or properties.get("sessionKey")
            app_id = app_id or properties.get("appId")

    if not session_key:
        raise SessionUnavailable("No sessionKey in mapControlViewData")
    return session_key, app_id


class BingMaps:
    """Entry point to the Bing Maps endpoints for one scraped session.

    Create with `await BingMaps.instantiate()`; close with `await maps.close()`
    or use as an async context manager.
    """

    geometry = geometry
    DirectionalQueryBuilder = DirectionalQueryBuilder

    def __init__(self, session_key: str, app_id: str | None, client: httpx.AsyncClient):
        self.session_key = session_key
        self.app_id = app_id
        self.client = client
        self.directions = Directions(client, session_key)

    @classmethod
    async def instantiate(cls, api_key: str | None = None, client: httpx.AsyncClient | None = None) -> "BingMaps":
        """Scrape session credentials and return a ready BingMaps.

        An explicit api_key, or session_key in config.toml, is used instead of the scraped key.
        A client created here is closed again if the session cannot be set up; a passed-in client never is.
        """
        owned = client is None
        if client is None:
            client = make_client()
        try:
            session_key, app_id = await _credentials(client, api_key)
        except BaseException:
            if owned:
                await client.aclose()
            raise
        logger.info(f"Session ready (app id {app_id})")
        return cls(session_key, app_id, client)

    async def place(self, query: str) -> Place | None:
        return await Place.from_query(self.client, query)

    async def place_from_filter(self, filter: str) -> Place | None:
        return await Place.from_filter(self.client, filter)

    async def tile(self, x: int, y: int, z: int) -> VectorTile:
        return await VectorTile.get(self.client, x, y, z)

    async def tile_at(self, latitude: float, longitude: float, level: int) -> VectorTile:
        return await VectorTile.at(self.client, latitude, longitude, level)

    async def route(self, waypoints: Iterable[str | GeoPoint], method: str = "recommended") -> list[Route]:
        return await self.directions.from_waypoints(waypoints, method)

    async def close(self) -> None:
        """Close the httpx client."""
        await self.client.aclose()

    async def __aenter__(self) -> "BingMaps":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
