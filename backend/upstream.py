"""Clients for the third-party player APIs (Mojang, Hypixel, Urchin).

Each client:
- takes the process Settings (keys) and an optional httpx transport for tests;
- opens a short-lived AsyncClient per call with its own timeout;
- returns the upstream JSON body verbatim, or raises one of the errors in
  errors.py. Nothing is cached or retried.
"""
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from config import Settings
from errors import ConfigurationError, NotFoundError, UpstreamError

logger = logging.getLogger(__name__)

URCHIN_FALLBACK_ERROR = "Urchin service unavailable"


def _describe(exc: Exception) -> str:
    # httpx timeouts often carry an empty message
    return str(exc) or exc.__class__.__name__


def _status_detail(resp: httpx.Response) -> str:
    detail = f"Request failed with status code {resp.status_code}"
    try:
        body = resp.json()
    except ValueError:
        return detail
    if isinstance(body, dict):
        cause = body.get("cause") or body.get("errorMessage") or body.get("error")
        if cause:
            return f"{detail}: {cause}"
    return detail


class UpstreamClient:
    base_url = ""
    timeout = 10.0
    error_label = "Upstream proxy error"

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self.transport = transport

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        """GET `path`; network failures and timeouts become UpstreamError."""
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                return await client.get(url, params=params)
        except httpx.HTTPError as e:
            raise UpstreamError(self.error_label, _describe(e)) from e

    def _json(self, resp: httpx.Response) -> Any:
        if not resp.is_success:
            raise UpstreamError(self.error_label, _status_detail(resp), resp.status_code)
        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamError(self.error_label, f"Invalid JSON from upstream: {e}", resp.status_code) from e


class MojangClient(UpstreamClient):
    """Resolves a username to its canonical UUID and display name."""

    base_url = "https://api.mojang.com"
    timeout = 10.0
    error_label = "Mojang proxy error"

    async def lookup_profile(self, username: str) -> Any:
        resp = await self._get(f"/users/profiles/minecraft/{quote(username, safe='')}")
        # Mojang answers unknown names with 204 (older API) or 404
        if resp.status_code in (204, 404):
            raise NotFoundError()
        return self._json(resp)


class HypixelClient(UpstreamClient):
    base_url = "https://api.hypixel.net"
    timeout = 15.0
    error_label = "Hypixel proxy error"

    async def fetch_player(self, uuid: str) -> Any:
        if not self.settings.hypixel_api_key:
            raise ConfigurationError("HYPIXEL_API_KEY not configured")
        resp = await self._get("/player", params={"key": self.settings.hypixel_api_key, "uuid": uuid})
        return self._json(resp)


@dataclass
class TagLookupResult:
    """Outcome of a best-effort Urchin lookup.

    `data` holds the upstream body when the call worked; otherwise `error` says
    why and `payload` is the fallback shape served to callers.
    """

    username: str
    data: Any = None
    error: str | None = None

    @property
    def fallback_used(self) -> bool:
        return self.error is not None

    @property
    def payload(self) -> Any:
        if self.fallback_used:
            return {"error": URCHIN_FALLBACK_ERROR, "username": self.username}
        return self.data

    def tag_names(self) -> list[str]:
        if self.fallback_used or not isinstance(self.data, dict):
            return []
        tags = self.data.get("tags")
        if not isinstance(tags, list):
            return []
        names = []
        for tag in tags:
            name = tag.get("type") if isinstance(tag, dict) else tag
            if isinstance(name, str) and name:
                names.append(name)
        return names

    def tag_string(self) -> str | None:
        """Tag names joined with ", ", or None when there are none."""
        return ", ".join(self.tag_names()) or None


class UrchinClient(UpstreamClient):
    base_url = "https://urchin.ws"
    timeout = 5.0
    error_label = "Urchin proxy error"

    async def fetch_tags(self, username: str) -> Any:
        if not self.settings.urchin_key:
            raise ConfigurationError("URCHIN_KEY not configured")
        resp = await self._get(
            f"/player/{quote(username, safe='')}",
            params={"key": self.settings.urchin_key, "sources": "MANUAL"},
        )
        return self._json(resp)

    async def lookup_tags(self, username: str) -> TagLookupResult:
        """Like fetch_tags, but failures become a fallback result instead of raising."""
        try:
            data = await self.fetch_tags(username)
        except (ConfigurationError, UpstreamError) as e:
            logger.error(f"Urchin fetch failed for {username}: {str(e)}")
            return TagLookupResult(username=username, error=str(e))
        return TagLookupResult(username=username, data=data)
