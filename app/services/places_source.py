from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from app.core.contracts import Place
from app.core.errors import PlacesSourceError
from app.core.keying import place_list_key
from app.core.storage import get_place_list, put_place_list
from app.core.time import iso_age_s, utc_now_iso

logger = logging.getLogger(__name__)


def parse_places(rows: list[Any]) -> list[Place]:
    """Validate upstream rows, dropping the ones that are not usable places."""
    out: list[Place] = []
    for i, row in enumerate(rows):
        if not isinstance(row, dict):
            logger.warning("[places_source] row %d is not an object, skipping", i)
            continue
        try:
            out.append(Place.model_validate(row))
        except ValidationError as e:
            logger.warning("[places_source] row %d id=%s invalid: %s", i, row.get("id"), e.error_count())
    return out


class PlacesSource:
    """
    Reads the place list from the EasyTrip API (`GET {base_url}/places`).

    Lists are cached in SQLite for `ttl_s`. When the API is down a stale
    cached list is served; with nothing cached the call fails.
    """

    def __init__(
        self,
        *,
        conn,
        base_url: str,
        user: str = "",
        user_name: str = "",
        timeout_s: float = 15.0,
        ttl_s: int = 3600,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.conn = conn
        self.base_url = base_url.rstrip("/")
        self.user = user
        self.user_name = user_name
        self.timeout_s = timeout_s
        self.ttl_s = ttl_s
        self._transport = transport

    @property
    def url(self) -> str:
        return f"{self.base_url}/places"

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.user:
            headers["X-User"] = self.user
        if self.user_name:
            headers["X-User-Name"] = self.user_name
        return headers

    def _fetch_remote(self) -> list[Any]:
        try:
            with httpx.Client(timeout=self.timeout_s, transport=self._transport) as client:
                resp = client.get(self.url, headers=self._headers())
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "[places_source] http_error status=%d body=%s",
                exc.response.status_code,
                exc.response.text[:300],
            )
            raise PlacesSourceError(f"places API failed: HTTP {exc.response.status_code}") from exc
        except httpx.TimeoutException as exc:
            logger.error("[places_source] timeout url=%s", self.url)
            raise PlacesSourceError("places API timed out") from exc
        except httpx.HTTPError as exc:
            logger.error("[places_source] transport error url=%s: %s", self.url, exc)
            raise PlacesSourceError(f"places API unreachable: {exc}") from exc
        except ValueError as exc:
            raise PlacesSourceError("places API returned invalid JSON") from exc

        if not isinstance(data, list):
            raise PlacesSourceError("places API returned a non-list payload")
        return data

    def fetch_all(self, *, force: bool = False) -> list[Place]:
        key = place_list_key(self.url, self.user)
        cached = get_place_list(self.conn, key)

        if cached and not force:
            fetched_at, rows = cached
            age = iso_age_s(fetched_at)
            if age is not None and age <= self.ttl_s:
                logger.debug("[places_source] cache hit key=%s age_s=%.0f", key[:12], age)
                return parse_places(rows)

        try:
            rows = self._fetch_remote()
        except PlacesSourceError as e:
            if cached:
                logger.warning("[places_source] serving stale list after upstream failure: %s", e)
                return parse_places(cached[1])
            raise

        put_place_list(self.conn, list_key=key, source_url=self.url, fetched_at=utc_now_iso(), items=rows)
        logger.info("[places_source] fetched %d places from %s", len(rows), self.url)
        return parse_places(rows)
