"""
backend/footy/providers/api_football.py

Purpose:
    Adapter for API-Football v3 (api-sports.io) fixtures lookup by id, with
    normalized MatchSnapshot output and in-band error detection.

Dependencies:
    - footy.providers.http_client
    - footy.config
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

import httpx
from pydantic import ValidationError

from footy.config import settings
from footy.models.match import MatchSnapshot, Score
from footy.providers.base import ProviderError, ResultProvider
from footy.providers.http_client import ResilientClient
from footy.utils import parse_utc

logger = logging.getLogger("footy.api_football")

PROVIDER_NAME = "api_football"


def _format_errors(errors: Any) -> str:
    """Render API-Football's in-band ``errors`` field; empty string when there are none."""
    if not errors:
        return ""
    if isinstance(errors, dict):
        return ", ".join(f"{key}: {value}" for key, value in errors.items())
    if isinstance(errors, list):
        return ", ".join(str(e) for e in errors)
    return str(errors)


def parse_fixture(item: dict[str, Any]) -> MatchSnapshot:
    """Normalize one ``response[]`` element into a MatchSnapshot."""
    fixture = item.get("fixture") or {}
    status = fixture.get("status") or {}
    goals = item.get("goals") or {}
    teams = item.get("teams") or {}

    score = None
    if goals.get("home") is not None or goals.get("away") is not None:
        score = Score(home=goals.get("home"), away=goals.get("away"))

    kickoff_at = None
    if fixture.get("date"):
        try:
            kickoff_at = parse_utc(fixture["date"])
        except (ValueError, TypeError):
            kickoff_at = None

    return MatchSnapshot(
        match_id=fixture["id"],
        status=str(status.get("short") or ""),
        status_long=str(status.get("long") or ""),
        elapsed=status.get("elapsed"),
        score=score,
        kickoff_at=kickoff_at,
        home_team=str((teams.get("home") or {}).get("name") or ""),
        away_team=str((teams.get("away") or {}).get("name") or ""),
        raw=item,
    )


class ApiFootballProvider(ResultProvider):
    """API-Football provider: fixture snapshots by id."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        client: ResilientClient | None = None,
    ) -> None:
        self._api_key = api_key if api_key is not None else settings.API_FOOTBALL_KEY
        self._base_url = (base_url or settings.API_FOOTBALL_BASE_URL).rstrip("/")
        self._max_ids = max(1, settings.API_FOOTBALL_MAX_IDS_PER_REQUEST)
        self._client = client or ResilientClient(
            PROVIDER_NAME,
            timeout=settings.API_FOOTBALL_TIMEOUT_SECONDS,
            max_retries=settings.API_FOOTBALL_MAX_RETRIES,
            base_delay=settings.API_FOOTBALL_BASE_DELAY_SECONDS,
        )

    def _auth_token(self) -> str:
        api_key = str(self._api_key or "").strip()
        if not api_key:
            raise ProviderError("API_FOOTBALL_KEY is missing.")
        return api_key

    async def _fetch_chunk(self, ids: Sequence[int]) -> list[MatchSnapshot]:
        joined = "-".join(str(i) for i in ids)
        try:
            resp = await self._client.get(
                f"{self._base_url}/fixtures",
                params={"ids": joined},
                headers={"x-apisports-key": self._auth_token()},
            )
        except httpx.HTTPError as exc:
            raise ProviderError(f"API-Football request failed: {exc!r}") from exc

        if resp.status_code >= 400:
            raise ProviderError(
                f"API-Football request failed: {resp.status_code} {resp.text[:200]}"
            )
        try:
            payload = resp.json()
        except ValueError as exc:
            raise ProviderError("API-Football returned a non-JSON body") from exc
        if not isinstance(payload, dict):
            raise ProviderError("API-Football returned an unexpected body")

        errors = _format_errors(payload.get("errors"))
        if errors:
            raise ProviderError(f"API-Football errors: {errors}")

        snapshots: list[MatchSnapshot] = []
        for item in payload.get("response") or []:
            try:
                snapshots.append(parse_fixture(item))
            except (KeyError, TypeError, AttributeError, ValidationError) as exc:
                logger.warning("Dropping malformed API-Football fixture: %s", exc)
        return snapshots

    async def fetch_by_ids(self, match_ids: Sequence[int]) -> list[MatchSnapshot]:
        ids = list(dict.fromkeys(int(i) for i in match_ids))
        if not ids:
            return []

        results: list[MatchSnapshot] = []
        for start in range(0, len(ids), self._max_ids):
            results.extend(await self._fetch_chunk(ids[start:start + self._max_ids]))

        logger.debug("API-Football: %d/%d fixtures returned", len(results), len(ids))
        return results

    async def aclose(self) -> None:
        await self._client.aclose()
