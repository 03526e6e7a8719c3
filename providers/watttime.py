"""WattTime implementation of the sample source boundary."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, List, Optional

import httpx

from models.records import Sample, ensure_utc
from services.errors import AuthenticationError, UpstreamError
from settings import WattTimeCredentials, get_settings

logger = logging.getLogger(__name__)

_AUTH_FAILURE_STATUSES = {401, 403}


class WattTimeClient:
    """Async client for the WattTime v2 ``/data`` endpoint.

    The bearer token is fetched lazily and shared by concurrent callers.
    """

    def __init__(
        self,
        credentials: WattTimeCredentials,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._credentials = credentials
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._token: Optional[str] = credentials.token or None
        self._token_lock = asyncio.Lock()

    async def __aenter__(self) -> "WattTimeClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_samples(
        self, latitude: float, longitude: float, start: datetime, end: datetime
    ) -> List[Sample]:
        token = await self._ensure_token()
        params = {
            "latitude": latitude,
            "longitude": longitude,
            "starttime": _format_time(start),
            "endtime": _format_time(end),
        }
        url = f"{self._credentials.base_url.rstrip('/')}/data"
        logger.debug(
            "Querying WattTime data",
            extra={"latitude": latitude, "longitude": longitude},
        )
        try:
            response = await self._client.get(
                url, params=params, headers={"Authorization": f"Bearer {token}"}
            )
        except httpx.HTTPError as exc:
            logger.warning("WattTime data request failed", extra={"reason": str(exc)})
            raise UpstreamError(f"WattTime data request failed: {exc}") from exc

        if response.status_code in _AUTH_FAILURE_STATUSES:
            self._discard_token(token)
            raise AuthenticationError(
                "WattTime rejected the session token.",
                status_code=response.status_code,
            )
        if not response.is_success:
            logger.warning(
                "WattTime data request returned an error",
                extra={"status_code": response.status_code},
            )
            raise UpstreamError(
                f"WattTime data request failed with status {response.status_code}.",
                status_code=response.status_code,
            )

        samples = _parse_samples(_json_body(response))
        logger.debug("Received WattTime samples", extra={"sample_count": len(samples)})
        return samples

    async def _ensure_token(self) -> str:
        if self._token:
            return self._token
        async with self._token_lock:
            if not self._token:
                self._token = await self._login()
        return self._token

    def _discard_token(self, token: str) -> None:
        # A configured token is kept; only tokens obtained by logging in are renewed.
        if token == self._token and token != self._credentials.token:
            logger.debug("Discarding rejected WattTime session token")
            self._token = None

    async def _login(self) -> str:
        username = self._credentials.username
        password = self._credentials.password
        if not username or not password:
            raise AuthenticationError("WattTime username and password are required.")

        logger.debug("Authenticating with WattTime")
        try:
            response = await self._client.get(
                self._credentials.login_url, auth=(username, password)
            )
        except httpx.HTTPError as exc:
            raise UpstreamError(f"WattTime login request failed: {exc}") from exc

        if response.status_code in _AUTH_FAILURE_STATUSES:
            logger.warning(
                "WattTime rejected credentials",
                extra={"status_code": response.status_code},
            )
            raise AuthenticationError(
                "WattTime rejected the supplied credentials.",
                status_code=response.status_code,
            )
        if not response.is_success:
            raise UpstreamError(
                f"WattTime login failed with status {response.status_code}.",
                status_code=response.status_code,
            )

        payload = _json_body(response)
        token = payload.get("token") if isinstance(payload, dict) else None
        if not isinstance(token, str) or not token:
            raise AuthenticationError("WattTime login response did not include a token.")
        return token


def _format_time(value: datetime) -> str:
    return ensure_utc(value).isoformat(timespec="seconds")


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise UpstreamError("WattTime returned a non-JSON response.") from exc


def _parse_point_time(value: str) -> datetime:
    candidate = value.strip()
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"
    parsed = datetime.fromisoformat(candidate)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _parse_samples(payload: Any) -> List[Sample]:
    if not isinstance(payload, list):
        raise UpstreamError("WattTime returned an unexpected payload.")

    samples: List[Sample] = []
    for position, entry in enumerate(payload):
        try:
            samples.append(
                Sample(
                    point_time=_parse_point_time(entry["point_time"]),
                    value=float(entry["value"]),
                )
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise UpstreamError(
                f"WattTime returned a malformed sample at position {position}."
            ) from exc

    samples.sort(key=lambda sample: sample.point_time)
    return samples


@lru_cache
def build_default_client() -> WattTimeClient:
    """Factory that wires the client from environment settings."""
    settings = get_settings()
    return WattTimeClient(settings.credentials(), timeout=settings.http_timeout)
