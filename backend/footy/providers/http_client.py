import asyncio
import logging
import time
from typing import Optional
from urllib.parse import urlparse

import httpx

logger = logging.getLogger("footy.http_client")

# Retryable HTTP status codes
_RETRYABLE_STATUSES = {429, 500, 502, 503, 504}
_NETWORK_ERRORS = (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)


class CircuitOpenError(httpx.HTTPError):
    """Raised instead of calling a provider that keeps failing."""


class CircuitBreaker:
    """Opens after consecutive failures; half-opens after the recovery timeout."""

    def __init__(self, failure_threshold: int = 3, recovery_timeout: float = 120.0):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.last_failure_time: Optional[float] = None
        self.is_open = False

    def record_success(self) -> None:
        self.failure_count = 0
        self.is_open = False

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.monotonic()
        if self.failure_count >= self.failure_threshold and not self.is_open:
            self.is_open = True
            logger.warning("Circuit breaker OPEN after %d failures", self.failure_count)

    def can_attempt(self) -> bool:
        if not self.is_open:
            return True
        if self.last_failure_time is not None and (
            time.monotonic() - self.last_failure_time > self.recovery_timeout
        ):
            logger.info("Circuit breaker half-open, allowing retry")
            return True
        return False


def _parse_retry_after(response: httpx.Response) -> Optional[float]:
    """Extract wait time from Retry-After style headers."""
    for header in ("retry-after", "x-ratelimit-retry-after"):
        value = response.headers.get(header)
        if value is None:
            continue
        try:
            return float(value)
        except (ValueError, TypeError):
            continue
    return None


def _safe_url(url: str) -> str:
    """Strip query params for logging."""
    parsed = urlparse(str(url))
    return f"{parsed.scheme}://{parsed.netloc}{parsed.path}"


class ResilientClient:
    """httpx.AsyncClient wrapper with bounded retries, backoff and a circuit breaker.

    Every attempt is bounded by ``timeout``; the whole call by
    ``(max_retries + 1)`` attempts plus capped backoff sleeps.
    """

    def __init__(
        self,
        name: str,
        timeout: float = 15.0,
        max_retries: int = 2,
        base_delay: float = 2.0,
        max_delay: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._name = name
        self._max_retries = max(0, max_retries)
        self._base_delay = base_delay
        self._max_delay = max_delay
        self.circuit = CircuitBreaker()

    async def _backoff(self, attempt: int, response: httpx.Response | None = None) -> None:
        delay = _parse_retry_after(response) if response is not None else None
        if delay is None:
            delay = self._base_delay * (2 ** attempt)
        await asyncio.sleep(min(delay, self._max_delay))

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Execute a request; returns the last response once retries are exhausted.

        Raises the last network error when no attempt produced a response.
        """
        if not self.circuit.can_attempt():
            raise CircuitOpenError(f"[{self._name}] circuit open, skipping {_safe_url(url)}")

        attempts = self._max_retries + 1
        last_exc: Optional[Exception] = None
        last_resp: Optional[httpx.Response] = None

        for attempt in range(attempts):
            try:
                resp = await self._client.request(method, url, **kwargs)
            except _NETWORK_ERRORS as exc:
                last_exc = exc
                logger.warning(
                    "[%s] Network error on %s %s (attempt %d/%d): %s",
                    self._name, method, _safe_url(url), attempt + 1, attempts, exc,
                )
                if attempt < self._max_retries:
                    await self._backoff(attempt)
                continue

            if resp.status_code not in _RETRYABLE_STATUSES:
                self.circuit.record_success()
                return resp

            last_resp = resp
            logger.warning(
                "[%s] HTTP %d on %s %s (attempt %d/%d)",
                self._name, resp.status_code, method, _safe_url(url), attempt + 1, attempts,
            )
            if attempt < self._max_retries:
                await self._backoff(attempt, resp)

        self.circuit.record_failure()
        if last_resp is not None:
            logger.error(
                "[%s] All %d attempts failed for %s %s (last status: %d)",
                self._name, attempts, method, _safe_url(url), last_resp.status_code,
            )
            return last_resp

        logger.error(
            "[%s] All %d attempts failed for %s %s: %s",
            self._name, attempts, method, _safe_url(url), last_exc,
        )
        raise last_exc  # type: ignore[misc]

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()
