"""
Backing API Client
==================

httpx client for the ticket/resource persistence API with:
- Circuit breaker to prevent cascade failures
- Exponential backoff retry for idempotent reads
- Response envelope unwrapping (``{"success", "message", "data"}``)
- Error translation into the core exception taxonomy
- Malformed payload detection for the gateway mappers
"""

import asyncio
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional

import httpx

from caseflow.core import BackingApiException, TransientFetchException
from caseflow.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for preventing cascade failures.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request; others are
      rejected until it succeeds (CLOSED) or fails (OPEN again)
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None
        self._trial_in_flight = False

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if self._clock() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        state = self.state
        if state == CircuitState.CLOSED:
            return True
        if state == CircuitState.HALF_OPEN and not self._trial_in_flight:
            self._trial_in_flight = True
            return True
        return False

    def release_trial(self) -> None:
        self._trial_in_flight = False

    def record_success(self) -> None:
        self._failure_count = 0
        self._trial_in_flight = False
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._trial_in_flight = False
        self._last_failure_time = self._clock()

        if self._failure_count >= self.failure_threshold and self._state != CircuitState.OPEN:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


class ApiClient:
    """
    Thin async wrapper over httpx for the backing API.

    Every method returns the envelope's ``data`` payload (or the raw body
    when the response is not enveloped).
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        max_retries: int = 2,
        circuit_breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_base_delay: float = 0.5
    ):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._circuit_breaker = circuit_breaker or CircuitBreaker()

    @classmethod
    def from_settings(cls, settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "ApiClient":
        return cls(
            base_url=settings.api_base_url,
            token=settings.api_token,
            timeout=settings.api_timeout_seconds,
            max_retries=settings.api_max_retries,
            circuit_breaker=CircuitBreaker(
                failure_threshold=settings.circuit_failure_threshold,
                recovery_timeout=settings.circuit_recovery_seconds,
            ),
            transport=transport,
        )

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._request("GET", path, params=params, retries=self._max_retries)

    async def post(self, path: str, json: Optional[Any] = None) -> Any:
        return await self._request("POST", path, json=json)

    async def put(self, path: str, json: Optional[Any] = None) -> Any:
        return await self._request("PUT", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self._request("DELETE", path)

    async def _request(self, method: str, path: str, retries: int = 0, **kwargs: Any) -> Any:
        breaker = self._circuit_breaker
        trial = breaker.state == CircuitState.HALF_OPEN
        if not breaker.allow_request():
            logger.warning("Circuit breaker open, rejecting request", extra={"path": path})
            raise TransientFetchException(
                "Service temporarily unavailable. Please try again shortly.",
                {"path": path, "circuit": CircuitState.OPEN}
            )

        try:
            return await self._send(method, path, retries, **kwargs)
        finally:
            # A trial that ended without an outcome (cancelled, unexpected
            # error) must not block the next one
            if trial:
                breaker.release_trial()

    async def _send(self, method: str, path: str, retries: int, **kwargs: Any) -> Any:
        last_error: Optional[TransientFetchException] = None
        for attempt in range(retries + 1):
            try:
                with log_latency(logger, "backing_request", method=method, path=path):
                    response = await self._client.request(method, path, **kwargs)
            except httpx.TransportError as e:
                last_error = TransientFetchException(
                    f"Could not reach server: {e.__class__.__name__}",
                    {"path": path, "attempt": attempt + 1}
                )
                logger.warning(
                    "Backing request failed",
                    extra={"method": method, "path": path, "attempt": attempt + 1, "error": str(e)}
                )
            else:
                if response.status_code >= 500 or response.status_code == 429:
                    last_error = TransientFetchException(
                        _message_from(response, f"Server error ({response.status_code})"),
                        {"path": path, "status_code": response.status_code}
                    )
                    logger.warning(
                        "Backing request returned retryable status",
                        extra={"method": method, "path": path, "status_code": response.status_code}
                    )
                else:
                    self._circuit_breaker.record_success()
                    return _unwrap(response)

            if attempt < retries:
                await asyncio.sleep(self._retry_base_delay * (2 ** attempt))

        self._circuit_breaker.record_failure()
        raise last_error

    async def close(self) -> None:
        await self._client.aclose()


def _message_from(response: httpx.Response, default: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return default


def _unwrap(response: httpx.Response) -> Any:
    """Translate a non-retryable response into data or BackingApiException."""
    if response.status_code >= 400:
        raise BackingApiException(
            _message_from(response, f"Request rejected ({response.status_code})"),
            status_code=response.status_code,
            details={"path": response.request.url.path}
        )

    if response.status_code == 204 or not response.content:
        return None

    try:
        body = response.json()
    except ValueError:
        raise BackingApiException("Malformed response body", status_code=response.status_code)

    if isinstance(body, dict) and "success" in body:
        if not body["success"]:
            raise BackingApiException(
                body.get("message") or "Request failed",
                status_code=response.status_code
            )
        return body.get("data")
    return body


# Shape errors a mapper hits on a payload missing or mistyping a field
PAYLOAD_ERRORS = (KeyError, TypeError, ValueError, AttributeError)


@contextmanager
def parsing_payload(resource: str) -> Iterator[None]:
    """
    Report a payload that cannot be mapped onto an entity as a
    BackingApiException, so read paths treat it like any other failed
    fetch (stale fallback, error slot, notification).
    """
    try:
        yield
    except PAYLOAD_ERRORS as e:
        logger.error(
            "Malformed backing payload",
            extra={"resource": resource, "error": str(e), "error_type": e.__class__.__name__}
        )
        raise BackingApiException(f"Malformed {resource} payload", details={"error": str(e)}) from e
