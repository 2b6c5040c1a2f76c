"""
Retry policies.

`RetryPolicy` is a filter that wraps the rest of the chain in a retry loop. The
decision to retry is delegated to a predicate so that domain logic ("switch to
the secondary endpoint after N timeouts", "retry 5xx but not 4xx", "cap at 3
attempts") stays out of the loop itself.

The predicate contract:

    def predicate(response: StorageResponse | None, retry_data: RetryContext) -> bool

- `response` is the response of the latest attempt, or None when the attempt
  raised. In that case the exception is available as `retry_data.error`.
- `retry_data` is private to one `call` and survives across its attempts, so
  the predicate may keep counters or timestamps in it. Setting
  `retry_data.uri` redirects the next attempt to another URI.
- Returning True sends the request again. Bounding the number of attempts is
  the predicate's responsibility.
- Clearing `retry_data.error` after a failed attempt does not turn the failure
  into a success: with no response to return, the policy raises `StorageError`.
"""

from __future__ import annotations

import copy
import logging
import random
import time
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any, Protocol
from urllib.parse import urlsplit, urlunsplit

from .clients.pipeline import Pipeline, StorageRequest, StorageResponse
from .exceptions import SigningError, StorageError, TransportError, error_from_response
from .policies import LocationMode, StorageLocation

logger = logging.getLogger(__name__)


class RetryContext(dict[str, Any]):
    """
    Per-call retry state.

    A plain dict with two reserved keys, also exposed as attributes:

    - `uri`: URI to use on the next attempt (None keeps the current one)
    - `error`: exception captured on the most recent attempt
    """

    @property
    def uri(self) -> str | None:
        return self.get("uri")

    @uri.setter
    def uri(self, value: str | None) -> None:
        self["uri"] = value

    @property
    def error(self) -> BaseException | None:
        return self.get("error")

    @error.setter
    def error(self, value: BaseException | None) -> None:
        self["error"] = value


class RetryPredicate(Protocol):
    def __call__(self, response: StorageResponse | None, retry_data: RetryContext) -> bool: ...


def never_retry(response: StorageResponse | None, retry_data: RetryContext) -> bool:
    return False


class RetryPolicy:
    """
    Filter that re-sends a request until `should_retry` returns False.

    Args:
        predicate: Retry decision hook; defaults to `never_retry`
        retry_data: Initial retry state copied into every call. It is
            configuration: each call works on its own deep copy, so state
            written by the predicate never leaks into another call.

    Subclasses may override `should_retry` (and `prepare`) instead of passing a
    predicate.
    """

    # Tells the service that this filter surfaces unsuccessful responses itself.
    handles_unsuccessful = True

    def __init__(
        self,
        predicate: RetryPredicate | None = None,
        *,
        retry_data: Mapping[str, Any] | None = None,
    ):
        self._predicate: RetryPredicate = predicate or never_retry
        self.retry_data = retry_data or {}

    @property
    def retry_data(self) -> Mapping[str, Any]:
        return self._retry_data

    @retry_data.setter
    def retry_data(self, value: Mapping[str, Any]) -> None:
        self._retry_data = MappingProxyType(copy.deepcopy(dict(value)))

    def new_context(self) -> RetryContext:
        return RetryContext(copy.deepcopy(dict(self._retry_data)))

    def prepare(self, req: StorageRequest, retry_data: RetryContext) -> None:
        """Seed the working context before the first attempt."""

    def should_retry(self, response: StorageResponse | None, retry_data: RetryContext) -> bool:
        return self._predicate(response, retry_data)

    def __call__(self, req: StorageRequest, next: Pipeline) -> StorageResponse:
        retry_data = self.new_context()
        self.prepare(req, retry_data)
        attempt = 0
        while True:
            response: StorageResponse | None = None
            # The URI may change between attempts, e.g. to a secondary endpoint.
            if retry_data.uri is not None:
                req.uri = retry_data.uri
            retry_data.error = None
            attempt += 1
            req.context["attempt"] = attempt
            try:
                response = next(req)
            except Exception as e:
                retry_data.error = e
            if not self.should_retry(response, retry_data):
                break
            logger.info("Retrying %s %s (attempt %d)", req.method, req.uri, attempt + 1)

        if response is not None:
            response.context["retry_count"] = attempt - 1
        # Unsuccessful responses that were not raised by the chain.
        if response is not None and not response.success:
            retry_data.error = response.error or error_from_response(
                response.status_code, response=response
            )
        if retry_data.error is not None:
            raise retry_data.error
        if response is None:
            # The predicate cleared a captured error without a response to return.
            raise StorageError(
                f"No response for {req.method} {req.uri}: the retry predicate "
                "discarded the last error"
            )
        return response


# =============================================================================
# Storage retry strategies
# =============================================================================


def _swap_endpoint(uri: str, endpoint: str) -> str:
    target = urlsplit(endpoint)
    parts = urlsplit(uri)
    return urlunsplit((target.scheme, target.netloc, parts.path, parts.query, parts.fragment))


class StorageRetryPolicy(RetryPolicy):
    """
    Retries transport errors, timeouts, 408 and 5xx (except 501 and 505).

    Retry state kept in `retry_data`:

    - `count`: number of retries decided so far
    - `location`: `StorageLocation` of the next attempt
    - `primary_uri` / `secondary_uri`: the request URI on each endpoint
    - `interval`: seconds slept before the next attempt

    In an alternating location mode, attempts switch between the primary and
    secondary endpoint. A 404 from the secondary (replication lag) is retried
    against the primary.

    Args:
        retry_count: Maximum number of retries after the first attempt
        location_mode: Endpoint selection between attempts
        primary_endpoint: Base URL of the primary endpoint
            (needed by `SECONDARY_THEN_PRIMARY`)
        secondary_endpoint: Base URL of the secondary endpoint
            (needed by `PRIMARY_THEN_SECONDARY`)
        sleep: Called with the interval before each retry
    """

    def __init__(
        self,
        *,
        retry_count: int = 3,
        location_mode: LocationMode = LocationMode.PRIMARY_ONLY,
        primary_endpoint: str | None = None,
        secondary_endpoint: str | None = None,
        sleep: Callable[[float], None] = time.sleep,
        retry_data: Mapping[str, Any] | None = None,
    ):
        if retry_count < 0:
            raise ValueError("retry_count must be >= 0")
        if location_mode is LocationMode.PRIMARY_THEN_SECONDARY and not secondary_endpoint:
            raise ValueError("PRIMARY_THEN_SECONDARY requires a secondary_endpoint")
        if location_mode is LocationMode.SECONDARY_THEN_PRIMARY and not primary_endpoint:
            raise ValueError("SECONDARY_THEN_PRIMARY requires a primary_endpoint")
        super().__init__(retry_data=retry_data)
        self.retry_count = retry_count
        self.location_mode = location_mode
        self.primary_endpoint = primary_endpoint
        self.secondary_endpoint = secondary_endpoint
        self._sleep = sleep

    def interval(self, retry_data: RetryContext) -> float:
        return 0.0

    def prepare(self, req: StorageRequest, retry_data: RetryContext) -> None:
        location = req.context.get("location", self.location_mode.initial_location)
        retry_data.setdefault("count", 0)
        retry_data["location"] = location
        if location is StorageLocation.PRIMARY:
            retry_data["primary_uri"] = req.uri
            if self.secondary_endpoint:
                retry_data["secondary_uri"] = _swap_endpoint(req.uri, self.secondary_endpoint)
        else:
            retry_data["secondary_uri"] = req.uri
            if self.primary_endpoint:
                retry_data["primary_uri"] = _swap_endpoint(req.uri, self.primary_endpoint)

    def is_retryable(self, response: StorageResponse | None, retry_data: RetryContext) -> bool:
        if response is None:
            error = retry_data.error
            if isinstance(error, SigningError):
                return False
            return isinstance(error, (TransportError, ConnectionError, TimeoutError))
        if response.success:
            return False
        status = response.status_code
        if status == 404 and retry_data.get("location") is StorageLocation.SECONDARY:
            return self.location_mode.alternates and bool(retry_data.get("primary_uri"))
        if status == 408:
            return True
        return status >= 500 and status not in (501, 505)

    def should_retry(self, response: StorageResponse | None, retry_data: RetryContext) -> bool:
        if not self.is_retryable(response, retry_data):
            return False
        count = retry_data["count"] + 1
        if count > self.retry_count:
            return False
        retry_data["count"] = count

        if self.location_mode.alternates:
            self._switch_location(retry_data)

        delay = self.interval(retry_data)
        retry_data["interval"] = delay
        logger.info(
            "Retry %d/%d in %.2fs (location=%s)",
            count,
            self.retry_count,
            delay,
            retry_data["location"].value,
        )
        if delay > 0:
            self._sleep(delay)
        return True

    def _switch_location(self, retry_data: RetryContext) -> None:
        if retry_data["location"] is StorageLocation.PRIMARY:
            target = StorageLocation.SECONDARY
        else:
            target = StorageLocation.PRIMARY
        uri = retry_data.get(f"{target.value}_uri")
        if uri:
            retry_data["location"] = target
            retry_data.uri = uri


class LinearRetry(StorageRetryPolicy):
    """Waits a fixed interval between attempts."""

    def __init__(self, *, interval: float = 30.0, **kwargs: Any):
        super().__init__(**kwargs)
        self.retry_interval = interval

    def interval(self, retry_data: RetryContext) -> float:
        return self.retry_interval


class ExponentialRetry(StorageRetryPolicy):
    """
    Waits `min_interval + (2 ** (count - 1) - 1) * backoff` seconds, capped at
    `max_interval`, with the backoff term randomized by +/- `jitter`.
    """

    def __init__(
        self,
        *,
        min_interval: float = 3.0,
        backoff: float = 30.0,
        max_interval: float = 90.0,
        jitter: float = 0.2,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self.min_interval = min_interval
        self.backoff = backoff
        self.max_interval = max_interval
        self.jitter = jitter

    def interval(self, retry_data: RetryContext) -> float:
        count = retry_data["count"]
        spread = random.uniform(1 - self.jitter, 1 + self.jitter)
        delay = self.min_interval + (2 ** (count - 1) - 1) * self.backoff * spread
        return min(delay, self.max_interval)
