from __future__ import annotations

import pytest

from storagecore.clients.pipeline import FilterChain, StorageRequest, StorageResponse
from storagecore.exceptions import (
    NotFoundError,
    ServerError,
    StorageTimeoutError,
    TransportError,
    error_from_response,
)
from storagecore.policies import LocationMode, StorageLocation
from storagecore.retry import ExponentialRetry, LinearRetry, StorageRetryPolicy

PRIMARY_ENDPOINT = "https://acct.queue.example"
SECONDARY_ENDPOINT = "https://acct-secondary.queue.example"


def _response(status: int) -> StorageResponse:
    if 200 <= status < 300:
        return StorageResponse(status)
    response = StorageResponse(status, success=False)
    response.error = error_from_response(status, response=response)
    return response


class Scripted:
    def __init__(self, *outcomes: int | Exception):
        self._outcomes = list(outcomes)
        self.uris: list[str] = []

    def __call__(self, req: StorageRequest) -> StorageResponse:
        self.uris.append(req.uri)
        outcome = self._outcomes.pop(0) if len(self._outcomes) > 1 else self._outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return _response(outcome)


def _request(location: StorageLocation = StorageLocation.PRIMARY) -> StorageRequest:
    endpoint = PRIMARY_ENDPOINT if location is StorageLocation.PRIMARY else SECONDARY_ENDPOINT
    req = StorageRequest(method="GET", uri=f"{endpoint}/q/messages?peekonly=true")
    req.context["location"] = location
    return req


def test_linear_retry_stops_after_retry_count() -> None:
    sleeps: list[float] = []
    transport = Scripted(500)
    policy = LinearRetry(interval=2.5, retry_count=2, sleep=sleeps.append)

    with pytest.raises(ServerError):
        FilterChain([policy], transport).execute(_request())

    assert len(transport.uris) == 3
    assert sleeps == [2.5, 2.5]


def test_retry_succeeds_after_server_busy() -> None:
    transport = Scripted(503, 200)
    policy = LinearRetry(interval=0, sleep=lambda _: pytest.fail("should not sleep"))

    response = FilterChain([policy], transport).execute(_request())

    assert response.status_code == 200
    assert response.context["retry_count"] == 1


@pytest.mark.parametrize("status", [400, 403, 404, 409, 501, 505])
def test_non_retryable_statuses_fail_immediately(status: int) -> None:
    transport = Scripted(status)
    policy = LinearRetry(interval=0, retry_count=5)

    with pytest.raises(Exception) as exc_info:
        FilterChain([policy], transport).execute(_request())

    assert len(transport.uris) == 1
    assert getattr(exc_info.value, "status_code", None) == status


@pytest.mark.parametrize(
    "error", [TransportError("reset"), StorageTimeoutError("slow"), ConnectionError("refused")]
)
def test_transport_errors_are_retried(error: Exception) -> None:
    transport = Scripted(error, 200)
    policy = LinearRetry(interval=0)

    response = FilterChain([policy], transport).execute(_request())

    assert response.status_code == 200
    assert len(transport.uris) == 2


def test_request_timeout_status_is_retried() -> None:
    transport = Scripted(408, 201)
    response = FilterChain([LinearRetry(interval=0)], transport).execute(_request())
    assert response.status_code == 201


def test_unknown_exceptions_are_not_retried() -> None:
    transport = Scripted(ValueError("bug"))
    with pytest.raises(ValueError):
        FilterChain([LinearRetry(interval=0)], transport).execute(_request())
    assert len(transport.uris) == 1


def test_exponential_intervals_grow_and_are_capped() -> None:
    sleeps: list[float] = []
    policy = ExponentialRetry(
        min_interval=1.0,
        backoff=2.0,
        max_interval=5.0,
        jitter=0.0,
        retry_count=3,
        sleep=sleeps.append,
    )

    with pytest.raises(ServerError):
        FilterChain([policy], Scripted(500)).execute(_request())

    assert sleeps == [1.0, 3.0, 5.0]


def test_exponential_jitter_stays_within_bounds() -> None:
    sleeps: list[float] = []
    policy = ExponentialRetry(
        min_interval=0.0, backoff=10.0, max_interval=100.0, jitter=0.2, sleep=sleeps.append
    )

    with pytest.raises(ServerError):
        FilterChain([policy], Scripted(500)).execute(_request())

    # The first retry has a zero interval and does not sleep.
    assert len(sleeps) == 2
    assert 8.0 <= sleeps[0] <= 12.0
    assert 24.0 <= sleeps[1] <= 36.0


def test_primary_only_never_switches_endpoint() -> None:
    transport = Scripted(500, 500, 200)
    policy = LinearRetry(interval=0, secondary_endpoint=SECONDARY_ENDPOINT)

    FilterChain([policy], transport).execute(_request())

    assert all(uri.startswith(PRIMARY_ENDPOINT) for uri in transport.uris)


def test_primary_then_secondary_alternates_endpoints() -> None:
    transport = Scripted(500, 500, 200)
    policy = LinearRetry(
        interval=0,
        location_mode=LocationMode.PRIMARY_THEN_SECONDARY,
        secondary_endpoint=SECONDARY_ENDPOINT,
    )

    FilterChain([policy], transport).execute(_request())

    assert transport.uris == [
        f"{PRIMARY_ENDPOINT}/q/messages?peekonly=true",
        f"{SECONDARY_ENDPOINT}/q/messages?peekonly=true",
        f"{PRIMARY_ENDPOINT}/q/messages?peekonly=true",
    ]


def test_secondary_not_found_is_retried_on_primary() -> None:
    transport = Scripted(404, 200)
    policy = LinearRetry(
        interval=0,
        location_mode=LocationMode.SECONDARY_THEN_PRIMARY,
        primary_endpoint=PRIMARY_ENDPOINT,
    )

    response = FilterChain([policy], transport).execute(_request(StorageLocation.SECONDARY))

    assert response.status_code == 200
    assert transport.uris[0].startswith(SECONDARY_ENDPOINT)
    assert transport.uris[1].startswith(PRIMARY_ENDPOINT)


def test_primary_not_found_is_final() -> None:
    transport = Scripted(404)
    policy = LinearRetry(
        interval=0,
        location_mode=LocationMode.PRIMARY_THEN_SECONDARY,
        secondary_endpoint=SECONDARY_ENDPOINT,
    )
    with pytest.raises(NotFoundError):
        FilterChain([policy], transport).execute(_request())
    assert len(transport.uris) == 1


def test_retry_count_zero_disables_retries() -> None:
    transport = Scripted(503)
    with pytest.raises(ServerError):
        FilterChain([LinearRetry(interval=0, retry_count=0)], transport).execute(_request())
    assert len(transport.uris) == 1


def test_alternating_modes_require_endpoints() -> None:
    with pytest.raises(ValueError, match="secondary_endpoint"):
        StorageRetryPolicy(location_mode=LocationMode.PRIMARY_THEN_SECONDARY)
    with pytest.raises(ValueError, match="primary_endpoint"):
        StorageRetryPolicy(location_mode=LocationMode.SECONDARY_THEN_PRIMARY)
    with pytest.raises(ValueError):
        StorageRetryPolicy(retry_count=-1)
