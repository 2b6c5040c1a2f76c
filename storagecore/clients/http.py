"""
HTTP transport: the terminal step of every filter chain.

Wraps an `httpx.Client`; connection pooling, DNS and TLS are left to httpx.
"""

from __future__ import annotations

import logging
import time

import httpx

from ..config import StorageConfig
from ..exceptions import StorageTimeoutError, TransportError, error_from_response
from .pipeline import StorageRequest, StorageResponse

logger = logging.getLogger(__name__)


class HTTPTransport:
    """
    Sends a `StorageRequest` and converts the result into a `StorageResponse`.

    httpx timeouts surface as `StorageTimeoutError` and other httpx transport
    failures as `TransportError`, so retry predicates see one error family.
    An `httpx.BaseTransport` (for example `httpx.MockTransport`) may be
    injected for testing.
    """

    def __init__(
        self,
        config: StorageConfig,
        *,
        transport: httpx.BaseTransport | None = None,
    ):
        self._config = config
        self._client = httpx.Client(
            timeout=config.timeout,
            transport=transport,
            follow_redirects=False,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HTTPTransport:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def __call__(self, req: StorageRequest) -> StorageResponse:
        timeout = req.context.get("timeout_seconds", self._config.timeout)
        started = time.monotonic()
        try:
            response = self._client.request(
                req.method,
                req.uri,
                headers=req.headers,
                content=req.body,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            raise StorageTimeoutError(f"Request timed out after {timeout}s: {req.method}") from e
        except httpx.TransportError as e:
            raise TransportError(f"Transport failure: {e}") from e
        return self._to_storage_response(response, elapsed=time.monotonic() - started)

    def _to_storage_response(self, response: httpx.Response, *, elapsed: float) -> StorageResponse:
        result = StorageResponse(
            status_code=response.status_code,
            headers=response.headers,
            content=response.content,
            success=response.is_success,
        )
        result.context["elapsed_seconds"] = elapsed
        result.context["http_version"] = response.http_version
        request_id = response.headers.get("x-ms-request-id")
        if request_id:
            result.context["request_id"] = request_id
        if not result.success:
            result.error = error_from_response(
                response.status_code,
                reason=response.reason_phrase,
                error_code=response.headers.get("x-ms-error-code"),
                response=result,
            )
            logger.debug(
                "Unsuccessful response %s (%s)",
                response.status_code,
                response.headers.get("x-ms-error-code", "-"),
            )
        return result
