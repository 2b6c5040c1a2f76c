"""
Service composition roots.

`FilteredService` owns the HTTP transport and a list of user filters and
exposes `call`, the single entry point used by per-resource operations.
`SignedService` adds request signing on top.

Example:
    ```python
    from storagecore import ExponentialRetry, SignedService, StorageConfig

    config = StorageConfig(account_name="myaccount", access_key="bXktYWNjZXNzLWtleQ==")
    with SignedService(config) as service:
        service.with_filter(ExponentialRetry(retry_count=3))
        response = service.call("GET", "/myqueue/messages?numofmessages=1")
        print(response.status_code, response.text)
    ```
"""

from __future__ import annotations

import base64
import hashlib
from collections.abc import Iterable, Mapping
from typing import Any, TypedDict

import httpx

from . import __version__
from .auth import SharedKeySigner, Signer
from .clients.filters import LoggingFilter, SignerFilter
from .clients.http import HTTPTransport
from .clients.pipeline import Filter, FilterChain, StorageRequest, StorageResponse
from .config import StorageConfig
from .exceptions import ConfigurationError, error_from_response
from .policies import LocationMode, Policies, StorageLocation


class CallOptions(TypedDict, total=False):
    timeout: float
    location_mode: LocationMode


class FilteredService:
    """
    A service whose requests pass through a configurable filter chain.

    Args:
        config: Account and endpoint settings
        filters: Initial filters, outermost first
        transport: Optional `httpx.BaseTransport` (e.g. `httpx.MockTransport`)
        policies: Cross-cutting policies (endpoint location mode)
        log_requests: Log every attempt at DEBUG (credentials redacted)
    """

    def __init__(
        self,
        config: StorageConfig,
        *,
        filters: Iterable[Filter] | None = None,
        transport: httpx.BaseTransport | None = None,
        policies: Policies | None = None,
        log_requests: bool = False,
    ):
        self.config = config
        self.policies = policies or Policies()
        self.filters: list[Filter] = list(filters or [])
        self._log_requests = log_requests
        self._http = HTTPTransport(config, transport=transport)

    def __enter__(self) -> FilteredService:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP client and release resources."""
        self._http.close()

    def with_filter(self, filter: Filter) -> FilteredService:
        """
        Append a filter (it runs after every filter added before it).

        A filter that decides itself which unsuccessful responses reach the
        caller, like `RetryPolicy` or a wrapper around one, sets
        `handles_unsuccessful = True`. Otherwise `call` raises the error of an
        unsuccessful final response.
        """
        self.filters.append(filter)
        return self

    def pipeline_filters(self) -> list[Filter]:
        """The filters a request passes through, in order, before the transport."""
        filters = list(self.filters)
        if self._log_requests:
            filters.append(LoggingFilter())
        return filters

    def call(
        self,
        method: str,
        uri: str,
        body: bytes | str | None = None,
        headers: Mapping[str, str] | None = None,
        options: CallOptions | None = None,
    ) -> StorageResponse:
        """
        Execute a request through the filter chain.

        Args:
            method: HTTP method
            uri: Absolute URI, or a path resolved against the configured endpoint
            body: Optional request body
            headers: Extra request headers
            options: `timeout` (seconds) and `location_mode` overrides

        Returns:
            The final response. An unsuccessful response is only returned when
            a retry policy in the chain accepted it; otherwise its error is raised.

        Raises:
            StorageError: The error captured on the last attempt.
        """
        req = self.build_request(method, uri, body, headers, options or {})
        response = FilterChain(self.pipeline_filters(), self._http).execute(req)
        if not response.success and not self.has_retry_policy:
            raise response.error or error_from_response(response.status_code, response=response)
        return response

    @property
    def has_retry_policy(self) -> bool:
        return any(getattr(f, "handles_unsuccessful", False) for f in self.filters)

    def build_request(
        self,
        method: str,
        uri: str,
        body: bytes | str | None,
        headers: Mapping[str, str] | None,
        options: CallOptions,
    ) -> StorageRequest:
        location_mode = options.get("location_mode", self.policies.location_mode)
        location = location_mode.initial_location
        if isinstance(body, str):
            body = body.encode("utf-8")

        req = StorageRequest(
            method=method,
            uri=self.resolve_uri(uri, location),
            headers=httpx.Headers(self.default_headers()),
            body=body,
        )
        req.context["location"] = location
        if "timeout" in options:
            req.context["timeout_seconds"] = options["timeout"]
        if body is not None:
            req.headers["Content-Length"] = str(len(body))
            digest = hashlib.md5(body, usedforsecurity=False).digest()
            req.headers["Content-MD5"] = base64.b64encode(digest).decode("ascii")
        elif req.method in ("PUT", "POST", "MERGE"):
            req.headers["Content-Length"] = "0"
        if headers:
            req.headers.update(headers)
        return req

    def default_headers(self) -> dict[str, str]:
        return {
            "x-ms-version": self.config.api_version,
            "User-Agent": self.config.user_agent or f"storagecore/{__version__}",
        }

    def resolve_uri(self, uri: str, location: StorageLocation) -> str:
        if uri.startswith(("http://", "https://")):
            return uri
        if location is StorageLocation.SECONDARY:
            endpoint = self.config.effective_secondary_endpoint
            if endpoint is None:
                raise ConfigurationError("No secondary endpoint configured")
        else:
            endpoint = self.config.primary_endpoint
        return f"{endpoint}/{uri.lstrip('/')}"


class SignedService(FilteredService):
    """
    A service that signs every request.

    The signer filter is installed after all user filters, so it runs last on
    the way in: it signs the final headers and URI, and because it sits inside
    any retry policy it re-signs each attempt with a fresh date.

    Args:
        config: Account and endpoint settings (default: from environment)
        signer: Signer to use; defaults to a `SharedKeySigner` built from
            the config credentials
        anonymous: Send requests unauthenticated. Must be explicit; it cannot
            be combined with `signer`.

    Raises:
        ConfigurationError: If no credentials are available and `anonymous`
            was not requested, or if both `signer` and `anonymous` are given.
    """

    def __init__(
        self,
        config: StorageConfig | None = None,
        *,
        signer: Signer | None = None,
        anonymous: bool = False,
        **kwargs: Any,
    ):
        config = config if config is not None else StorageConfig.from_env()
        if anonymous and signer is not None:
            raise ConfigurationError("A signer cannot be combined with anonymous access")
        if not anonymous and signer is None:
            if not config.has_credentials:
                raise ConfigurationError(
                    "Missing account credentials. Set account_name and access_key, "
                    "pass a signer, or use anonymous=True for public access."
                )
            signer = SharedKeySigner.from_config(config)
        super().__init__(config, **kwargs)
        self.signer = signer

    @property
    def account_name(self) -> str | None:
        return self.signer.account_name if self.signer else self.config.account_name

    @property
    def anonymous(self) -> bool:
        return self.signer is None

    def pipeline_filters(self) -> list[Filter]:
        filters = list(self.filters)
        if self.signer is not None:
            filters.append(SignerFilter(self.signer))
        if self._log_requests:
            filters.append(LoggingFilter())
        return filters
