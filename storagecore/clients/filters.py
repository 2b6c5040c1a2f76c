"""
Built-in filters for the request pipeline.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from urllib.parse import urlsplit, urlunsplit

from ..auth import Signer, format_date
from .pipeline import Pipeline, StorageRequest, StorageResponse

logger = logging.getLogger(__name__)

_REDACTED_HEADERS = frozenset({"authorization", "x-ms-copy-source-authorization"})


class SignerFilter:
    """
    Stamps `x-ms-date` and signs the request before passing it on.

    Runs on every pass through the chain, so when it sits inside a retry
    policy each attempt gets a fresh date and a signature over the final URI.
    """

    def __init__(self, signer: Signer, *, clock: Callable[[], float] = time.time):
        self.signer = signer
        self._clock = clock

    def __call__(self, req: StorageRequest, next: Pipeline) -> StorageResponse:
        req.headers["x-ms-date"] = format_date(self._clock())
        self.signer.sign(req)
        return next(req)


def _strip_query(uri: str) -> str:
    parts = urlsplit(uri)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def _safe_headers(headers: object) -> dict[str, str]:
    items = getattr(headers, "items", None)
    if items is None:
        return {}
    return {
        name: ("<redacted>" if name.lower() in _REDACTED_HEADERS else value)
        for name, value in items()
    }


class LoggingFilter:
    """Logs requests and responses at DEBUG with credentials redacted."""

    def __init__(self, log: logging.Logger | None = None):
        self._logger = log or logger

    def __call__(self, req: StorageRequest, next: Pipeline) -> StorageResponse:
        if not self._logger.isEnabledFor(logging.DEBUG):
            return next(req)
        self._logger.debug(
            "-> %s %s headers=%s", req.method, _strip_query(req.uri), _safe_headers(req.headers)
        )
        started = time.monotonic()
        try:
            response = next(req)
        except Exception as e:
            self._logger.debug("!! %s %s: %s", req.method, _strip_query(req.uri), type(e).__name__)
            raise
        self._logger.debug(
            "<- %s %s in %.3fs",
            response.status_code,
            _strip_query(req.uri),
            time.monotonic() - started,
        )
        return response
