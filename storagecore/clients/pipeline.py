"""
Internal request pipeline primitives.

Requests and responses are modeled independently of the underlying HTTP
transport so cross-cutting behavior (retries, signing, logging) can be
implemented as filters. A filter receives the request and a continuation for
the rest of the chain:

    def my_filter(req: StorageRequest, next: Pipeline) -> StorageResponse:
        ...  # inspect or mutate req
        response = next(req)
        ...  # inspect response
        return response

Filters run in list order on the way in, and whatever they do after calling
`next` runs in reverse order on the way out.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Protocol, TypeAlias, TypedDict, cast

import httpx

from ..policies import StorageLocation


class RequestContext(TypedDict, total=False):
    attempt: int
    location: StorageLocation
    timeout_seconds: float


class ResponseContext(TypedDict, total=False):
    elapsed_seconds: float
    http_version: str
    request_id: str
    retry_count: int


@dataclass(slots=True)
class StorageRequest:
    method: str
    uri: str
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: bytes | None = None
    context: RequestContext = field(default_factory=lambda: cast(RequestContext, {}))

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        if not isinstance(self.headers, httpx.Headers):
            self.headers = httpx.Headers(self.headers)


@dataclass(slots=True)
class StorageResponse:
    status_code: int
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    content: bytes = b""
    success: bool = True
    error: Exception | None = None
    context: ResponseContext = field(default_factory=lambda: cast(ResponseContext, {}))

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")


Pipeline: TypeAlias = Callable[[StorageRequest], StorageResponse]


class Filter(Protocol):
    def __call__(self, req: StorageRequest, next: Pipeline) -> StorageResponse: ...


class _Continuation:
    """The rest of a chain, starting at filter `index`."""

    __slots__ = ("_chain", "_index")

    def __init__(self, chain: FilterChain, index: int):
        self._chain = chain
        self._index = index

    def __call__(self, req: StorageRequest) -> StorageResponse:
        return self._chain._dispatch(self._index, req)


class FilterChain:
    """
    An ordered sequence of filters terminating in a transport send.

    The chain is immutable once built and holds no per-request state, so a
    single instance may execute requests from several threads.
    """

    def __init__(self, filters: Sequence[Filter], terminal: Pipeline):
        self._filters: tuple[Filter, ...] = tuple(filters)
        self._terminal = terminal

    @property
    def filters(self) -> tuple[Filter, ...]:
        return self._filters

    def execute(self, req: StorageRequest) -> StorageResponse:
        return self._dispatch(0, req)

    __call__ = execute

    def _dispatch(self, index: int, req: StorageRequest) -> StorageResponse:
        if index >= len(self._filters):
            return self._terminal(req)
        return self._filters[index](req, _Continuation(self, index + 1))


def compose(filters: Sequence[Filter], terminal: Pipeline) -> Pipeline:
    return FilterChain(filters, terminal).execute
