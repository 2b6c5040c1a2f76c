"""
Request-execution core for cloud storage clients.

Provides a composable filter chain around every outbound request, a retry
policy steered by a caller-supplied predicate, and shared key request signing.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .auth import SharedKeyLiteSigner, SharedKeySigner, Signer
from .clients.filters import LoggingFilter, SignerFilter
from .clients.pipeline import (
    Filter,
    FilterChain,
    Pipeline,
    StorageRequest,
    StorageResponse,
    compose,
)
from .config import StorageConfig
from .exceptions import (
    AuthenticationError,
    AuthorizationError,
    BadRequestError,
    ConfigurationError,
    ConflictError,
    NotFoundError,
    PreconditionFailedError,
    ServerBusyError,
    ServerError,
    SigningError,
    StorageError,
    StorageHTTPError,
    StorageTimeoutError,
    TransportError,
)
from .policies import LocationMode, Policies, StorageLocation
from .retry import (
    ExponentialRetry,
    LinearRetry,
    RetryContext,
    RetryPolicy,
    RetryPredicate,
    StorageRetryPolicy,
    never_retry,
)
from .service import FilteredService, SignedService

__all__ = [
    "__version__",
    # Services
    "FilteredService",
    "SignedService",
    "StorageConfig",
    # Pipeline
    "Filter",
    "FilterChain",
    "Pipeline",
    "StorageRequest",
    "StorageResponse",
    "compose",
    "LoggingFilter",
    "SignerFilter",
    # Signing
    "Signer",
    "SharedKeySigner",
    "SharedKeyLiteSigner",
    # Retry
    "RetryContext",
    "RetryPolicy",
    "RetryPredicate",
    "StorageRetryPolicy",
    "ExponentialRetry",
    "LinearRetry",
    "never_retry",
    # Policies
    "LocationMode",
    "Policies",
    "StorageLocation",
    # Exceptions
    "StorageError",
    "ConfigurationError",
    "SigningError",
    "TransportError",
    "StorageTimeoutError",
    "StorageHTTPError",
    "BadRequestError",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "PreconditionFailedError",
    "ServerError",
    "ServerBusyError",
]
