"""
Request signing.

Signers compute an HMAC-SHA256 signature over a canonical form of a request and
attach it as the `Authorization` header. They hold only immutable credentials,
so one signer may be shared by concurrent requests.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import re
from abc import ABC, abstractmethod
from email.utils import formatdate
from urllib.parse import parse_qs, urlsplit

from .clients.pipeline import StorageRequest
from .config import StorageConfig
from .exceptions import SigningError

_WHITESPACE = re.compile(r"\s+")


def format_date(timestamp: float) -> str:
    """Format a unix timestamp as an RFC 1123 date (`Mon, 01 Jan 2024 00:00:00 GMT`)."""
    return formatdate(timestamp, usegmt=True)


class Signer(ABC):
    """
    Base class for request signers.

    Raises:
        SigningError: If the account name is empty or the key is not valid base64.
    """

    scheme: str = ""

    def __init__(self, account_name: str, access_key: str):
        if not account_name:
            raise SigningError("Cannot sign requests without an account name")
        if not access_key:
            raise SigningError("Cannot sign requests without an access key")
        try:
            self._key = base64.b64decode(access_key, validate=True)
        except (binascii.Error, ValueError) as e:
            raise SigningError("Access key is not valid base64") from e
        self.account_name = account_name

    @classmethod
    def from_config(cls, config: StorageConfig) -> Signer:
        if not config.account_name or config.access_key is None:
            raise SigningError("Config has no account credentials to sign with")
        return cls(config.account_name, config.access_key.get_secret_value())

    def compute_hmac(self, text: str) -> str:
        digest = hmac.new(self._key, text.encode("utf-8"), hashlib.sha256).digest()
        return base64.b64encode(digest).decode("ascii")

    @abstractmethod
    def string_to_sign(self, req: StorageRequest) -> str: ...

    def sign(self, req: StorageRequest) -> None:
        """Add the `Authorization` header to `req` in place."""
        signature = self.compute_hmac(self.string_to_sign(req))
        req.headers["Authorization"] = f"{self.scheme} {self.account_name}:{signature}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(account_name={self.account_name!r})"

    def canonicalized_headers(self, req: StorageRequest) -> str:
        headers = sorted(
            (name.lower(), value)
            for name, value in req.headers.multi_items()
            if name.lower().startswith("x-ms-")
        )
        return "\n".join(_WHITESPACE.sub(" ", f"{name}:{value}") for name, value in headers)

    def _resource_path(self, req: StorageRequest) -> str:
        path = urlsplit(req.uri).path or "/"
        return f"/{self.account_name}{path}"


class SharedKeySigner(Signer):
    """Full shared key scheme covering standard headers and every query parameter."""

    scheme = "SharedKey"

    _SIGNED_HEADERS = (
        "Content-Encoding",
        "Content-Language",
        "Content-Length",
        "Content-MD5",
        "Content-Type",
        "Date",
        "If-Modified-Since",
        "If-Match",
        "If-None-Match",
        "If-Unmodified-Since",
        "Range",
    )

    def string_to_sign(self, req: StorageRequest) -> str:
        values = [req.method.upper()]
        for name in self._SIGNED_HEADERS:
            value = req.headers.get(name, "")
            if name == "Content-Length":
                value = value.lstrip("0")
            values.append(value)
        values.append(self.canonicalized_headers(req))
        values.append(self.canonicalized_resource(req))
        return "\n".join(values)

    def canonicalized_resource(self, req: StorageRequest) -> str:
        lines = [self._resource_path(req)]
        query = parse_qs(urlsplit(req.uri).query, keep_blank_values=True)
        params: dict[str, list[str]] = {}
        for name, values in query.items():
            params.setdefault(name.lower(), []).extend(v.strip() for v in values)
        for name in sorted(params):
            lines.append(f"{name}:{','.join(sorted(params[name]))}")
        return "\n".join(lines)


class SharedKeyLiteSigner(Signer):
    """Lite shared key scheme: fewer signed headers, only the `comp` query parameter."""

    scheme = "SharedKeyLite"

    def string_to_sign(self, req: StorageRequest) -> str:
        return "\n".join(
            [
                req.method.upper(),
                req.headers.get("Content-MD5", ""),
                req.headers.get("Content-Type", ""),
                req.headers.get("Date", ""),
                self.canonicalized_headers(req),
                self.canonicalized_resource(req),
            ]
        )

    def canonicalized_resource(self, req: StorageRequest) -> str:
        resource = self._resource_path(req)
        comp = parse_qs(urlsplit(req.uri).query).get("comp")
        if comp:
            resource += f"?comp={comp[0]}"
        return resource
