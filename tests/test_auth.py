from __future__ import annotations

import base64
import hashlib
import hmac

import pytest

from storagecore.auth import SharedKeyLiteSigner, SharedKeySigner, format_date
from storagecore.clients.filters import SignerFilter
from storagecore.clients.pipeline import StorageRequest, StorageResponse
from storagecore.config import StorageConfig
from storagecore.exceptions import SigningError

KEY = "c2VjcmV0LWtleQ=="  # base64("secret-key")
DATE = "Mon, 01 Jan 2024 00:00:00 GMT"


def _request(uri: str, method: str = "GET", **headers: str) -> StorageRequest:
    req = StorageRequest(method=method, uri=uri)
    req.headers["x-ms-date"] = DATE
    req.headers["x-ms-version"] = "2017-11-09"
    for name, value in headers.items():
        req.headers[name.replace("_", "-")] = value
    return req


def _expected_signature(text: str) -> str:
    digest = hmac.new(b"secret-key", text.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def test_format_date_is_rfc1123_gmt() -> None:
    assert format_date(0) == "Thu, 01 Jan 1970 00:00:00 GMT"
    assert format_date(1704067200) == DATE


def test_shared_key_string_to_sign() -> None:
    signer = SharedKeySigner("acct", KEY)
    req = _request(
        "https://acct.queue.core.windows.net/myqueue/messages?numofmessages=2&peekonly=true",
        Content_Length="0",
    )

    expected = "\n".join(
        ["GET"]
        + [""] * 11
        + [
            f"x-ms-date:{DATE}",
            "x-ms-version:2017-11-09",
            "/acct/myqueue/messages",
            "numofmessages:2",
            "peekonly:true",
        ]
    )
    assert signer.string_to_sign(req) == expected


def test_shared_key_signs_standard_headers_in_order() -> None:
    signer = SharedKeySigner("acct", KEY)
    req = _request(
        "https://acct.queue.core.windows.net/myqueue/messages",
        method="post",
        Content_Length="42",
        Content_Type="application/xml",
        Content_MD5="abc==",
    )
    lines = signer.string_to_sign(req).split("\n")
    assert lines[0] == "POST"
    assert lines[3] == "42"
    assert lines[4] == "abc=="
    assert lines[5] == "application/xml"


def test_shared_key_canonicalizes_query_parameters() -> None:
    signer = SharedKeySigner("acct", KEY)
    req = _request("https://acct.queue.core.windows.net/?comp=list&B=2&b=1&a=%20x")
    resource = signer.canonicalized_resource(req)
    assert resource == "/acct/\na:x\nb:1,2\ncomp:list"


def test_canonicalized_headers_collapse_whitespace_and_sort() -> None:
    signer = SharedKeySigner("acct", KEY)
    req = _request("https://acct.queue.core.windows.net/q")
    req.headers["X-MS-Meta-Name"] = "a   b"
    req.headers["x-ms-client-request-id"] = "id-1"
    req.headers["Content-Type"] = "text/plain"
    assert signer.canonicalized_headers(req) == "\n".join(
        [
            "x-ms-client-request-id:id-1",
            f"x-ms-date:{DATE}",
            "x-ms-meta-name:a b",
            "x-ms-version:2017-11-09",
        ]
    )


def test_sign_sets_authorization_header() -> None:
    signer = SharedKeySigner("acct", KEY)
    req = _request("https://acct.queue.core.windows.net/myqueue")
    signer.sign(req)
    expected = _expected_signature(signer.string_to_sign(req))
    assert req.headers["Authorization"] == f"SharedKey acct:{expected}"


def test_signing_is_deterministic() -> None:
    signer = SharedKeySigner("acct", KEY)
    first = _request("https://acct.queue.core.windows.net/myqueue")
    second = _request("https://acct.queue.core.windows.net/myqueue")
    signer.sign(first)
    signer.sign(second)
    assert first.headers["Authorization"] == second.headers["Authorization"]


def test_signature_covers_resource_path() -> None:
    signer = SharedKeySigner("acct", KEY)
    a = _request("https://acct.queue.core.windows.net/queue-a")
    b = _request("https://acct.queue.core.windows.net/queue-b")
    signer.sign(a)
    signer.sign(b)
    assert a.headers["Authorization"] != b.headers["Authorization"]


def test_shared_key_lite_string_to_sign() -> None:
    signer = SharedKeyLiteSigner("acct", KEY)
    req = _request(
        "https://acct.queue.core.windows.net/myqueue?comp=metadata&timeout=30",
        method="put",
        Content_Type="text/plain",
    )
    assert signer.string_to_sign(req) == "\n".join(
        [
            "PUT",
            "",
            "text/plain",
            "",
            f"x-ms-date:{DATE}\nx-ms-version:2017-11-09",
            "/acct/myqueue?comp=metadata",
        ]
    )
    signer.sign(req)
    assert req.headers["Authorization"].startswith("SharedKeyLite acct:")


@pytest.mark.parametrize(
    ("account", "key"),
    [("", KEY), ("acct", ""), ("acct", "not base64!!")],
)
def test_signer_fails_closed_on_bad_credentials(account: str, key: str) -> None:
    with pytest.raises(SigningError):
        SharedKeySigner(account, key)


def test_signer_from_config() -> None:
    signer = SharedKeySigner.from_config(StorageConfig(account_name="acct", access_key=KEY))
    assert isinstance(signer, SharedKeySigner)
    assert signer.account_name == "acct"
    assert "secret" not in repr(signer)

    with pytest.raises(SigningError):
        SharedKeySigner.from_config(StorageConfig(account_name="acct"))


def test_signer_filter_stamps_date_then_signs() -> None:
    seen: list[StorageRequest] = []

    def terminal(req: StorageRequest) -> StorageResponse:
        seen.append(req)
        return StorageResponse(200)

    signer = SharedKeySigner("acct", KEY)
    req = StorageRequest(method="GET", uri="https://acct.queue.core.windows.net/q")
    SignerFilter(signer, clock=lambda: 1704067200)(req, terminal)

    assert seen[0].headers["x-ms-date"] == DATE
    expected = _expected_signature(signer.string_to_sign(seen[0]))
    assert seen[0].headers["Authorization"] == f"SharedKey acct:{expected}"


def test_signer_filter_does_not_send_when_signing_fails() -> None:
    class Failing(SharedKeySigner):
        def sign(self, req: StorageRequest) -> None:
            raise SigningError("boom")

    def terminal(req: StorageRequest) -> StorageResponse:
        pytest.fail("request must not be sent unsigned")

    req = StorageRequest(method="GET", uri="https://acct.queue.core.windows.net/q")
    with pytest.raises(SigningError):
        SignerFilter(Failing("acct", KEY))(req, terminal)
