from __future__ import annotations

import logging

import pytest

from storagecore.cli.logging import RedactingFilter, set_redaction_secret
from storagecore.clients.filters import LoggingFilter
from storagecore.clients.pipeline import FilterChain, StorageRequest, StorageResponse

LOGGER = "storagecore.clients.filters"


def _request() -> StorageRequest:
    return StorageRequest(
        method="GET",
        uri="https://acct.queue.example/q/messages?sig=secret-sas",
        headers={"Authorization": "SharedKey acct:c2lnbmF0dXJl", "x-ms-version": "2017-11-09"},
    )


def test_logging_filter_redacts_credentials(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger=LOGGER)

    chain = FilterChain([LoggingFilter()], lambda req: StorageResponse(200))
    chain.execute(_request())

    text = caplog.text
    assert "-> GET https://acct.queue.example/q/messages" in text
    assert "<- 200" in text
    assert "c2lnbmF0dXJl" not in text
    assert "secret-sas" not in text
    assert "<redacted>" in text


def test_logging_filter_logs_and_reraises_errors(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger=LOGGER)

    def failing(req: StorageRequest) -> StorageResponse:
        raise ConnectionError("reset")

    with pytest.raises(ConnectionError):
        FilterChain([LoggingFilter()], failing).execute(_request())
    assert "!! GET" in caplog.text
    assert "ConnectionError" in caplog.text


def test_logging_filter_is_silent_above_debug(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger=LOGGER)
    FilterChain([LoggingFilter()], lambda req: StorageResponse(204)).execute(_request())
    assert caplog.records == []


def test_redacting_filter_masks_configured_secret() -> None:
    set_redaction_secret("top-secret-key")
    record = logging.LogRecord(
        "storagecore", logging.INFO, __file__, 1, "key=%s", ("top-secret-key",), None
    )
    assert RedactingFilter().filter(record) is True
    assert record.getMessage() == "key=***"
