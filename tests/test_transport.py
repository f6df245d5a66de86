"""Summary: Tests for the shared JSON-over-HTTP helper.

Importance: Retry and error classification decide how provider failures surface.
Alternatives: Exercise the helper only against live provider APIs.
"""

from __future__ import annotations

import io
import json
import urllib.error
from typing import Any

import pytest

from inboxforge.errors import FolderExistsError, ProviderError, TransientProviderError
from inboxforge.transport import classify_http_error, send_json


class _FakeResponse:
    """Summary: Minimal stand-in for an urlopen response."""

    def __init__(self, body: str) -> None:
        self._body = body.encode("utf-8")

    def read(self) -> bytes:
        return self._body

    def __enter__(self) -> "_FakeResponse":
        return self

    def __exit__(self, *args: Any) -> None:
        return None


def _http_error(status: int, body: str = "") -> urllib.error.HTTPError:
    return urllib.error.HTTPError(
        "https://example.test", status, "error", {}, io.BytesIO(body.encode("utf-8"))
    )


def _scripted_urlopen(outcomes: list[Any], calls: list[Any]) -> Any:
    """Summary: Build an urlopen replacement that replays scripted outcomes."""

    def _urlopen(request: Any, timeout: float = 0) -> _FakeResponse:
        calls.append((request, timeout))
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return _FakeResponse(outcome)

    return _urlopen


def test_send_json_retries_transient_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    """Summary: Verify 503 responses are retried until success.

    Importance: Transient provider outages must not fail a reconciliation pass.
    Alternatives: Fail immediately and rely on the next run.
    """

    calls: list[Any] = []
    outcomes: list[Any] = [_http_error(503), _http_error(503), json.dumps({"ok": True})]
    monkeypatch.setattr("urllib.request.urlopen", _scripted_urlopen(outcomes, calls))
    result = send_json("GET", "https://example.test", max_attempts=3, backoff_multiplier=0)
    assert result == {"ok": True}
    assert len(calls) == 3


def test_send_json_gives_up_after_max_attempts(monkeypatch: pytest.MonkeyPatch) -> None:
    """Summary: Verify retries stop at the configured attempt limit."""

    calls: list[Any] = []
    outcomes: list[Any] = [urllib.error.URLError("down")] * 2
    monkeypatch.setattr("urllib.request.urlopen", _scripted_urlopen(outcomes, calls))
    with pytest.raises(TransientProviderError):
        send_json("GET", "https://example.test", max_attempts=2, backoff_multiplier=0)
    assert len(calls) == 2


def test_send_json_does_not_retry_client_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    """Summary: Verify 4xx responses surface immediately.

    Importance: Retrying bad requests only delays the error.
    Alternatives: Retry every failure.
    """

    calls: list[Any] = []
    outcomes: list[Any] = [_http_error(404, "missing")]
    monkeypatch.setattr("urllib.request.urlopen", _scripted_urlopen(outcomes, calls))
    with pytest.raises(ProviderError) as excinfo:
        send_json("GET", "https://example.test", max_attempts=3, backoff_multiplier=0)
    assert not isinstance(excinfo.value, TransientProviderError)
    assert excinfo.value.status == 404
    assert len(calls) == 1


def test_send_json_sends_token_and_body(monkeypatch: pytest.MonkeyPatch) -> None:
    """Summary: Verify bearer tokens, JSON bodies, and timeouts reach urlopen."""

    calls: list[Any] = []
    monkeypatch.setattr("urllib.request.urlopen", _scripted_urlopen([""], calls))
    result = send_json(
        "POST", "https://example.test", access_token="tok", payload={"name": "Sales"}, timeout=4
    )
    request, timeout = calls[0]
    assert result == {}
    assert timeout == 4
    assert request.get_header("Authorization") == "Bearer tok"
    assert json.loads(request.data.decode("utf-8")) == {"name": "Sales"}


def test_classify_http_error_detects_conflicts() -> None:
    """Summary: Verify conflict answers from both providers map to FolderExistsError.

    Importance: Conflicts mean another writer created the folder, which is success.
    Alternatives: Treat conflicts as failures and retry.
    """

    assert isinstance(classify_http_error(409, ""), FolderExistsError)
    gmail_body = '{"error": {"message": "Label name exists or conflicts"}}'
    assert isinstance(classify_http_error(400, gmail_body), FolderExistsError)
    assert isinstance(classify_http_error(429, ""), TransientProviderError)
    assert isinstance(classify_http_error(500, ""), TransientProviderError)
    assert type(classify_http_error(403, "forbidden")) is ProviderError
