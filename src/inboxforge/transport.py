"""Summary: JSON-over-HTTP helper shared by mailbox and AI providers.

Importance: Bounds every external call with a timeout and retries transient failures.
Alternatives: Use a provider SDK with built-in retry policies.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from typing import Any

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from inboxforge.errors import FolderExistsError, ProviderError, TransientProviderError

logger = logging.getLogger(__name__)

CONFLICT_MARKERS = ("already exists", "exists or conflicts", "errorfolderexists")


def send_json(
    method: str,
    url: str,
    access_token: str | None = None,
    payload: dict[str, Any] | None = None,
    timeout: float = 10,
    max_attempts: int = 3,
    backoff_multiplier: float = 0.5,
    provider_name: str = "provider",
) -> dict[str, Any]:
    """Summary: Send a JSON request, retrying transient failures with backoff.

    Importance: Network errors, 5xx, and 429 are retried while other 4xx surface immediately.
    Alternatives: Retry inside each provider method by hand.
    """

    retryer = Retrying(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=backoff_multiplier, min=backoff_multiplier, max=8),
        retry=retry_if_exception_type(TransientProviderError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    return retryer(
        _send_once,
        method,
        url,
        access_token,
        payload,
        timeout,
        provider_name,
    )


def _send_once(
    method: str,
    url: str,
    access_token: str | None,
    payload: dict[str, Any] | None,
    timeout: float,
    provider_name: str,
) -> dict[str, Any]:
    headers = {"Accept": "application/json"}
    if access_token:
        headers["Authorization"] = f"Bearer {access_token}"
    data = None
    if payload is not None:
        headers["Content-Type"] = "application/json"
        data = json.dumps(payload).encode("utf-8")
    request = urllib.request.Request(url, data=data, headers=headers, method=method)
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            raw = response.read().decode("utf-8")
    except urllib.error.HTTPError as exc:
        raise classify_http_error(exc.code, _read_error_body(exc), provider_name) from exc
    except (urllib.error.URLError, TimeoutError, ConnectionError) as exc:
        raise TransientProviderError(f"{provider_name} request failed: {exc}") from exc
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ProviderError(f"{provider_name} returned invalid JSON") from exc


def classify_http_error(status: int, body: str, provider_name: str = "provider") -> ProviderError:
    """Summary: Map an HTTP error status to the matching provider error class.

    Importance: Decides whether a failure is retried, treated as a conflict, or surfaced.
    Alternatives: Inspect status codes at every call site.
    """

    message = f"{provider_name} request failed with HTTP {status}: {body or 'no details'}"
    lowered = body.lower()
    if status == 409 or (status == 400 and any(marker in lowered for marker in CONFLICT_MARKERS)):
        return FolderExistsError(message, status=status)
    if status == 429 or status >= 500:
        return TransientProviderError(message, status=status)
    return ProviderError(message, status=status)


def _read_error_body(exc: urllib.error.HTTPError) -> str:
    try:
        return exc.read().decode("utf-8")
    except (OSError, AttributeError):
        return ""
