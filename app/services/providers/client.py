"""Timed, retried calls to a single chat-completions provider."""
from __future__ import annotations

import contextvars
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import httpx
import openai

from app.services.providers.config import ProviderEndpoint

logger = logging.getLogger(__name__)

TIMEOUT = "timeout"
TRANSPORT = "transport"
STATUS = "status"
ENVELOPE = "envelope"
CANCELLED = "cancelled"
CREDENTIALS = "credentials"

RETRYABLE_KINDS = frozenset({TIMEOUT, TRANSPORT, STATUS, ENVELOPE})


class ProviderError(Exception):
    """A provider call that produced no usable text."""

    def __init__(self, kind: str, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            return f"{self.kind} ({self.status_code}): {base}"
        return f"{self.kind}: {base}"


@dataclass
class ProviderResponse:
    text: Optional[str]
    ok: bool
    attempts: int
    error: Optional[ProviderError] = None


class ProviderClient:
    """
    Calls one endpoint at a time with a bounded number of attempts.

    The SDK's own retries are disabled so attempt counting and backoff live
    here. Success is decided at the transport level only: a 2xx response whose
    envelope carries non-empty ``choices[0].message.content``.
    """

    def __init__(
        self,
        *,
        http_client: Optional[httpx.Client] = None,
        retry_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        cancel_poll_interval: float = 0.05,
    ) -> None:
        self._http_client = http_client
        self._retry_delay = retry_delay
        self._sleep = sleep
        self._cancel_poll_interval = cancel_poll_interval

    def call(
        self,
        endpoint: ProviderEndpoint,
        credentials: Optional[str],
        payload: Dict[str, Any],
        *,
        timeout: float,
        max_attempts: int,
        cancel_event: Optional[threading.Event] = None,
    ) -> ProviderResponse:
        if not credentials:
            error = ProviderError(CREDENTIALS, f"no API key configured for {endpoint.name}")
            logger.warning("Skipping provider %s: %s", endpoint.name, error)
            return ProviderResponse(text=None, ok=False, attempts=0, error=error)

        attempts = 0
        last_error: Optional[ProviderError] = None
        for attempt in range(1, max(1, max_attempts) + 1):
            if cancel_event is not None and cancel_event.is_set():
                last_error = ProviderError(CANCELLED, "generation cancelled by caller")
                break
            attempts = attempt
            started = time.monotonic()
            try:
                text = self._attempt(endpoint, credentials, payload, timeout, cancel_event)
            except ProviderError as exc:
                last_error = exc
                logger.warning(
                    "Provider %s attempt %s/%s failed after %.1fs: %s",
                    endpoint.name,
                    attempt,
                    max_attempts,
                    time.monotonic() - started,
                    exc,
                )
                if exc.kind not in RETRYABLE_KINDS or attempt >= max_attempts:
                    break
                if self._wait_before_retry(attempt, cancel_event):
                    last_error = ProviderError(CANCELLED, "generation cancelled by caller")
                    break
                continue

            logger.info(
                "Provider %s answered on attempt %s (%s chars, %.1fs)",
                endpoint.name,
                attempt,
                len(text),
                time.monotonic() - started,
            )
            return ProviderResponse(text=text, ok=True, attempts=attempt)

        return ProviderResponse(text=None, ok=False, attempts=attempts, error=last_error)

    def _wait_before_retry(self, attempt: int, cancel_event: Optional[threading.Event]) -> bool:
        """Sleep ``retry_delay * attempt``; returns True when cancelled while waiting."""
        delay = self._retry_delay * attempt
        if cancel_event is not None:
            return cancel_event.wait(delay)
        if delay > 0:
            self._sleep(delay)
        return False

    def _attempt(
        self,
        endpoint: ProviderEndpoint,
        credentials: str,
        payload: Dict[str, Any],
        timeout: float,
        cancel_event: Optional[threading.Event],
    ) -> str:
        """
        Run one request, giving up on it as soon as ``cancel_event`` is set.

        With a cancel event the request runs on a daemon worker thread. A
        cancelled request is abandoned and its eventual answer discarded; the
        worker itself ends within the request timeout.
        """
        if cancel_event is None:
            return self._request(endpoint, credentials, payload, timeout)

        outcome: Dict[str, Any] = {}

        def _worker() -> None:
            try:
                outcome["text"] = self._request(endpoint, credentials, payload, timeout)
            except ProviderError as exc:
                outcome["error"] = exc

        worker = threading.Thread(
            target=contextvars.copy_context().run,
            args=(_worker,),
            name=f"provider-{endpoint.name}",
            daemon=True,
        )
        worker.start()
        while True:
            worker.join(self._cancel_poll_interval)
            if cancel_event.is_set():
                raise ProviderError(CANCELLED, "generation cancelled during the request")
            if not worker.is_alive():
                break

        if "error" in outcome:
            raise outcome["error"]
        if "text" not in outcome:
            raise ProviderError(TRANSPORT, "request worker ended without a result")
        return outcome["text"]

    def _request(self, endpoint: ProviderEndpoint, credentials: str, payload: Dict[str, Any], timeout: float) -> str:
        try:
            client = openai.OpenAI(
                api_key=credentials,
                base_url=endpoint.base_url,
                max_retries=0,
                timeout=timeout,
                http_client=self._http_client,
            )
        except openai.OpenAIError as exc:
            raise ProviderError(TRANSPORT, f"client setup failed: {exc}") from exc
        try:
            completion = client.chat.completions.create(**payload)
            content = completion.choices[0].message.content
        except openai.APITimeoutError as exc:
            raise ProviderError(TIMEOUT, f"no response within {timeout:.0f}s") from exc
        except openai.APIConnectionError as exc:
            raise ProviderError(TRANSPORT, str(exc)) from exc
        except openai.APIStatusError as exc:
            raise ProviderError(STATUS, _status_message(exc), status_code=exc.status_code) from exc
        except openai.APIError as exc:
            raise ProviderError(ENVELOPE, str(exc)) from exc
        except (AttributeError, IndexError, KeyError, TypeError, ValueError) as exc:
            raise ProviderError(ENVELOPE, f"unexpected response envelope: {exc}") from exc
        except Exception as exc:
            raise ProviderError(TRANSPORT, f"{type(exc).__name__}: {exc}") from exc
        finally:
            if self._http_client is None:
                client.close()

        if not isinstance(content, str) or not content.strip():
            raise ProviderError(ENVELOPE, "response carried no message content")
        return content


def _status_message(exc: openai.APIStatusError) -> str:
    try:
        body = exc.response.text
    except Exception:  # pragma: no cover - body already consumed
        body = ""
    return body[:500] or str(exc)
