from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from typing import Any

import requests

"""Streaming chat-completion client.

One POST per row against ``{base_url}/chat/completions`` with ``stream: true``.
The body comes back as server-sent-event lines:

    data: {"choices": [{"delta": {"content": "..."}}]}
    data: [DONE]

Content fragments are concatenated in arrival order and trimmed once the
stream closes. Malformed lines are skipped.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "CompletionClient",
    "CompletionError",
    "AuthError",
    "HttpError",
    "CompletionAborted",
    "assemble_stream",
    "DEFAULT_BASE_URL",
    "DEFAULT_ASSISTANT_ID",
]

DEFAULT_BASE_URL = "https://ai.dragonflygroup.fr/api/v1"
DEFAULT_ASSISTANT_ID = "asst_1f1UeJGMURpenLfrj4Aaykyp"
DEFAULT_TEMPERATURE = 1.0
DEFAULT_TIMEOUT_SECONDS = 120.0

DATA_PREFIX = "data:"
DONE_MARKER = "[DONE]"


class CompletionError(RuntimeError):
    """Base class for completion failures."""


class AuthError(CompletionError):
    """Raised when no bearer credential is available."""


class HttpError(CompletionError):
    """Raised for a non-success HTTP status from the endpoint."""

    def __init__(self, status: int, message: str = "") -> None:
        self.status = status
        self.message = message
        detail = f" {message}" if message else ""
        super().__init__(f"API error: {status}{detail}")


class CompletionAborted(CompletionError):
    """Raised when the caller asked to stop while the stream was being read."""


def _extract_content(payload: Any) -> str | None:
    try:
        choice = payload["choices"][0]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(choice, dict):
        return None
    delta = choice.get("delta")
    if isinstance(delta, dict) and delta.get("content"):
        return str(delta["content"])
    message = choice.get("message")
    if isinstance(message, dict) and message.get("content"):
        return str(message["content"])
    return None


def assemble_stream(
    lines: Iterable[str | bytes],
    should_stop: Callable[[], bool] | None = None,
) -> str:
    """Concatenate the content carried by SSE ``data:`` lines.

    Args:
        lines: Raw body lines (str or bytes)
        should_stop: Polled before each line; returning True raises CompletionAborted

    Returns:
        The assembled text, trimmed of surrounding whitespace
    """
    parts: list[str] = []
    for raw in lines:
        if should_stop is not None and should_stop():
            raise CompletionAborted("stream read aborted")
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        line = raw.strip()
        if not line.startswith(DATA_PREFIX):
            continue
        data = line[len(DATA_PREFIX):].strip()
        if data == DONE_MARKER:
            break
        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            if data:
                logger.debug("skipping unparsable stream line: %s", data[:200])
            continue
        content = _extract_content(payload)
        if content:
            parts.append(content)
    return "".join(parts).strip()


class CompletionClient:
    """HTTP client for the completion endpoint.

    The session is injectable so tests can substitute a mock.
    """

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        assistant_id: str = DEFAULT_ASSISTANT_ID,
        temperature: float = DEFAULT_TEMPERATURE,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.assistant_id = assistant_id
        self.temperature = temperature
        self._timeout_seconds = timeout_seconds
        self._session = session or requests.Session()

    def set_assistant_id(self, assistant_id: str) -> None:
        self.assistant_id = assistant_id

    @staticmethod
    def _auth_headers(credential: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {credential}"}

    def build_request_body(self, prompt: str) -> dict[str, Any]:
        return {
            "messages": [
                {
                    "role": "user",
                    "content": [{"type": "text", "text": prompt}],
                }
            ],
            "assistantId": self.assistant_id,
            "temperature": self.temperature,
            "stream": True,
            "stream_options": {
                "include_usage": True,
                "continuous_usage_stats": False,
            },
        }

    def complete(
        self,
        prompt: str,
        credential: str | None,
        should_stop: Callable[[], bool] | None = None,
    ) -> str:
        """Send one prompt and return the assembled completion text.

        Raises:
            AuthError: no credential
            HttpError: non-success status
            CompletionAborted: should_stop() returned True mid-stream
            CompletionError: transport failure
        """
        if not credential:
            raise AuthError("missing bearer credential")

        url = f"{self.base_url}/chat/completions"
        headers = self._auth_headers(credential)
        headers["Content-Type"] = "application/json"
        try:
            response = self._session.post(
                url,
                headers=headers,
                json=self.build_request_body(prompt),
                stream=True,
                timeout=self._timeout_seconds,
            )
        except requests.RequestException as e:
            raise CompletionError(f"request failed: {e}") from e

        try:
            if not _is_success(response):
                raise HttpError(response.status_code, _error_message(response))
            try:
                return assemble_stream(
                    response.iter_lines(decode_unicode=True),
                    should_stop=should_stop,
                )
            except requests.RequestException as e:
                raise CompletionError(f"stream read failed: {e}") from e
        finally:
            response.close()

    def validate_credential(self, credential: str | None) -> bool:
        """Lightweight authenticated GET; any failure yields False."""
        if not credential:
            return False
        try:
            response = self._session.get(
                f"{self.base_url}/user/assistants",
                headers=self._auth_headers(credential),
                timeout=self._timeout_seconds,
            )
        except requests.RequestException as e:
            logger.warning("credential validation failed: %s", e)
            return False
        return _is_success(response)

    def list_assistants(self, credential: str | None) -> Any:
        """Return the assistants visible to the credential (parsed JSON)."""
        if not credential:
            raise AuthError("missing bearer credential")
        try:
            response = self._session.get(
                f"{self.base_url}/user/assistants",
                headers=self._auth_headers(credential),
                timeout=self._timeout_seconds,
            )
        except requests.RequestException as e:
            raise CompletionError(f"request failed: {e}") from e
        if not _is_success(response):
            raise HttpError(response.status_code, _error_message(response))
        try:
            return response.json()
        except ValueError as e:
            raise CompletionError("assistants response was not valid JSON") from e

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> CompletionClient:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


def _is_success(response: requests.Response) -> bool:
    return 200 <= response.status_code < 300


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return ""
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return ""
