"""Image describers backed by the Google Gemini ``generateContent`` API."""

from __future__ import annotations

import base64
import logging
import os
from typing import Any

import httpx

from .config import DEFAULT_GEMINI_MODEL
from .exceptions import ImageDescriptionError

logger = logging.getLogger(__name__)

API_BASE_URL = "https://generativelanguage.googleapis.com"
API_KEY_ENV = "GEMINI_API_KEY"
MODEL_ENV = "GEMINI_MODEL"
DEFAULT_TIMEOUT_S = 60.0


def build_payload(data: bytes, mime_type: str, prompt: str) -> dict[str, Any]:
    return {
        "contents": [
            {
                "parts": [
                    {
                        "inline_data": {
                            "mime_type": mime_type,
                            "data": base64.b64encode(data).decode("ascii"),
                        }
                    },
                    {"text": prompt},
                ]
            }
        ]
    }


def parse_response(response: httpx.Response) -> str:
    """Extract ``candidates[0].content.parts[0].text`` from a reply."""

    try:
        body = response.json()
    except ValueError as exc:
        if response.is_error:
            raise ImageDescriptionError(f"Gemini API request failed: HTTP {response.status_code}") from exc
        raise ImageDescriptionError(f"failed to parse Gemini response: {exc}") from exc

    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        message = body["error"].get("message") or "unknown error"
        raise ImageDescriptionError(f"Gemini API error: {message}")
    if response.is_error:
        raise ImageDescriptionError(f"Gemini API request failed: HTTP {response.status_code}")

    try:
        text = body["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ImageDescriptionError(
            "unexpected Gemini response structure: missing candidates[0].content.parts[0].text"
        ) from exc
    if not isinstance(text, str):
        raise ImageDescriptionError("unexpected Gemini response structure: text is not a string")
    return text.strip()


def _api_key_from_env() -> str:
    api_key = os.environ.get(API_KEY_ENV)
    if not api_key:
        raise ImageDescriptionError(f"{API_KEY_ENV} environment variable not set")
    return api_key


class _GeminiBase:
    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_GEMINI_MODEL,
        *,
        base_url: str = API_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        if not api_key:
            raise ImageDescriptionError("Gemini API key must not be empty")
        self._api_key = api_key
        self.model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    @property
    def endpoint(self) -> str:
        return f"{self._base_url}/v1beta/models/{self.model}:generateContent"

    @property
    def headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json", "x-goog-api-key": self._api_key}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(api_key='[REDACTED]', model={self.model!r})"


class GeminiDescriber(_GeminiBase):
    """Blocking describer; one HTTP request per image.

    Pass ``client`` to reuse a connection pool (or a mock transport).
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_GEMINI_MODEL,
        *,
        client: httpx.Client | None = None,
        base_url: str = API_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        super().__init__(api_key, model, base_url=base_url, timeout=timeout)
        self._client = client

    @classmethod
    def from_env(cls, *, client: httpx.Client | None = None) -> "GeminiDescriber":
        return cls(_api_key_from_env(), os.environ.get(MODEL_ENV) or DEFAULT_GEMINI_MODEL, client=client)

    def describe(self, data: bytes, mime_type: str, prompt: str) -> str:
        payload = build_payload(data, mime_type, prompt)
        logger.debug("describing %d bytes of %s with %s", len(data), mime_type, self.model)
        try:
            if self._client is not None:
                response = self._client.post(self.endpoint, json=payload, headers=self.headers, timeout=self._timeout)
            else:
                with httpx.Client(timeout=self._timeout) as client:
                    response = client.post(self.endpoint, json=payload, headers=self.headers)
        except httpx.HTTPError as exc:
            raise ImageDescriptionError(f"Gemini API request failed: {exc}") from exc
        return parse_response(response)


class AsyncGeminiDescriber(_GeminiBase):
    """Awaitable describer for :func:`anytomd.convert_bytes_async`."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_GEMINI_MODEL,
        *,
        client: httpx.AsyncClient | None = None,
        base_url: str = API_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        super().__init__(api_key, model, base_url=base_url, timeout=timeout)
        self._client = client

    @classmethod
    def from_env(cls, *, client: httpx.AsyncClient | None = None) -> "AsyncGeminiDescriber":
        return cls(_api_key_from_env(), os.environ.get(MODEL_ENV) or DEFAULT_GEMINI_MODEL, client=client)

    async def describe(self, data: bytes, mime_type: str, prompt: str) -> str:
        payload = build_payload(data, mime_type, prompt)
        logger.debug("describing %d bytes of %s with %s", len(data), mime_type, self.model)
        try:
            if self._client is not None:
                response = await self._client.post(
                    self.endpoint, json=payload, headers=self.headers, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self.endpoint, json=payload, headers=self.headers)
        except httpx.HTTPError as exc:
            raise ImageDescriptionError(f"Gemini API request failed: {exc}") from exc
        return parse_response(response)


__all__ = [
    "API_BASE_URL",
    "AsyncGeminiDescriber",
    "GeminiDescriber",
    "build_payload",
    "parse_response",
]
