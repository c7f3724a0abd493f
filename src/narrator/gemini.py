"""Gemini REST client for speech, translation, style and image generation."""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import logging
from typing import Any, Callable, Optional

import httpx
from fastapi import status

from .config import Settings

logger = logging.getLogger(__name__)

GENERIC_STYLE = (
    "Soft watercolor illustration with muted colors, gentle lighting and a "
    "storybook feel."
)

_RATE_LIMIT_MARKERS = ("429", "quota", "resource_exhausted", "too many requests")


class GeminiError(Exception):
    """Wrap transport or API failures when communicating with Gemini."""

    def __init__(self, status_code: int, detail: Any):
        super().__init__(_detail_message(detail))
        self.status_code = status_code
        self.detail = detail

    @property
    def message(self) -> str:
        return _detail_message(self.detail)

    @property
    def is_rate_limited(self) -> bool:
        return is_rate_limit_failure(self.status_code, self.message)


class MissingCredentialError(GeminiError):
    """Raised before any request when no API key is configured."""

    def __init__(self) -> None:
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            "No Gemini API key configured. Store one via /api/credential "
            "or set GEMINI_API_KEY.",
        )


def is_rate_limit_failure(status_code: Optional[int], message: str) -> bool:
    """Sniff 429s and quota/resource-exhaustion markers."""
    if status_code == status.HTTP_429_TOO_MANY_REQUESTS:
        return True
    lowered = (message or "").lower()
    return any(marker in lowered for marker in _RATE_LIMIT_MARKERS)


def _detail_message(detail: Any) -> str:
    if isinstance(detail, dict):
        message = detail.get("message")
        if message:
            return str(message)
        return json.dumps(detail)
    return str(detail)


class GeminiClient:
    """Client for the ``generateContent`` endpoint of the Gemini API.

    The API key is resolved on every call so that a key stored at runtime
    takes effect without restarting the service.
    """

    _client_lock: asyncio.Lock = asyncio.Lock()
    _client_pool: dict[tuple[str, float], httpx.AsyncClient] = {}

    def __init__(
        self,
        settings: Settings,
        api_key_resolver: Optional[Callable[[], Optional[str]]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings
        self._api_key_resolver = api_key_resolver or self._settings_api_key
        self._http_client = http_client

    def _settings_api_key(self) -> Optional[str]:
        if self._settings.gemini_api_key is None:
            return None
        return self._settings.gemini_api_key.get_secret_value() or None

    def _client_key(self) -> tuple[str, float]:
        return (self._base_url, float(self._settings.request_timeout))

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client

        key = self._client_key()
        client = self.__class__._client_pool.get(key)
        if client is not None:
            return client

        async with self.__class__._client_lock:
            client = self.__class__._client_pool.get(key)
            if client is None:
                timeout = httpx.Timeout(self._settings.request_timeout, connect=10.0)
                limits = httpx.Limits(
                    max_connections=20,
                    max_keepalive_connections=10,
                )
                client = httpx.AsyncClient(
                    timeout=timeout,
                    limits=limits,
                    http2=True,
                )
                self.__class__._client_pool[key] = client
        return client

    @property
    def _base_url(self) -> str:
        """Return the Gemini API base URL without a trailing slash."""

        return str(self._settings.gemini_base_url).rstrip("/")

    def _headers(self) -> dict[str, str]:
        api_key = self._api_key_resolver()
        if not api_key:
            raise MissingCredentialError()
        return {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def generate_content(self, model: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST ``payload`` to ``models/{model}:generateContent``."""

        headers = self._headers()
        client = await self._get_http_client()
        url = f"{self._base_url}/models/{model}:generateContent"
        try:
            response = await client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            raise GeminiError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

        if response.status_code >= 400:
            detail = self._extract_error_detail(response.content)
            raise GeminiError(response.status_code, detail)

        try:
            return response.json()
        except ValueError as exc:  # pragma: no cover - unexpected payload
            raise GeminiError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

    async def synthesize_speech(self, text: str, voice: str, model: str) -> bytes:
        """Return raw 16-bit mono PCM for ``text`` spoken by ``voice``."""

        payload = {
            "contents": [{"parts": [{"text": text}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {
                        "prebuiltVoiceConfig": {"voiceName": voice},
                    },
                },
            },
        }
        body = await self.generate_content(model, payload)
        inline = self._first_inline_data(body)
        if inline is None or not inline.get("data"):
            raise GeminiError(
                status.HTTP_502_BAD_GATEWAY, "No audio data returned from Gemini API"
            )
        try:
            return base64.b64decode(inline["data"])
        except (binascii.Error, ValueError) as exc:
            raise GeminiError(
                status.HTTP_502_BAD_GATEWAY, f"Malformed audio payload: {exc}"
            ) from exc

    async def translate_text(self, text: str, target_language: str) -> str:
        """Translate ``text``; on any failure the original text is returned."""

        prompt = (
            f"Translate the following text into {target_language}. Do not include "
            "any explanations, prologue, or epilogue, just return the translated "
            f'text:\n\n"{text}"'
        )
        try:
            body = await self.generate_content(
                self._settings.translation_model,
                {"contents": [{"parts": [{"text": prompt}]}]},
            )
            translated = self._first_text(body).strip()
        except Exception:
            logger.exception("Translation to %s failed", target_language)
            return text
        return translated or text

    async def describe_style(self, excerpt: str) -> str:
        """Describe an illustration style for ``excerpt`` or fall back to a generic one."""

        prompt = (
            "Read the following excerpt and describe, in one or two sentences, a "
            "consistent visual art style for illustrating it. Return only the "
            f"style description.\n\n{excerpt}"
        )
        try:
            body = await self.generate_content(
                self._settings.style_model,
                {"contents": [{"parts": [{"text": prompt}]}]},
            )
            style = self._first_text(body).strip()
        except Exception:
            logger.exception("Style description failed, using generic style")
            return GENERIC_STYLE
        return style or GENERIC_STYLE

    async def generate_image(self, style: str, scene: str) -> str:
        """Generate one illustration and return it as a ``data:`` URL."""

        prompt = f"Illustrate this scene in the following style: {style}\n\nScene: {scene}"
        body = await self.generate_content(
            self._settings.image_model,
            {
                "contents": [{"parts": [{"text": prompt}]}],
                "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
            },
        )
        for part in self._parts(body):
            inline = part.get("inlineData") or part.get("inline_data")
            if inline and inline.get("data"):
                mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
                return f"data:{mime_type};base64,{inline['data']}"
        raise GeminiError(
            status.HTTP_502_BAD_GATEWAY, "No image data returned from Gemini API"
        )

    async def aclose(self) -> None:
        await self.__class__.aclose_shared()

    @classmethod
    async def aclose_shared(cls) -> None:
        async with cls._client_lock:
            clients = list(cls._client_pool.values())
            cls._client_pool.clear()
        for client in clients:
            try:
                await client.aclose()
            except Exception as exc:  # pragma: no cover
                logger.debug("Failed to close Gemini HTTP client: %s", exc)

    @staticmethod
    def _parts(body: dict[str, Any]) -> list[dict[str, Any]]:
        candidates = body.get("candidates") or []
        if not candidates:
            return []
        content = candidates[0].get("content") or {}
        return content.get("parts") or []

    def _first_inline_data(self, body: dict[str, Any]) -> Optional[dict[str, Any]]:
        parts = self._parts(body)
        if not parts:
            return None
        return parts[0].get("inlineData") or parts[0].get("inline_data")

    def _first_text(self, body: dict[str, Any]) -> str:
        return "".join(part.get("text", "") for part in self._parts(body))

    @staticmethod
    def _extract_error_detail(raw: bytes) -> Any:
        if not raw:
            return "Gemini returned an empty error response."
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            text = raw.decode("utf-8", errors="ignore")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            return text
        if isinstance(payload, dict):
            return payload.get("error") or payload
        return payload


__all__ = [
    "GENERIC_STYLE",
    "GeminiClient",
    "GeminiError",
    "MissingCredentialError",
    "is_rate_limit_failure",
]
