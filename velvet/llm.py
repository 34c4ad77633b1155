"""Generative client: HTTP connection to a text/image generation backend.

The agent calls and the orchestrator receive a service object matching the
protocol:

    async def generate_text(self, stage, prompt, *, system=None, schema=None,
                            temperature=None, fast=False) -> str: ...
    async def generate_image(self, stage, prompt, *, aspect_ratio=None,
                             image=None) -> ImageAsset | None: ...

`stage` identifies which agent call is running (e.g. "blueprint",
"verify"). The implementation may use it for logging; the simplest
implementation ignores it.

GeminiClient is the real implementation. It is constructed once with its
credentials and injected wherever generation is needed; nothing in this
module holds a global client. Tests use StubService (tests/helpers.py).

Every failure is raised as a GenerationError tagged with a FailureKind so
callers can branch on the reason instead of parsing messages.
"""

from __future__ import annotations

import base64
import logging
import re
from enum import Enum
from typing import Any, Protocol, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_TEXT_MODEL = "gemini-3-pro-preview"
DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"
DEFAULT_FAST_MODEL = "gemini-3-flash-preview"


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

class FailureKind(str, Enum):
    MISSING_CREDENTIAL = "missing_credential"
    MALFORMED_RESPONSE = "malformed_response"
    EMPTY_ASSET = "empty_asset"
    TIMEOUT = "timeout"
    TRANSPORT = "transport"


class GenerationError(RuntimeError):
    """Raised when a generative call cannot produce a usable result."""

    def __init__(self, kind: FailureKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind


MISSING_KEY_MESSAGE = "API Key missing. Please check your settings."


# ---------------------------------------------------------------------------
# Image payloads
# ---------------------------------------------------------------------------

_DATA_URL = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.*)$", re.DOTALL)


class ImageAsset(BaseModel):
    """Raw image bytes returned by (or sent to) an image call."""

    mime_type: str = "image/png"
    data: bytes

    @property
    def data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"

    @classmethod
    def from_data_url(cls, url: str) -> ImageAsset:
        match = _DATA_URL.match(url)
        if not match:
            raise ValueError("Not a base64 data URL")
        return cls(mime_type=match["mime"], data=base64.b64decode(match["data"]))


# ---------------------------------------------------------------------------
# Structured response decoding
# ---------------------------------------------------------------------------

_FENCE = re.compile(r"```(?:json)?\n?|\n?```")

M = TypeVar("M", bound=BaseModel)


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences the model sometimes wraps JSON in."""
    return _FENCE.sub("", text).strip()


def decode(text: str, model: type[M], *, stage: str = "") -> M:
    """Validate a structured response against `model`.

    Raises GenerationError(MALFORMED_RESPONSE) if the text is not valid JSON
    or does not match the model after fence stripping.
    """
    cleaned = strip_code_fences(text or "")
    try:
        return model.model_validate_json(cleaned)
    except ValidationError as e:
        logger.warning("Malformed %s response: %r", stage or model.__name__, cleaned[:200])
        raise GenerationError(
            FailureKind.MALFORMED_RESPONSE,
            f"Model response for {stage or model.__name__} was not valid "
            f"({e.error_count()} validation error(s))",
        ) from e


# ---------------------------------------------------------------------------
# Protocol: every service implementation must match these signatures
# ---------------------------------------------------------------------------

class GenerativeService(Protocol):
    async def generate_text(
        self,
        stage: str,
        prompt: str,
        *,
        system: str | None = None,
        schema: dict[str, Any] | None = None,
        temperature: float | None = None,
        fast: bool = False,
    ) -> str: ...

    async def generate_image(
        self,
        stage: str,
        prompt: str,
        *,
        aspect_ratio: str | None = None,
        image: ImageAsset | None = None,
    ) -> ImageAsset | None: ...


# ---------------------------------------------------------------------------
# GeminiClient: connects to the Gemini REST API
# ---------------------------------------------------------------------------

class GeminiClient:
    """Async HTTP client for the Gemini ``generateContent`` endpoint.

    POST {base_url}/models/{model}:generateContent
      Request:  {"contents": [...], "systemInstruction"?: ..., "generationConfig"?: ...}
      Response: {"candidates": [{"content": {"parts": [{"text": ...} | {"inlineData": ...}]}}]}

    Args:
        api_key:      Gemini API key. Empty means every call fails fast with
                      MISSING_CREDENTIAL before touching the network.
        base_url:     API root, e.g. "https://generativelanguage.googleapis.com/v1beta".
        text_model:   Model for structured and chat calls.
        image_model:  Model for image generation and editing.
        fast_model:   Model for cheap rewrites (``fast=True``).
        timeout:      HTTP timeout in seconds. Defaults to 120.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        text_model: str = DEFAULT_TEXT_MODEL,
        image_model: str = DEFAULT_IMAGE_MODEL,
        fast_model: str = DEFAULT_FAST_MODEL,
        timeout: float = 120.0,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._text_model = text_model
        self._image_model = image_model
        self._fast_model = fast_model
        self._timeout = timeout

    @property
    def has_credentials(self) -> bool:
        return bool(self._api_key)

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json", "x-goog-api-key": self._api_key}

    def _url(self, model: str) -> str:
        return f"{self._base_url}/models/{model}:generateContent"

    async def _post(self, stage: str, model: str, body: dict[str, Any]) -> dict[str, Any]:
        if not self._api_key:
            raise GenerationError(FailureKind.MISSING_CREDENTIAL, MISSING_KEY_MESSAGE)

        url = self._url(model)
        logger.debug("generate stage=%s model=%s", stage, model)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise GenerationError(
                FailureKind.TRANSPORT, f"Cannot connect to generative service at {self._base_url}"
            ) from e
        except httpx.HTTPStatusError as e:
            raise GenerationError(
                FailureKind.TRANSPORT,
                f"Generative service returned HTTP {e.response.status_code}",
            ) from e
        except httpx.TimeoutException as e:
            raise GenerationError(
                FailureKind.TIMEOUT, f"Generative service timed out after {self._timeout}s"
            ) from e
        except httpx.HTTPError as e:
            raise GenerationError(FailureKind.TRANSPORT, f"Generative service error: {e}") from e

        try:
            return resp.json()
        except ValueError as e:
            raise GenerationError(
                FailureKind.MALFORMED_RESPONSE, "Generative service returned a non-JSON body"
            ) from e

    @staticmethod
    def _parts(data: dict[str, Any]) -> list[dict[str, Any]]:
        candidates = data.get("candidates") or []
        if not candidates:
            return []
        return (candidates[0].get("content") or {}).get("parts") or []

    async def generate_text(
        self,
        stage: str,
        prompt: str,
        *,
        system: str | None = None,
        schema: dict[str, Any] | None = None,
        temperature: float | None = None,
        fast: bool = False,
    ) -> str:
        body: dict[str, Any] = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        if system:
            body["systemInstruction"] = {"parts": [{"text": system}]}
        config: dict[str, Any] = {}
        if schema is not None:
            config["responseMimeType"] = "application/json"
            config["responseSchema"] = schema
        if temperature is not None:
            config["temperature"] = temperature
        if config:
            body["generationConfig"] = config

        data = await self._post(stage, self._fast_model if fast else self._text_model, body)
        text = "".join(p["text"] for p in self._parts(data) if "text" in p)
        logger.debug("generate response stage=%s len=%d", stage, len(text))
        return text

    async def generate_image(
        self,
        stage: str,
        prompt: str,
        *,
        aspect_ratio: str | None = None,
        image: ImageAsset | None = None,
    ) -> ImageAsset | None:
        parts: list[dict[str, Any]] = []
        if image is not None:
            parts.append({
                "inlineData": {
                    "mimeType": image.mime_type,
                    "data": base64.b64encode(image.data).decode("ascii"),
                }
            })
        parts.append({"text": prompt})
        body: dict[str, Any] = {"contents": [{"role": "user", "parts": parts}]}
        if aspect_ratio:
            body["generationConfig"] = {"imageConfig": {"aspectRatio": aspect_ratio}}

        data = await self._post(stage, self._image_model, body)
        for part in self._parts(data):
            inline = part.get("inlineData") or part.get("inline_data")
            if inline and inline.get("data"):
                return ImageAsset(
                    mime_type=inline.get("mimeType") or inline.get("mime_type") or "image/png",
                    data=base64.b64decode(inline["data"]),
                )
        logger.warning("Image call stage=%s returned no image parts", stage)
        return None
