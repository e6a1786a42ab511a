"""Generation Service contract and its google-genai implementation.

The rest of the package only depends on ``GenerationService``; tests substitute
a scripted stub, production uses ``GeminiGenerationService``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from focusgroup.llm.exceptions import GenerationServiceError
from focusgroup.models import Source
from focusgroup.utils.env import get_google_api_key

if TYPE_CHECKING:
    from pydantic import BaseModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ContentPart:
    """One part of a request: either text or inline binary data."""

    text: str | None = None
    data: bytes | None = None
    mime_type: str | None = None

    @classmethod
    def from_text(cls, text: str) -> ContentPart:
        return cls(text=text)

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str) -> ContentPart:
        return cls(data=data, mime_type=mime_type)


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    model: str
    contents: tuple[ContentPart, ...]
    response_schema: type[BaseModel] | None = None
    web_search: bool = False

    @property
    def prompt_text(self) -> str:
        """Concatenated text parts, mostly useful for logging and tests."""
        return "\n".join(part.text for part in self.contents if part.text)


@dataclass(frozen=True, slots=True)
class UsageMetadata:
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True, slots=True)
class GenerationResponse:
    text: str | None
    usage: UsageMetadata | None = None
    sources: tuple[Source, ...] = field(default_factory=tuple)


@runtime_checkable
class GenerationService(Protocol):
    """Anything that turns a request into a response (or raises)."""

    async def generate(self, request: GenerationRequest) -> GenerationResponse: ...


class GeminiGenerationService:
    """``GenerationService`` backed by the google-genai async client."""

    def __init__(self, client: genai.Client) -> None:
        self._client = client

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        try:
            response = await self._client.aio.models.generate_content(
                model=request.model,
                contents=[_to_genai_part(part) for part in request.contents],
                config=_build_config(request),
            )
        except genai_errors.APIError as exc:
            raise GenerationServiceError(exc.message or str(exc), status=exc.code) from exc

        return GenerationResponse(
            text=response.text,
            usage=_extract_usage(response),
            sources=_extract_sources(response),
        )


def _to_genai_part(part: ContentPart) -> genai_types.Part:
    if part.data is not None and part.mime_type:
        return genai_types.Part.from_bytes(data=part.data, mime_type=part.mime_type)
    return genai_types.Part.from_text(text=part.text or "")


def _build_config(request: GenerationRequest) -> genai_types.GenerateContentConfig | None:
    # Google rejects response schemas together with the search tool.
    if request.web_search:
        return genai_types.GenerateContentConfig(
            tools=[genai_types.Tool(google_search=genai_types.GoogleSearch())],
        )
    if request.response_schema is not None:
        return genai_types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=request.response_schema,
        )
    return None


def _extract_usage(response: genai_types.GenerateContentResponse) -> UsageMetadata | None:
    meta = response.usage_metadata
    if meta is None:
        return None
    return UsageMetadata(
        input_tokens=meta.prompt_token_count or 0,
        output_tokens=meta.candidates_token_count or 0,
        total_tokens=meta.total_token_count or 0,
    )


def _extract_sources(response: genai_types.GenerateContentResponse) -> tuple[Source, ...]:
    candidates = response.candidates or []
    if not candidates:
        return ()
    grounding = candidates[0].grounding_metadata
    chunks = (grounding.grounding_chunks if grounding else None) or []
    sources: list[Source] = []
    for chunk in chunks:
        web = chunk.web
        if web is not None and web.uri:
            sources.append(Source(title=web.title or "Web Source", uri=web.uri))
    return tuple(sources)


def create_generation_service(api_key: str | None = None) -> GeminiGenerationService:
    """Build the default Gemini-backed service.

    Raises:
        ApiKeyNotFoundError: when no key is passed and none is set in the environment

    """
    key = api_key or get_google_api_key()
    logger.debug("Creating Gemini generation client")
    return GeminiGenerationService(genai.Client(api_key=key))
