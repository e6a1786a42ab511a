"""Shared plumbing for the phase agents.

Every agent follows the same shape: render a prompt, build a request for the
right model tier, invoke it through the ``RetryingInvoker`` with a validator,
parse the response into a typed model and report token usage.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel

from focusgroup.config.settings import ModelSettings
from focusgroup.llm.parsing import parse_structured_response
from focusgroup.llm.service import ContentPart, GenerationRequest, GenerationResponse, UsageMetadata
from focusgroup.llm.usage import ModelTier
from focusgroup.prompt_templates import DEFAULT_ENVIRONMENT, render_prompt

if TYPE_CHECKING:
    from jinja2 import Environment

    from focusgroup.llm.invoker import RetryingInvoker
    from focusgroup.llm.service import GenerationService
    from focusgroup.models import ProductInput

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

UsageCallback = Callable[[UsageMetadata | None, ModelTier], None]


@dataclass
class AgentDeps:
    """Everything an agent needs to talk to the generation backend."""

    service: GenerationService
    invoker: RetryingInvoker
    models: ModelSettings = field(default_factory=ModelSettings)
    prompts: Environment = field(default_factory=lambda: DEFAULT_ENVIRONMENT)
    on_usage: UsageCallback | None = None

    def model_for(self, tier: ModelTier) -> str:
        return self.models.pro if tier is ModelTier.PRO else self.models.flash

    def report_usage(self, response: GenerationResponse, tier: ModelTier) -> None:
        if self.on_usage is not None:
            self.on_usage(response.usage, tier)

    def render(self, template_name: str, **context: Any) -> str:
        return render_prompt(template_name, env=self.prompts, **context)


def build_contents(prompt: str, product: ProductInput | None = None) -> tuple[ContentPart, ...]:
    """Text prompt, preceded by the product image when one was supplied."""
    parts: list[ContentPart] = []
    if product is not None and product.has_image:
        parts.append(ContentPart.from_bytes(product.product_image, product.image_mime_type))
    parts.append(ContentPart.from_text(prompt))
    return tuple(parts)


def parse_model(text: str | None, schema: type[M], context: str) -> M:
    """Parse ``text`` and validate it against ``schema``.

    Raises:
        ResponseParseError: when no JSON can be recovered
        pydantic.ValidationError: when the JSON does not fit ``schema``

    """
    return schema.model_validate(parse_structured_response(text, context))


async def run_structured(
    deps: AgentDeps,
    *,
    tier: ModelTier,
    prompt: str,
    schema: type[M],
    context: str,
    product: ProductInput | None = None,
) -> M:
    """Run one structured-output call and return the validated response model.

    The schema doubles as the validator: a response that does not parse into
    ``schema`` counts as a failed attempt and is retried.
    """
    request = GenerationRequest(
        model=deps.model_for(tier),
        contents=build_contents(prompt, product),
        response_schema=schema,
    )

    def _validate(text: str) -> bool:
        parse_model(text, schema, f"{context}Validator")
        return True

    response = await deps.invoker.invoke(deps.service, request, context, validator=_validate)
    deps.report_usage(response, tier)
    return parse_model(response.text, schema, context)
