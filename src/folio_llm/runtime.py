"""Model construction for OpenAI-compatible endpoints.

All collaborator agents share one model and settings pair built here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import cast

from pydantic_ai.models import Model
from pydantic_ai.models.openai import OpenAIChatModel, OpenAIChatModelSettings
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.settings import ModelSettings

from folio_llm.collaborators import (
    LlmGradingContextLinker,
    LlmLanguageDetector,
    LlmModerationGate,
    LlmTranslationProvider,
)
from folio_schemas.config import ModelEndpointConfig


@dataclass(frozen=True, slots=True)
class LlmCollaborators:
    """Collaborators sharing one model."""

    moderation_gate: LlmModerationGate
    language_detector: LlmLanguageDetector
    translation_provider: LlmTranslationProvider
    grading_context_linker: LlmGradingContextLinker


def create_model(
    endpoint: ModelEndpointConfig, api_key: str
) -> tuple[Model, ModelSettings]:
    """Create the model and request settings for an endpoint.

    Args:
        endpoint: Endpoint configuration.
        api_key: API key for the endpoint.

    Returns:
        tuple[Model, ModelSettings]: Chat model and per-request settings.
    """
    provider = OpenAIProvider(base_url=endpoint.base_url, api_key=api_key)
    model = OpenAIChatModel(endpoint.model_id, provider=provider)
    settings: OpenAIChatModelSettings = {
        "temperature": 0.0,
        "timeout": endpoint.timeout_s,
    }
    return model, cast(ModelSettings, settings)


def build_llm_collaborators(
    model: Model | str, model_settings: ModelSettings | None = None
) -> LlmCollaborators:
    """Build every collaborator on top of one model.

    Returns:
        LlmCollaborators: Collaborators ready to hand to the orchestrator.
    """
    return LlmCollaborators(
        moderation_gate=LlmModerationGate(model, model_settings),
        language_detector=LlmLanguageDetector(model, model_settings),
        translation_provider=LlmTranslationProvider(model, model_settings),
        grading_context_linker=LlmGradingContextLinker(model, model_settings),
    )
