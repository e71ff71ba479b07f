"""folio-llm: Language-model collaborators for publishing."""

from folio_llm.collaborators import (
    LlmGradingContextLinker,
    LlmLanguageDetector,
    LlmModerationGate,
    LlmTranslationProvider,
)
from folio_llm.runtime import LlmCollaborators, build_llm_collaborators, create_model

__version__ = "0.1.0"

__all__ = [
    "LlmCollaborators",
    "LlmGradingContextLinker",
    "LlmLanguageDetector",
    "LlmModerationGate",
    "LlmTranslationProvider",
    "build_llm_collaborators",
    "create_model",
]
