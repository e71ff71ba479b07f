"""Port interfaces for folio core."""

from folio_core.ports.collaborators import (
    GradingContextLinkerProtocol,
    LanguageDetectorProtocol,
    ModerationGateProtocol,
    TranslationProviderProtocol,
)
from folio_core.ports.orchestrator import (
    LogSinkProtocol,
    ProgressSinkProtocol,
    PublishError,
    PublishErrorCode,
    PublishErrorDetails,
    PublishErrorInfo,
)
from folio_core.ports.storage import (
    AssignmentStoreProtocol,
    JobStoreProtocol,
    LogStoreProtocol,
    QuestionStoreProtocol,
    StorageError,
    StorageErrorCode,
    StorageErrorDetails,
    StorageErrorInfo,
    TranslationStoreProtocol,
)
from folio_core.ports.translation import (
    TranslationError,
    TranslationErrorCode,
    TranslationErrorDetails,
    TranslationErrorInfo,
)

__all__ = [
    "AssignmentStoreProtocol",
    "GradingContextLinkerProtocol",
    "JobStoreProtocol",
    "LanguageDetectorProtocol",
    "LogSinkProtocol",
    "LogStoreProtocol",
    "ModerationGateProtocol",
    "ProgressSinkProtocol",
    "PublishError",
    "PublishErrorCode",
    "PublishErrorDetails",
    "PublishErrorInfo",
    "QuestionStoreProtocol",
    "StorageError",
    "StorageErrorCode",
    "StorageErrorDetails",
    "StorageErrorInfo",
    "TranslationError",
    "TranslationErrorCode",
    "TranslationErrorDetails",
    "TranslationErrorInfo",
    "TranslationProviderProtocol",
    "TranslationStoreProtocol",
]
