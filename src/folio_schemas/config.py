"""Configuration schemas for the publish pipeline."""

from __future__ import annotations

from urllib.parse import urlparse

from pydantic import Field, field_validator, model_validator

from folio_schemas.base import BaseSchema
from folio_schemas.primitives import LanguageCode, LogSinkType, PublishStep


class LogSinkConfig(BaseSchema):
    """Configuration for a single log sink."""

    type: LogSinkType = Field(..., description="Log sink type (console|file|noop)")

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: object) -> LogSinkType:
        if isinstance(value, LogSinkType):
            return value
        if isinstance(value, str):
            return LogSinkType(value)
        return value  # type: ignore[return-value]


class LoggingConfig(BaseSchema):
    """Logging configuration for publish jobs and CLI commands."""

    sinks: list[LogSinkConfig] = Field(
        default_factory=lambda: [LogSinkConfig(type=LogSinkType.CONSOLE)],
        min_length=1,
        description="Log sinks to enable",
    )

    @model_validator(mode="after")
    def validate_sink_types(self) -> LoggingConfig:
        """Ensure log sink types are unique.

        Returns:
            LoggingConfig: Validated logging configuration.

        Raises:
            ValueError: If sink types are duplicated.
        """
        sink_types = [sink.type for sink in self.sinks]
        if len(set(sink_types)) != len(sink_types):
            raise ValueError("log sinks must not contain duplicates")
        return self


class LanguageConfig(BaseSchema):
    """Languages every published question and assignment is translated into."""

    supported_languages: list[LanguageCode] = Field(
        default_factory=lambda: ["en"],
        min_length=1,
        description="Target language codes",
    )
    default_language: LanguageCode = Field(
        "en", description="Language used when translation is disabled"
    )
    translation_enabled: bool = Field(True, description="Enable translation")

    @model_validator(mode="after")
    def validate_languages(self) -> LanguageConfig:
        """Ensure supported languages are unique.

        Returns:
            LanguageConfig: Validated language configuration.

        Raises:
            ValueError: If languages are duplicated.
        """
        if len(set(self.supported_languages)) != len(self.supported_languages):
            raise ValueError("supported_languages must be unique")
        return self

    def resolve_languages(self) -> list[LanguageCode]:
        """Return the languages a publish run translates into.

        Returns:
            list[LanguageCode]: Supported languages, or only the default language
            when translation is disabled.
        """
        if not self.translation_enabled:
            return [self.default_language]
        return list(self.supported_languages)


class ConcurrencyConfig(BaseSchema):
    """Concurrency settings for parallel execution."""

    max_parallel_translations: int = Field(
        10, ge=1, description="Max concurrent translation units"
    )


def _default_step_targets() -> dict[PublishStep, int]:
    return {
        PublishStep.SETTINGS: 10,
        PublishStep.QUESTIONS: 20,
        PublishStep.ASSIGNMENT_TRANSLATIONS: 70,
        PublishStep.FINALIZE: 90,
    }


class ProgressConfig(BaseSchema):
    """Percentage checkpoints recorded while a publish job runs."""

    step_targets: dict[PublishStep, int] = Field(
        default_factory=_default_step_targets,
        description="Percentage recorded when each step completes",
    )
    checkpoint_ratio: float = Field(
        0.8, gt=0, lt=1, description="Fraction of a target recorded at step start"
    )
    translation_base_percentage: int = Field(
        20, ge=0, le=100, description="Percentage before any translation completes"
    )
    translation_range: int = Field(
        40, ge=0, le=100, description="Percentage span covered by translations"
    )

    @model_validator(mode="after")
    def validate_targets(self) -> ProgressConfig:
        """Ensure every step has a strictly increasing target below 100.

        Returns:
            ProgressConfig: Validated progress configuration.

        Raises:
            ValueError: If targets are missing, out of order or out of range.
        """
        missing = [step for step in PublishStep if step not in self.step_targets]
        if missing:
            names = ", ".join(str(step) for step in missing)
            raise ValueError(f"step_targets missing steps: {names}")
        ordered = [self.step_targets[step] for step in PublishStep]
        if any(later <= earlier for earlier, later in zip(ordered, ordered[1:])):
            raise ValueError("step_targets must be strictly increasing")
        if ordered[0] <= 0 or ordered[-1] >= 100:
            raise ValueError("step_targets must be between 1 and 99")
        if self.translation_base_percentage + self.translation_range > 100:
            raise ValueError("translation progress must not exceed 100")
        return self

    def target_for(self, step: PublishStep) -> int:
        """Return the completion percentage for a step.

        Returns:
            int: Step target percentage.
        """
        return self.step_targets[step]


class StorageConfig(BaseSchema):
    """Filesystem locations for job records and logs."""

    data_dir: str = Field(".folio", min_length=1, description="Data directory")


class ModelEndpointConfig(BaseSchema):
    """OpenAI-compatible endpoint used by the AI collaborators."""

    base_url: str = Field(..., min_length=1, description="OpenAI-compatible base URL")
    api_key_env: str = Field(
        ..., min_length=1, description="Environment variable for API key"
    )
    model_id: str = Field(..., min_length=1, description="Model identifier")
    timeout_s: float = Field(60.0, gt=0, description="Request timeout in seconds")

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        """Ensure base URL uses http/https with a host.

        Args:
            value: Raw base URL string.

        Returns:
            str: Validated base URL.

        Raises:
            ValueError: If the URL is missing scheme/host.
        """
        parsed = urlparse(value)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(
                "base_url must be an http/https URL with host "
                "(for localhost include http://)"
            )
        if parsed.path in {"", "/"}:
            return f"{value.rstrip('/')}/v1"
        return value


class PublishConfig(BaseSchema):
    """Root configuration for the publish pipeline."""

    languages: LanguageConfig = Field(
        default_factory=LanguageConfig, description="Language settings"
    )
    concurrency: ConcurrencyConfig = Field(
        default_factory=ConcurrencyConfig, description="Concurrency limits"
    )
    progress: ProgressConfig = Field(
        default_factory=ProgressConfig, description="Progress checkpoints"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    storage: StorageConfig = Field(
        default_factory=StorageConfig, description="Storage locations"
    )
    endpoint: ModelEndpointConfig | None = Field(
        None, description="Endpoint for AI collaborators"
    )
