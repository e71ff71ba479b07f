"""Base schema configuration for folio Pydantic models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema with validation defaults.

    Note: strings are not stripped on assignment. Question and variant text is
    hashed and compared by the publish pipeline, which normalizes explicitly so
    the persisted text keeps the author's formatting.
    """

    model_config = ConfigDict(
        extra="ignore",  # Drop extra fields instead of failing
        validate_assignment=True,
        validate_default=True,
        use_enum_values=True,
    )
