"""Unit tests for shared primitives."""

from datetime import UTC, datetime

from pydantic import TypeAdapter

from folio_schemas.primitives import Timestamp, now_timestamp


def test_now_timestamp_is_utc_with_z_suffix() -> None:
    """Ensure the shared clock produces valid UTC timestamps."""
    value = now_timestamp()

    assert value.endswith("Z")
    assert TypeAdapter(Timestamp).validate_python(value) == value
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    assert parsed.tzinfo == UTC
