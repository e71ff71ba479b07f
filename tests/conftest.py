"""Common pytest configuration."""

import pytest

from tests.helpers.publish import PublishHarness


@pytest.fixture
def harness() -> PublishHarness:
    """Provide an orchestrator wired to in-memory adapters and stubs.

    Returns:
        PublishHarness: Fresh harness translating into English and French.
    """
    return PublishHarness()
