"""Tests for structlog configuration."""

import pytest
import structlog

from dataflow.manager.logging import add_app_context, setup_logging
from dataflow.manager.settings import settings

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


def test_setup_logging_configures_structlog():
    setup_logging()

    assert structlog.is_configured()
    processors = structlog.get_config()["processors"]
    assert add_app_context in processors
    assert isinstance(processors[-1], (structlog.processors.JSONRenderer, structlog.dev.ConsoleRenderer))


def test_app_context_does_not_override_fields():
    event = add_app_context(None, "info", {"event": "x", "app": "custom"})

    assert event["app"] == "custom"
    assert event["environment"] == settings.environment.value
