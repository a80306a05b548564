"""Root test configuration."""

import logging

import pytest
import structlog
from admitlayer.event.generator import EventGenerator
from admitlayer.webhooks.mutation import MutationHandler
from fakes import CountingNamespaceLabels, FakeEngine, RecordingSink, RecordingValidator


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def event_generator(sink):
    return EventGenerator(sink, max_queued_events=100, retry_backoff=0)


@pytest.fixture
def validator():
    return RecordingValidator()


@pytest.fixture
def namespace_labels():
    return CountingNamespaceLabels({"ns1": {"env": "prod"}})


@pytest.fixture
def make_handler(event_generator, validator, namespace_labels):
    def factory(engine: FakeEngine) -> MutationHandler:
        return MutationHandler(engine, event_generator, validator, namespace_labels)

    return factory
