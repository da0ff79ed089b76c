"""Pytest configuration and shared fixtures."""

import pytest

from chatcore.core.answer_generator import AnswerGenerator
from chatcore.lib.cache_service import CacheService
from chatcore.lib.config import GenerationSettings
from tests.mocks import MockConnector, make_profile


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache_service(clock):
    return CacheService(clock=clock)


@pytest.fixture
def profile():
    return make_profile()


@pytest.fixture
def connector():
    return MockConnector()


@pytest.fixture
def fast_settings():
    """Generation settings with a short timeout so timeout paths run quickly."""
    return GenerationSettings(timeout_seconds=0.05)


@pytest.fixture
def generator(connector, fast_settings, cache_service):
    return AnswerGenerator(connector, settings=fast_settings, cache=cache_service)
