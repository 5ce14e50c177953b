"""Test configuration for pytest."""

import pytest

from memstore.memory import MemoryMetadata, MemoryStore, MemoryType
from memstore.service.config import StoreConfig

TEST_DIMENSIONS = 64


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow running tests")


class FakeClock:
    """Millisecond clock advancing by ``step`` on every call."""

    def __init__(self, start: int = 1_700_000_000_000, step: int = 1):
        self.now = start
        self.step = step

    def __call__(self) -> int:
        self.now += self.step
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return StoreConfig(dimensions=TEST_DIMENSIONS)


@pytest.fixture
def store(config, clock):
    """Store with a small embedding dimension and a deterministic clock."""
    return MemoryStore(config, time_provider=clock)


@pytest.fixture
def meta():
    """Factory for MemoryMetadata with chat/user defaults."""

    def make(memory_type=MemoryType.CHAT, source="user", **kwargs):
        return MemoryMetadata(type=memory_type, source=source, **kwargs)

    return make
