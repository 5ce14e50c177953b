"""Unit tests for StoreAccessor single-flight initialization."""

import asyncio

import pytest

from memstore.memory import AccessorState, MemoryStore, StoreAccessor
from memstore.service.config import StoreConfig


class CountingFactory:
    """Builds MemoryStores, optionally failing the first initializations."""

    def __init__(self, failures: int = 0, delay: float = 0.01):
        self.created = 0
        self.failures = failures
        self.delay = delay

    def __call__(self, config):
        self.created += 1
        store = MemoryStore(config)
        factory = self
        original = store.initialize

        async def initialize():
            await asyncio.sleep(factory.delay)
            if factory.failures > 0:
                factory.failures -= 1
                raise RuntimeError("initialization failed")
            await original()

        store.initialize = initialize
        return store


@pytest.fixture
def small_config():
    return StoreConfig(dimensions=8, default_collections=("code", "chat", "context"))


class TestStoreAccessor:
    """Tests for the accessor state machine."""

    @pytest.mark.asyncio
    async def test_initial_state(self, small_config):
        accessor = StoreAccessor(small_config)
        assert accessor.state is AccessorState.UNINITIALIZED
        assert not accessor.is_ready

    @pytest.mark.asyncio
    async def test_get_store_initializes(self, small_config):
        accessor = StoreAccessor(small_config)
        store = await accessor.get_store()

        assert accessor.is_ready
        assert store.is_initialized
        assert await store.list_collections() == ["code", "chat", "context"]
        assert await accessor.get_store() is store

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_initialization(self, small_config):
        factory = CountingFactory()
        accessor = StoreAccessor(small_config, factory=factory)

        stores = await asyncio.gather(*(accessor.get_store() for _ in range(10)))

        assert factory.created == 1
        assert all(s is stores[0] for s in stores)

    @pytest.mark.asyncio
    async def test_state_while_initializing(self, small_config):
        accessor = StoreAccessor(small_config, factory=CountingFactory(delay=0.05))

        task = asyncio.ensure_future(accessor.get_store())
        await asyncio.sleep(0)
        assert accessor.state is AccessorState.INITIALIZING
        assert not accessor.is_ready

        await task
        assert accessor.state is AccessorState.READY

    @pytest.mark.asyncio
    async def test_failure_resets_and_allows_retry(self, small_config):
        factory = CountingFactory(failures=1)
        accessor = StoreAccessor(small_config, factory=factory)

        with pytest.raises(RuntimeError, match="initialization failed"):
            await accessor.get_store()
        assert accessor.state is AccessorState.UNINITIALIZED

        store = await accessor.get_store()
        assert accessor.is_ready
        assert store.is_initialized
        assert factory.created == 2

    @pytest.mark.asyncio
    async def test_concurrent_callers_all_see_failure(self, small_config):
        accessor = StoreAccessor(small_config, factory=CountingFactory(failures=1))

        results = await asyncio.gather(
            *(accessor.get_store() for _ in range(3)), return_exceptions=True
        )

        assert all(isinstance(r, RuntimeError) for r in results)
        assert accessor.state is AccessorState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_shutdown(self, small_config):
        factory = CountingFactory()
        accessor = StoreAccessor(small_config, factory=factory)
        first = await accessor.get_store()

        await accessor.shutdown()

        assert accessor.state is AccessorState.UNINITIALIZED
        assert not first.is_initialized

        second = await accessor.get_store()
        assert second is not first
        assert factory.created == 2

    @pytest.mark.asyncio
    async def test_shutdown_before_use(self, small_config):
        accessor = StoreAccessor(small_config)
        await accessor.shutdown()
        assert accessor.state is AccessorState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_shutdown_waits_for_pending_initialization(self, small_config):
        accessor = StoreAccessor(small_config, factory=CountingFactory(delay=0.05))

        task = asyncio.ensure_future(accessor.get_store())
        await asyncio.sleep(0)
        await accessor.shutdown()

        store = await task
        assert not store.is_initialized
        assert accessor.state is AccessorState.UNINITIALIZED
