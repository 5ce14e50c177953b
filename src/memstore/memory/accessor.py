"""Store accessor - single-flight lazy initialization of a shared store.

One ``StoreAccessor`` is built at the composition root and passed to every
consumer. The first ``get_store()`` call constructs and initializes the
store; callers arriving while that is in progress await the same task;
afterwards everyone receives the same instance.

States:
    UNINITIALIZED -> INITIALIZING -> READY
    INITIALIZING -> UNINITIALIZED   (initialization failed, retry allowed)
    READY -> UNINITIALIZED          (shutdown)
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable

from ..service.config import StoreConfig
from .store import MemoryStore

logger = logging.getLogger(__name__)


class AccessorState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class StoreAccessor:
    """Hands out one shared, initialized ``MemoryStore``.

    Args:
        config: Configuration passed to the factory
        factory: Builds an uninitialized store (default: ``MemoryStore``)

    Example:
        accessor = StoreAccessor(StoreConfig.from_env())
        store = await accessor.get_store()
        ...
        await accessor.shutdown()
    """

    def __init__(
        self,
        config: StoreConfig | None = None,
        factory: Callable[[StoreConfig], MemoryStore] | None = None,
    ) -> None:
        self.config = config or StoreConfig()
        self._factory = factory or MemoryStore
        self._store: MemoryStore | None = None
        self._pending: asyncio.Task[MemoryStore] | None = None
        self._state = AccessorState.UNINITIALIZED

    @property
    def state(self) -> AccessorState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state == AccessorState.READY

    async def get_store(self) -> MemoryStore:
        """Return the shared store, initializing it on first use.

        Raises:
            Exception: Whatever construction or ``initialize()`` raised; the
                accessor is reset so the next call retries
        """
        if self._store is not None:
            return self._store

        if self._pending is None:
            self._state = AccessorState.INITIALIZING
            self._pending = asyncio.ensure_future(self._initialize())

        return await asyncio.shield(self._pending)

    async def _initialize(self) -> MemoryStore:
        try:
            store = self._factory(self.config)
            await store.initialize()
        except Exception:
            self._state = AccessorState.UNINITIALIZED
            self._pending = None
            logger.exception("Failed to initialize memory store")
            raise

        self._store = store
        self._state = AccessorState.READY
        self._pending = None
        return store

    async def shutdown(self) -> None:
        """Shut the store down and return to the uninitialized state."""
        pending = self._pending
        if pending is not None:
            # Let an in-flight initialization settle; its callers see any error
            await asyncio.wait({pending})

        store = self._store
        self._store = None
        self._state = AccessorState.UNINITIALIZED
        if store is not None:
            await store.shutdown()
            logger.info("Store accessor shut down")


__all__ = ["AccessorState", "StoreAccessor"]
