import asyncio
import logging
import time
from typing import Awaitable, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 5 * 60


class TTLCache(Generic[T]):
    """Holds one loaded value for ``ttl`` seconds.

    Concurrent callers during a load share the same in-flight request. A
    failed load is not cached.
    """

    def __init__(self, ttl: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._value: T | None = None
        self._loaded_at: float | None = None
        self._inflight: asyncio.Future | None = None

    @property
    def is_fresh(self) -> bool:
        return self._loaded_at is not None and self._clock() - self._loaded_at < self.ttl

    def peek(self) -> T | None:
        return self._value if self.is_fresh else None

    def invalidate(self) -> None:
        self._value = None
        self._loaded_at = None

    async def get(self, loader: Callable[[], Awaitable[T]]) -> T:
        if self.is_fresh:
            return self._value
        if self._inflight is not None:
            return await asyncio.shield(self._inflight)

        future = asyncio.get_running_loop().create_future()
        self._inflight = future
        try:
            value = await loader()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # consume so an unawaited failure is not logged as never retrieved
            future.exception()
            raise
        finally:
            self._inflight = None

        self._value = value
        self._loaded_at = self._clock()
        future.set_result(value)
        return value
