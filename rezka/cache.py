"""In-process memoizing caches.

A ``MemoCache`` fills on miss and reuses on hit for the lifetime of the
process. Concurrent callers asking for the same key share one in-flight
computation, and only completed values are ever stored.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Hashable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _consume(future: asyncio.Future) -> None:
    # Mark the result as retrieved so a failure nobody waited for is not logged.
    if not future.cancelled():
        future.exception()


class MemoCache:
    """Key to value store with single-flight fill-on-miss."""

    def __init__(self, name: str = "cache"):
        self.name = name
        self._values: dict[Hashable, Any] = {}
        self._pending: dict[Hashable, asyncio.Future] = {}

    def __contains__(self, key: Hashable) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def peek(self, key: Hashable) -> Any | None:
        return self._values.get(key)

    def clear(self) -> None:
        self._values.clear()

    async def get(self, key: Hashable, compute: Callable[[], Awaitable[T]]) -> T:
        """Return the value for ``key``, running ``compute`` only on a miss."""
        while True:
            if key in self._values:
                logger.debug("[%s] hit %r", self.name, key)
                return self._values[key]

            pending = self._pending.get(key)
            if pending is None:
                break

            try:
                return await asyncio.shield(pending)
            except asyncio.CancelledError:
                # The computing caller was cancelled, not us: take over.
                if pending.cancelled():
                    continue
                raise

        logger.debug("[%s] miss %r", self.name, key)
        future = asyncio.get_running_loop().create_future()
        future.add_done_callback(_consume)
        self._pending[key] = future
        try:
            value = await compute()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            raise
        else:
            self._values[key] = value
            future.set_result(value)
            return value
        finally:
            del self._pending[key]


class Store:
    """Named caches for everything the resolvers memoize."""

    def __init__(self):
        self.documents = MemoCache("documents")
        self.movie_streams = MemoCache("movie_streams")
        self.series_streams = MemoCache("series_streams")
        self.episodes = MemoCache("episodes")
        self.sizes = MemoCache("sizes")
        self.thumbnails = MemoCache("thumbnails")

    def caches(self) -> list[MemoCache]:
        return [
            self.documents,
            self.movie_streams,
            self.series_streams,
            self.episodes,
            self.sizes,
            self.thumbnails,
        ]

    def clear(self) -> None:
        for cache in self.caches():
            cache.clear()
