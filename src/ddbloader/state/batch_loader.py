"""
Batch Loader - collects, de-duplicates and caches requests for one unit of work.

Every load issued during the same synchronous turn of the event loop joins
one batch. The batch is dispatched on the next loop iteration, and each
caller's future is settled from the batch function's result. Outcomes stay
cached for the lifetime of the loader.
"""

import asyncio
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    Iterable,
    List,
    Optional,
    Sequence,
    Set,
    TypeVar,
)

import structlog

from ddbloader.core.batch import Batch

logger = structlog.get_logger(__name__)

RequestT = TypeVar("RequestT")
ValueT = TypeVar("ValueT")

# Receives the batch's requests, returns one value (or Exception) per request
BatchFunction = Callable[[List[RequestT]], Awaitable[Sequence[Any]]]


class BatchLoaderError(Exception):
    """Raised when a batch function breaks its contract."""
    pass


class BatchLoader(Generic[RequestT, ValueT]):
    """
    Request-scoped batching cache.

    Responsibilities:
    - Capture all loads of one tick into a single batch
    - Share one dispatch and one result between identical requests
    - Keep resolved results for the lifetime of the loader
    - Accept primed values from other loaders

    Not thread-safe; all calls must come from the event loop thread.
    """

    def __init__(
        self,
        batch_fn: BatchFunction,
        cache_key_fn: Callable[[RequestT], str],
        name: str = "loader",
    ):
        """
        Initialize the batch loader.

        Args:
            batch_fn: Coroutine function resolving a list of requests
            cache_key_fn: Derives the identity of a request
            name: Label used in logs and stats
        """
        self.name = name
        self._batch_fn = batch_fn
        self._cache_key_fn = cache_key_fn

        # Cache key -> settled or pending future
        self._cache: Dict[str, asyncio.Future] = {}

        # Batch currently collecting requests
        self._batch: Optional[Batch] = None

        # Running dispatch tasks
        self._tasks: Set[asyncio.Task] = set()

        # Statistics
        self._stats = {
            "loads": 0,
            "cache_hits": 0,
            "primed": 0,
            "batches_dispatched": 0,
            "batches_failed": 0,
        }

    def load(self, request: RequestT) -> "asyncio.Future[ValueT]":
        """
        Load the value for a request.

        Must be called while the event loop is running. The returned future
        can be awaited directly or gathered with other loads.

        Args:
            request: The request to resolve

        Returns:
            Future settled with the request's value or error
        """
        loop = asyncio.get_running_loop()
        cache_key = self._cache_key_fn(request)
        self._stats["loads"] += 1

        future = self._cache.get(cache_key)
        if future is not None:
            self._stats["cache_hits"] += 1
            return asyncio.shield(future)

        future = loop.create_future()
        self._cache[cache_key] = future
        self._collecting_batch(loop).add(cache_key, request, future)
        return asyncio.shield(future)

    async def load_many(self, requests: Iterable[RequestT]) -> List[ValueT]:
        """Load several requests within the same tick."""
        return list(await asyncio.gather(*[self.load(r) for r in requests]))

    def prime(self, request: RequestT, value: ValueT) -> bool:
        """
        Insert a value without dispatching.

        Existing entries, pending or settled, are left untouched.

        Returns:
            True if the value was inserted
        """
        cache_key = self._cache_key_fn(request)
        if cache_key in self._cache:
            return False

        future = asyncio.get_running_loop().create_future()
        future.set_result(value)
        self._cache[cache_key] = future
        self._stats["primed"] += 1
        return True

    def clear(self, request: RequestT) -> bool:
        """Drop the cached entry of a request. Returns True if one existed."""
        return self._cache.pop(self._cache_key_fn(request), None) is not None

    def clear_all(self) -> None:
        """Drop every cached entry."""
        self._cache.clear()

    def _collecting_batch(self, loop: asyncio.AbstractEventLoop) -> Batch:
        if self._batch is None or not self._batch.is_collecting:
            self._batch = Batch()
            loop.call_soon(self._dispatch, self._batch)
        return self._batch

    def _dispatch(self, batch: Batch) -> None:
        if self._batch is batch:
            self._batch = None
        batch.mark_dispatched()

        task = asyncio.get_running_loop().create_task(self._run_batch(batch))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_batch(self, batch: Batch) -> None:
        self._stats["batches_dispatched"] += 1
        logger.debug(
            "batch_dispatched",
            loader=self.name,
            batch_id=batch.batch_id[:8] + "...",
            size=batch.size,
        )

        try:
            results = list(await self._batch_fn(batch.requests))
            if len(results) != batch.size:
                raise BatchLoaderError(
                    f"{self.name} batch function returned {len(results)} values "
                    f"for {batch.size} requests"
                )
        except asyncio.CancelledError:
            batch.mark_failed("cancelled")
            for cache_key, future in batch.futures:
                self._evict(cache_key, future)
                future.cancel()
            raise
        except Exception as e:
            self._fail_batch(batch, e)
            return

        for (cache_key, future), result in zip(batch.futures, results):
            if future.done():
                continue
            if isinstance(result, Exception):
                self._evict(cache_key, future)
                future.set_exception(result)
            else:
                future.set_result(result)

        batch.mark_resolved()

    def _fail_batch(self, batch: Batch, error: Exception) -> None:
        batch.mark_failed(str(error))
        self._stats["batches_failed"] += 1
        logger.error("batch_failed", loader=self.name, **batch.to_dict())
        for cache_key, future in batch.futures:
            self._evict(cache_key, future)
            if not future.done():
                future.set_exception(error)

    def _evict(self, cache_key: str, future: asyncio.Future) -> None:
        # Only drop the entry if it still belongs to this batch
        if self._cache.get(cache_key) is future:
            del self._cache[cache_key]

    def get_stats(self) -> dict:
        """Get loader statistics."""
        return {
            **self._stats,
            "cache_size": len(self._cache),
        }
