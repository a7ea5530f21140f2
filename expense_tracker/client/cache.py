"""
Observable query cache.

Results are stored per query key (a tuple such as ``("expenses",)`` or
``("expenses", 3)``). Listeners subscribe to a key and are notified exactly
once for every logical change of that entry: a fetch result landing, a fetch
failing, or an explicit ``set_query_data``.

Reads are cancelled cooperatively. Every entry carries a generation counter;
a fetch remembers the generation it started under and its result is dropped
if the generation has moved on by the time it settles. The request itself is
left to finish.

The cache is meant to be created once per client session and passed to
whatever needs it. Nothing here is a module-level singleton.
"""
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
import asyncio
import logging
import time
from tenacity import AsyncRetrying, before_sleep_log, stop_after_attempt

logger = logging.getLogger(__name__)

QueryKey = Tuple[Any, ...]
Fetcher = Callable[[], Awaitable[Any]]
Listener = Callable[["QueryEntry"], None]

def matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[:len(prefix)] == prefix

@dataclass
class QueryEntry:
    key: QueryKey
    data: Any = None
    error: Optional[BaseException] = None
    updated_at: Optional[float] = None
    invalidated: bool = False
    fetcher: Optional[Fetcher] = None
    retry: int = 0
    stale_time: float = 0.0
    generation: int = 0
    task: Optional["asyncio.Future"] = None
    listeners: List[Listener] = field(default_factory=list)

    @property
    def status(self) -> str:
        if self.error is not None:
            return "error"
        if self.updated_at is None:
            return "pending"
        return "success"

    @property
    def is_fetching(self) -> bool:
        return self.task is not None and not self.task.done()

class QueryCache:
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: Dict[QueryKey, QueryEntry] = {}
        self._clock = clock

    def _entry(self, key: QueryKey) -> QueryEntry:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = QueryEntry(key=key)
        return entry

    def _matching(self, prefix: QueryKey) -> List[QueryEntry]:
        return [e for k, e in self._entries.items() if matches(k, prefix)]

    def _notify(self, entry: QueryEntry) -> None:
        for listener in list(entry.listeners):
            listener(entry)

    def entry(self, key: QueryKey) -> QueryEntry:
        return self._entry(key)

    def subscribe(self, key: QueryKey, listener: Listener) -> Callable[[], None]:
        """Register `listener` for changes to `key`. Returns the unsubscribe function."""
        entry = self._entry(key)
        entry.listeners.append(listener)

        def unsubscribe():
            if listener in entry.listeners:
                entry.listeners.remove(listener)
        return unsubscribe

    def get_query_data(self, key: QueryKey) -> Any:
        entry = self._entries.get(key)
        return entry.data if entry else None

    def set_query_data(self, key: QueryKey, data: Any) -> None:
        """Replace the cached value wholesale and notify once."""
        entry = self._entry(key)
        entry.data = data
        entry.error = None
        entry.updated_at = self._clock()
        self._notify(entry)

    def is_stale(self, key: QueryKey) -> bool:
        entry = self._entries.get(key)
        if entry is None or entry.updated_at is None or entry.invalidated:
            return True
        return self._clock() - entry.updated_at >= entry.stale_time

    def cancel_queries(self, prefix: QueryKey) -> None:
        """
        Stop in-flight reads under `prefix` from writing their results.

        Synchronous on purpose: callers may cancel, snapshot and write without
        yielding to the event loop in between.
        """
        for entry in self._matching(prefix):
            if entry.is_fetching:
                logger.debug(f"Cancelling in-flight fetch for {entry.key}")
            entry.generation += 1
            entry.task = None

    async def fetch_query(self, key: QueryKey, fetcher: Fetcher, retry: int = 0, stale_time: float = 0.0) -> Any:
        """
        Return cached data for `key` if still fresh, otherwise fetch it.

        Concurrent callers share a single in-flight request. Failures are
        retried `retry` times, then stored on the entry and raised.
        """
        entry = self._entry(key)
        entry.fetcher = fetcher
        entry.retry = retry
        entry.stale_time = stale_time
        if not self.is_stale(key):
            return entry.data
        return await self._fetch(entry)

    async def refetch(self, key: QueryKey) -> Any:
        entry = self._entry(key)
        if entry.fetcher is None:
            raise LookupError(f"No fetcher registered for {key}")
        entry.generation += 1
        entry.task = None
        return await self._fetch(entry)

    async def _fetch(self, entry: QueryEntry) -> Any:
        if not entry.is_fetching:
            entry.task = asyncio.ensure_future(self._run(entry, entry.generation))
        return await asyncio.shield(entry.task)

    async def _run(self, entry: QueryEntry, generation: int) -> Any:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(entry.retry + 1),
            before_sleep=before_sleep_log(logger, logging.INFO),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    data = await entry.fetcher()
        except Exception as e:
            if generation == entry.generation:
                entry.error = e
                self._notify(entry)
            raise

        if generation != entry.generation:
            logger.debug(f"Discarding superseded fetch result for {entry.key}")
            return entry.data

        entry.data = data
        entry.error = None
        entry.invalidated = False
        entry.updated_at = self._clock()
        self._notify(entry)
        return data

    async def invalidate_queries(self, prefix: QueryKey, refetch_inactive: bool = False) -> None:
        """
        Mark every entry under `prefix` stale and refetch the active ones.

        An entry is active when it has a fetcher and at least one listener.
        Refetch failures are recorded on the entry, not raised.
        """
        refetching = []
        for entry in self._matching(prefix):
            entry.invalidated = True
            if entry.fetcher is not None and (entry.listeners or refetch_inactive):
                # Supersede any read already in flight; the refetch must start after this point
                entry.generation += 1
                entry.task = None
                refetching.append(entry)

        results = await asyncio.gather(*(self._fetch(e) for e in refetching), return_exceptions=True)
        for entry, result in zip(refetching, results):
            if isinstance(result, Exception):
                logger.warning(f"Refetch after invalidation failed for {entry.key}: {result}")
