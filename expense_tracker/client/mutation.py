from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar
import logging
from expense_tracker.client.cache import QueryCache, QueryKey

logger = logging.getLogger(__name__)

V = TypeVar("V")
R = TypeVar("R")

@dataclass(frozen=True)
class MutationContext:
    """Private per-call state: the cache value as it was before speculation."""
    previous: Any

class OptimisticMutation(Generic[V, R]):
    """
    Wraps a network write with a speculative cache update.

    For each call: cancel reads of `query_key`, snapshot its value, write
    ``speculate(snapshot, variables)``, then await `mutation_fn`. On failure
    the snapshot is written back verbatim; either way the key is invalidated
    afterwards so a refetch replaces whatever speculation is left.

    Everything before the `await` runs without yielding, so no other task can
    observe a half-applied update.
    """

    def __init__(
        self,
        cache: QueryCache,
        query_key: QueryKey,
        mutation_fn: Callable[[V], Awaitable[R]],
        speculate: Callable[[Any, V], Any],
        on_success: Optional[Callable[[R, V, MutationContext], None]] = None,
        on_error: Optional[Callable[[Exception, V, MutationContext], None]] = None,
    ):
        self.cache = cache
        self.query_key = query_key
        self.mutation_fn = mutation_fn
        self.speculate = speculate
        self.on_success = on_success
        self.on_error = on_error
        self.reset()

    def reset(self) -> None:
        self.status = "idle"
        self.data: Optional[R] = None
        self.error: Optional[Exception] = None
        self._pending = 0

    @property
    def is_pending(self) -> bool:
        return self._pending > 0

    @property
    def is_error(self) -> bool:
        return self.status == "error"

    def _begin(self, variables: V) -> MutationContext:
        self.cache.cancel_queries(self.query_key)
        previous = self.cache.get_query_data(self.query_key)
        if previous is not None:
            self.cache.set_query_data(self.query_key, self.speculate(previous, variables))
        return MutationContext(previous=previous)

    async def mutate(self, variables: V) -> Optional[R]:
        """Run the mutation. Returns the server result, or None if it failed (see `error`)."""
        context = self._begin(variables)
        self._pending += 1
        self.status = "pending"
        try:
            result = await self.mutation_fn(variables)
        except Exception as e:
            logger.warning(f"Mutation on {self.query_key} failed, rolling back: {e}")
            if context.previous is not None:
                self.cache.set_query_data(self.query_key, context.previous)
            self.status = "error"
            self.error = e
            if self.on_error:
                self.on_error(e, variables, context)
            return None
        else:
            self.status = "success"
            self.data = result
            self.error = None
            if self.on_success:
                self.on_success(result, variables, context)
            return result
        finally:
            self._pending -= 1
            await self.cache.invalidate_queries(self.query_key)
