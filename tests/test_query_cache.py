import asyncio
import pytest
from expense_tracker.client.cache import QueryCache

class Clock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now

def test_set_query_data_notifies_once_per_change():
    cache = QueryCache()
    seen = []
    cache.subscribe(("expenses",), lambda entry: seen.append(entry.data))

    cache.set_query_data(("expenses",), [1])
    cache.set_query_data(("expenses",), [1, 2])
    assert seen == [[1], [1, 2]]
    assert cache.get_query_data(("expenses",)) == [1, 2]

def test_unsubscribe_stops_notifications():
    cache = QueryCache()
    seen = []
    unsubscribe = cache.subscribe(("expenses",), seen.append)
    unsubscribe()
    cache.set_query_data(("expenses",), [1])
    assert seen == []

def test_get_query_data_is_none_before_first_fetch():
    assert QueryCache().get_query_data(("expenses",)) is None

def test_fetch_respects_stale_time():
    clock = Clock()
    cache = QueryCache(clock=clock)
    calls = []

    async def fetcher():
        calls.append(clock.now)
        return len(calls)

    async def scenario():
        assert await cache.fetch_query(("k",), fetcher, stale_time=5) == 1
        clock.now += 4
        assert await cache.fetch_query(("k",), fetcher, stale_time=5) == 1
        clock.now += 1
        assert await cache.fetch_query(("k",), fetcher, stale_time=5) == 2

    asyncio.run(scenario())
    assert len(calls) == 2

def test_concurrent_fetches_share_one_request():
    cache = QueryCache()
    calls = []

    async def fetcher():
        calls.append(1)
        await asyncio.sleep(0)
        return "data"

    async def scenario():
        return await asyncio.gather(cache.fetch_query(("k",), fetcher), cache.fetch_query(("k",), fetcher))

    assert asyncio.run(scenario()) == ["data", "data"]
    assert len(calls) == 1

def test_fetch_retries_once_then_records_error():
    cache = QueryCache()
    attempts = []
    notified = []
    cache.subscribe(("k",), lambda entry: notified.append(entry.status))

    async def failing():
        attempts.append(1)
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        asyncio.run(cache.fetch_query(("k",), failing, retry=1))

    assert len(attempts) == 2
    assert cache.entry(("k",)).status == "error"
    assert notified == ["error"]

def test_fetch_succeeds_on_retry():
    cache = QueryCache()
    attempts = []

    async def flaky():
        attempts.append(1)
        if len(attempts) == 1:
            raise RuntimeError("first attempt fails")
        return "ok"

    assert asyncio.run(cache.fetch_query(("k",), flaky, retry=1)) == "ok"
    assert cache.entry(("k",)).status == "success"

def test_cancelled_fetch_result_is_discarded():
    cache = QueryCache()
    gate_holder = {}

    async def slow():
        await gate_holder["gate"].wait()
        return "stale"

    async def scenario():
        gate_holder["gate"] = asyncio.Event()
        pending = asyncio.ensure_future(cache.fetch_query(("k",), slow))
        await asyncio.sleep(0)
        assert cache.entry(("k",)).is_fetching

        cache.cancel_queries(("k",))
        cache.set_query_data(("k",), "fresh")
        gate_holder["gate"].set()
        await pending

    asyncio.run(scenario())
    assert cache.get_query_data(("k",)) == "fresh"

def test_invalidate_refetches_active_queries_by_prefix():
    cache = QueryCache()
    fetched = []

    def fetcher_for(key):
        async def fetcher():
            fetched.append(key)
            return key
        return fetcher

    async def scenario():
        await cache.fetch_query(("expenses",), fetcher_for(("expenses",)))
        await cache.fetch_query(("expenses", 1), fetcher_for(("expenses", 1)))
        await cache.fetch_query(("other",), fetcher_for(("other",)))
        cache.subscribe(("expenses",), lambda entry: None)
        fetched.clear()

        await cache.invalidate_queries(("expenses",))

    asyncio.run(scenario())
    # Only the subscribed entry refetches; the inactive detail is just marked stale
    assert fetched == [("expenses",)]
    assert cache.is_stale(("expenses", 1))
    assert not cache.entry(("other",)).invalidated

def test_invalidate_swallows_refetch_errors_into_entry():
    cache = QueryCache()
    cache.subscribe(("k",), lambda entry: None)
    state = {"fail": False}

    async def fetcher():
        if state["fail"]:
            raise RuntimeError("server down")
        return "v1"

    async def scenario():
        await cache.fetch_query(("k",), fetcher)
        state["fail"] = True
        await cache.invalidate_queries(("k",))

    asyncio.run(scenario())
    entry = cache.entry(("k",))
    assert entry.status == "error"
    # Last good data survives a failed refetch
    assert entry.data == "v1"
