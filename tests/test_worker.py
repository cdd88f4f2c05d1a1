"""Tests for the crawl worker loop."""

import asyncio
from unittest.mock import AsyncMock

from depthcrawl.crawler.fetcher import FetchError
from depthcrawl.crawler.parser import ParseError
from depthcrawl.crawler.pending import PendingCounter
from depthcrawl.crawler.url_frontier import CrawlTask, URLFrontier
from depthcrawl.crawler.worker import CrawlWorker
from depthcrawl.storage.backends import MemoryCrawlStore, StoreError
from depthcrawl.storage.visited_set import VisitedSet

from conftest import FakeExtractor


class RecordingCounter(PendingCounter):
    """PendingCounter that logs every change into a shared event list."""

    def __init__(self, events):
        super().__init__()
        self.events = events

    def increment(self, n=1):
        self.events.append(("inc", n))
        super().increment(n)

    def decrement(self, n=1):
        self.events.append(("dec", n))
        super().decrement(n)


def make_worker(extractor, monitor, store=None, pending=None, retry_attempts=2):
    store = store or MemoryCrawlStore()
    frontier = URLFrontier(store, retry_attempts=retry_attempts, retry_delay=0)
    worker = CrawlWorker(
        worker_id="worker-test",
        frontier=frontier,
        visited=VisitedSet(store),
        extractor=extractor,
        pending=pending or PendingCounter(),
        monitor=monitor,
        stop_event=asyncio.Event(),
        pop_timeout=0.01,
        pop_retry_delay=0.01,
    )
    return worker, store


async def run_until_idle(worker, task_payloads, count):
    """Queue payloads, run the worker until the counter drains, then stop it."""
    worker.pending.increment(count)
    for payload in task_payloads:
        await worker.frontier.store.push(payload)
    runner = asyncio.create_task(worker.run())
    await asyncio.wait_for(worker.pending.wait_for_zero(), 2)
    worker.stop_event.set()
    await asyncio.wait_for(runner, 2)


class TestWorkerProcess:

    def test_depth_zero_is_dropped_before_visited_check(self, monitor):
        extractor = FakeExtractor({"https://a.test/": ["https://b.test/"]})
        worker, store = make_worker(extractor, monitor)

        async def scenario():
            await worker.process(CrawlTask("https://a.test/", 0))
            return await store.visited_count(), await store.queue_size()

        assert asyncio.run(scenario()) == (0, 0)
        assert extractor.calls == []
        assert monitor.stats.skipped_depth == 1

    def test_already_visited_is_skipped(self, monitor):
        extractor = FakeExtractor({})
        worker, store = make_worker(extractor, monitor)

        async def scenario():
            await store.add_visited("https://a.test/")
            await worker.process(CrawlTask("https://a.test/", 2))

        asyncio.run(scenario())
        assert extractor.calls == []
        assert monitor.stats.skipped_visited == 1

    def test_children_are_pushed_one_hop_shallower(self, monitor):
        extractor = FakeExtractor({"https://a.test/": ["https://b.test/", "https://c.test/"]})
        worker, store = make_worker(extractor, monitor)
        worker.pending.increment()

        async def scenario():
            await worker.process(CrawlTask("https://a.test/", 2))
            return [await worker.frontier.pop(0.1) for _ in range(2)]

        children = asyncio.run(scenario())
        assert children == [CrawlTask("https://b.test/", 1), CrawlTask("https://c.test/", 1)]
        assert worker.pending.value == 3
        assert monitor.stats.pages_crawled == 1
        assert monitor.stats.links_enqueued == 2

    def test_fetch_failure_marks_visited_without_children(self, monitor):
        extractor = FakeExtractor({}, errors={"https://b.test/": FetchError("https://b.test/", "timed out")})
        worker, store = make_worker(extractor, monitor)

        async def scenario():
            await worker.process(CrawlTask("https://b.test/", 2))
            return await store.visited_count(), await store.queue_size()

        assert asyncio.run(scenario()) == (1, 0)
        assert monitor.stats.fetch_errors == 1

    def test_parse_failure_is_recorded(self, monitor):
        extractor = FakeExtractor({}, errors={"https://b.test/": ParseError("https://b.test/", "bad markup")})
        worker, _ = make_worker(extractor, monitor)
        asyncio.run(worker.process(CrawlTask("https://b.test/", 2)))
        assert monitor.stats.parse_errors == 1

    def test_failed_child_push_is_uncounted(self, monitor):
        extractor = FakeExtractor({"https://a.test/": ["https://b.test/"]})
        store = MemoryCrawlStore()
        store.push = AsyncMock(side_effect=StoreError("down"))
        worker, _ = make_worker(extractor, monitor, store=store)
        worker.pending.increment()

        asyncio.run(worker.process(CrawlTask("https://a.test/", 2)))
        assert worker.pending.value == 1
        assert monitor.stats.dropped_tasks == 1
        assert store.push.await_count == 2


class TestWorkerLoop:

    def test_children_counted_before_parent_settles(self, monitor):
        events = []
        extractor = FakeExtractor({"https://a.test/": ["https://b.test/", "https://c.test/"]})
        worker, store = make_worker(extractor, monitor, pending=RecordingCounter(events))
        original_push = store.push

        async def recording_push(payload):
            events.append(("push", CrawlTask.from_json(payload).url))
            await original_push(payload)

        store.push = recording_push

        asyncio.run(run_until_idle(worker, [CrawlTask("https://a.test/", 1).to_json()], 1))

        # Seed count, then each child counted before it is pushed, then the parent settles
        assert events[:7] == [
            ("inc", 1),
            ("push", "https://a.test/"),
            ("inc", 1),
            ("push", "https://b.test/"),
            ("inc", 1),
            ("push", "https://c.test/"),
            ("dec", 1),
        ]
        assert worker.pending.value == 0

    def test_malformed_payload_still_settles(self, monitor):
        worker, _ = make_worker(FakeExtractor({}), monitor)
        asyncio.run(run_until_idle(worker, ["{not json"], 1))
        assert worker.pending.done
        assert monitor.stats.malformed_tasks == 1

    def test_unexpected_error_still_settles(self, monitor):
        worker, _ = make_worker(FakeExtractor({}, errors={"https://a.test/": RuntimeError("boom")}), monitor)
        asyncio.run(run_until_idle(worker, [CrawlTask("https://a.test/", 1).to_json()], 1))
        assert worker.pending.done

    def test_pop_errors_do_not_touch_counter(self, monitor):
        store = MemoryCrawlStore()
        real_pop = store.pop
        failures = [StoreError("down"), StoreError("down")]

        async def flaky_pop(timeout=0):
            if failures:
                raise failures.pop()
            return await real_pop(timeout)

        store.pop = flaky_pop
        worker, _ = make_worker(FakeExtractor({}), monitor, store=store)
        asyncio.run(run_until_idle(worker, [CrawlTask("https://a.test/", 1).to_json()], 1))
        assert worker.pending.done
        assert failures == []

    def test_stop_event_ends_idle_worker(self, monitor):
        worker, _ = make_worker(FakeExtractor({}), monitor)

        async def scenario():
            runner = asyncio.create_task(worker.run())
            await asyncio.sleep(0.05)
            worker.stop_event.set()
            await asyncio.wait_for(runner, 1)
            return runner.done()

        assert asyncio.run(scenario()) is True
