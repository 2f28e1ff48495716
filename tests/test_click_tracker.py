"""
Tests for the click tracker, dispatchers, scheduler and worker.
"""

import asyncio
import uuid
from datetime import datetime, timezone

import pytest

from doubles import FlakyDirectory
from linkforge_app.directory.strategies import InMemoryLinkDirectory
from linkforge_app.queue.models import ClickMessage
from linkforge_app.queue.strategies import InMemoryQueue, QueueStrategy
from linkforge_app.retry import RetryPolicy, call_with_retry
from linkforge_app.exceptions import DirectoryError
from linkforge_app.schemas.link import ClickMetadata, LinkRecord
from linkforge_app.tracking.dispatchers import InlineClickDispatcher, QueueClickDispatcher
from linkforge_app.tracking.scheduler import ClickScheduler
from linkforge_app.tracking.tracker import ClickTracker
from linkforge_app.tracking.user_agent import parse_user_agent
from linkforge_app.tracking.worker import ClickWorker

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
NO_WAIT = RetryPolicy(attempts=3, base_delay=0, max_delay=0)


def add_link(directory, code="track01"):
    return asyncio.run(directory.insert_link(LinkRecord(
        id=str(uuid.uuid4()),
        code=code,
        target="https://example.com/",
        created_at=NOW,
    )))


def click_count(directory, link_id):
    return asyncio.run(directory.get_by_id(link_id)).click_count


class TestClickTracker:
    """Event insert + counter increment, each best-effort and independent"""

    def test_records_event_then_increments(self):
        directory = InMemoryLinkDirectory()
        link = add_link(directory)
        tracker = ClickTracker(directory, NO_WAIT, clock=lambda: NOW)

        result = asyncio.run(tracker.track(link.id, ClickMetadata(referrer="https://t.co/")))

        assert result.event_recorded is True
        assert result.counter_incremented is True
        assert click_count(directory, link.id) == 1
        [event] = directory.events_for(link.id)
        assert event["occurred_at"] == NOW
        assert event["referrer"] == "https://t.co/"

    def test_transient_failures_are_retried(self):
        directory = FlakyDirectory(insert_event_failures=2, increment_failures=1)
        link = add_link(directory)
        tracker = ClickTracker(directory, NO_WAIT)

        result = asyncio.run(tracker.track(link.id))

        assert result.event_recorded and result.counter_incremented
        assert directory.calls["insert_event"] == 3
        assert directory.calls["increment"] == 2
        assert click_count(directory, link.id) == 1

    def test_event_failure_does_not_block_increment(self):
        directory = FlakyDirectory(insert_event_failures=-1)
        link = add_link(directory)
        tracker = ClickTracker(directory, NO_WAIT)

        result = asyncio.run(tracker.track(link.id))

        assert result.event_recorded is False
        assert result.counter_incremented is True
        assert directory.calls["insert_event"] == 3  # bounded
        assert click_count(directory, link.id) == 1

    def test_increment_failure_keeps_event(self):
        directory = FlakyDirectory(increment_failures=-1)
        link = add_link(directory)
        tracker = ClickTracker(directory, NO_WAIT)

        result = asyncio.run(tracker.track(link.id))

        assert result.event_recorded is True
        assert result.counter_incremented is False
        assert len(directory.events_for(link.id)) == 1
        assert click_count(directory, link.id) == 0

    def test_deleted_link_is_dropped_without_retry(self):
        directory = FlakyDirectory()
        tracker = ClickTracker(directory, NO_WAIT)

        result = asyncio.run(tracker.track("no-such-link"))

        assert result.event_recorded is False
        assert result.counter_incremented is False
        assert directory.calls["insert_event"] == 1
        assert directory.calls["increment"] == 1

    def test_hung_write_is_abandoned_after_timeout(self):
        class HangingIncrement(InMemoryLinkDirectory):
            async def increment_click_count(self, link_id):
                await asyncio.sleep(5)

        directory = HangingIncrement()
        link = add_link(directory)
        tracker = ClickTracker(directory, RetryPolicy(attempts=2, base_delay=0, timeout=0.05))

        result = asyncio.run(tracker.track(link.id))

        assert result.event_recorded is True
        assert result.counter_incremented is False


class TestRetry:

    def test_non_retryable_errors_propagate_immediately(self):
        calls = []

        async def operation():
            calls.append(1)
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            asyncio.run(call_with_retry(operation, NO_WAIT, "test op"))
        assert len(calls) == 1

    def test_last_error_is_raised_when_attempts_run_out(self):
        calls = []

        async def operation():
            calls.append(1)
            raise DirectoryError("down")

        with pytest.raises(DirectoryError):
            asyncio.run(call_with_retry(operation, NO_WAIT, "test op"))
        assert len(calls) == 3

    def test_backoff_is_exponential_and_capped(self):
        policy = RetryPolicy(attempts=5, base_delay=0.1, max_delay=0.3)

        assert policy.delay_for(1) == pytest.approx(0.1)
        assert policy.delay_for(2) == pytest.approx(0.2)
        assert policy.delay_for(3) == pytest.approx(0.3)
        assert policy.delay_for(4) == pytest.approx(0.3)


class RejectingQueue(InMemoryQueue):
    """Rejects the first N publishes"""

    def __init__(self, rejections):
        super().__init__()
        self.rejections = rejections
        self.attempts = 0

    async def publish(self, queue_name, message):
        self.attempts += 1
        if self.rejections:
            self.rejections -= 1
            return False
        return await super().publish(queue_name, message)


class TestDispatchers:

    def test_queue_dispatcher_retries_rejected_publish(self):
        queue = RejectingQueue(rejections=2)
        dispatcher = QueueClickDispatcher(queue, "clicks", NO_WAIT)

        asyncio.run(dispatcher.dispatch(ClickMessage(link_id="l1", code="abc1234")))

        assert queue.attempts == 3
        assert asyncio.run(queue.get_queue_length("clicks")) == 1

    def test_queue_dispatcher_drops_after_bounded_attempts(self):
        queue = RejectingQueue(rejections=10)
        dispatcher = QueueClickDispatcher(queue, "clicks", NO_WAIT)

        # Must not raise
        asyncio.run(dispatcher.dispatch(ClickMessage(link_id="l1", code="abc1234")))

        assert queue.attempts == 3
        assert asyncio.run(queue.get_queue_length("clicks")) == 0

    def test_inline_dispatcher_tracks(self):
        directory = InMemoryLinkDirectory()
        link = add_link(directory)
        dispatcher = InlineClickDispatcher(ClickTracker(directory, NO_WAIT))

        asyncio.run(dispatcher.dispatch(ClickMessage(link_id=link.id, code=link.code)))

        assert click_count(directory, link.id) == 1


class TestScheduler:

    def test_drain_waits_for_tasks(self):
        scheduler = ClickScheduler()
        done = []

        async def work():
            await asyncio.sleep(0.01)
            done.append(True)

        async def scenario():
            for _ in range(3):
                scheduler.spawn(work())
            assert scheduler.pending == 3
            await scheduler.drain()
            return scheduler.pending

        assert asyncio.run(scenario()) == 0
        assert len(done) == 3

    def test_drain_cancels_after_timeout(self):
        scheduler = ClickScheduler()

        async def scenario():
            task = scheduler.spawn(asyncio.sleep(10))
            await scheduler.drain(timeout=0.01)
            await asyncio.sleep(0)
            return task

        task = asyncio.run(scenario())

        assert task.cancelled()

    def test_failed_task_is_logged_and_forgotten(self, caplog):
        scheduler = ClickScheduler()

        async def boom():
            raise RuntimeError("tracking exploded")

        async def scenario():
            scheduler.spawn(boom(), name="click-boom")
            await scheduler.drain()

        asyncio.run(scenario())

        assert scheduler.pending == 0
        assert "click-boom" in caplog.text


class AckRecordingQueue(InMemoryQueue):
    """In-memory queue that assigns message ids and records acknowledgments"""

    def __init__(self):
        super().__init__()
        self.acked = []
        self._next_id = 0

    async def consume(self, queue_name, batch_size=1, block_time=1000):
        messages = await super().consume(queue_name, batch_size, block_time)
        for message in messages:
            self._next_id += 1
            message.message_id = f"{self._next_id}-0"
        return messages

    async def ack(self, queue_name, message_ids):
        self.acked.extend(message_ids)
        return True


class TestClickWorker:

    def test_worker_tracks_queued_clicks_and_acks(self):
        directory = InMemoryLinkDirectory()
        link = add_link(directory)
        queue = AckRecordingQueue()
        dispatcher = QueueClickDispatcher(queue, "clicks", NO_WAIT)
        worker = ClickWorker(queue, ClickTracker(directory, NO_WAIT), queue_name="clicks", batch_size=10, block_time=0)

        async def scenario():
            for _ in range(4):
                await dispatcher.dispatch(ClickMessage(
                    link_id=link.id,
                    code=link.code,
                    occurred_at=NOW,
                    metadata=ClickMetadata(client_agent="Mozilla/5.0 (X11; Linux x86_64) Firefox/121.0"),
                ))
            return await worker.process_batch()

        processed = asyncio.run(scenario())

        assert processed == 4
        assert worker.processed_count == 4
        assert queue.acked == ["1-0", "2-0", "3-0", "4-0"]
        assert click_count(directory, link.id) == 4
        assert {event["browser"] for event in directory.events_for(link.id)} == {"Firefox"}

    def test_empty_queue_processes_nothing(self):
        worker = ClickWorker(InMemoryQueue(), ClickTracker(InMemoryLinkDirectory(), NO_WAIT), block_time=0)

        assert asyncio.run(worker.process_batch()) == 0

    def test_start_runs_until_stopped(self):
        directory = InMemoryLinkDirectory()
        link = add_link(directory)
        queue = InMemoryQueue()
        worker = ClickWorker(queue, ClickTracker(directory, NO_WAIT), queue_name="clicks", block_time=10)

        async def scenario():
            await queue.publish("clicks", ClickMessage(link_id=link.id, code=link.code))
            task = asyncio.create_task(worker.start())
            for _ in range(100):
                if worker.processed_count:
                    break
                await asyncio.sleep(0.01)
            worker.stop()
            await asyncio.wait_for(task, timeout=1)

        asyncio.run(scenario())

        assert worker.running is False
        assert click_count(directory, link.id) == 1


class TestUserAgentParsing:

    @pytest.mark.parametrize("agent, expected", [
        ("Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 Chrome/120.0 Safari/537.36", ("desktop", "Chrome")),
        ("Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0 Safari/537.36 Edg/120.0", ("desktop", "Edge")),
        ("Mozilla/5.0 (Linux; Android 14; Pixel 8) Chrome/120.0 Mobile Safari/537.36", ("mobile", "Chrome")),
        ("Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) Version/17.0 Safari/604.1", ("tablet", "Safari")),
        ("Googlebot/2.1 (+http://www.google.com/bot.html)", ("bot", "Other")),
        (None, (None, None)),
    ])
    def test_parse(self, agent, expected):
        assert parse_user_agent(agent) == expected


def test_queue_strategy_is_abstract():
    with pytest.raises(TypeError):
        QueueStrategy()
