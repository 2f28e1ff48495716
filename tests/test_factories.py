"""
Tests for backend factories and their singleton caching.
"""

import pytest

from linkforge_app.config import settings
from linkforge_app.dependencies import get_click_dispatcher
from linkforge_app.directory.factory import DirectoryBackend, DirectoryFactory
from linkforge_app.directory.strategies import InMemoryLinkDirectory, SQLAlchemyLinkDirectory
from linkforge_app.queue.factory import QueueBackend, QueueFactory
from linkforge_app.queue.strategies import InMemoryQueue
from linkforge_app.retry import RetryPolicy
from linkforge_app.tracking.dispatchers import InlineClickDispatcher, QueueClickDispatcher
from linkforge_app.tracking.tracker import ClickTracker


@pytest.fixture(autouse=True)
def fresh_factories():
    DirectoryFactory.clear_instance()
    QueueFactory.clear_instance()
    yield
    DirectoryFactory.clear_instance()
    QueueFactory.clear_instance()


class TestDirectoryFactory:

    def test_memory_backend(self):
        assert isinstance(DirectoryFactory.create(DirectoryBackend.MEMORY), InMemoryLinkDirectory)

    def test_sql_backend(self):
        assert isinstance(DirectoryFactory.create(DirectoryBackend.SQL), SQLAlchemyLinkDirectory)

    def test_instance_is_cached(self):
        first = DirectoryFactory.create(DirectoryBackend.MEMORY)

        assert DirectoryFactory.create(DirectoryBackend.MEMORY) is first

    def test_backend_from_settings_value(self):
        assert DirectoryBackend("memory") is DirectoryBackend.MEMORY
        with pytest.raises(ValueError):
            DirectoryBackend("mongo")


class TestQueueFactory:

    def test_memory_backend(self):
        assert isinstance(QueueFactory.create(QueueBackend.MEMORY), InMemoryQueue)

    def test_unreachable_redis_falls_back_to_memory(self, monkeypatch):
        monkeypatch.setattr(settings, "redis_url", "redis://127.0.0.1:1/0")

        queue = QueueFactory.create(QueueBackend.REDIS_STREAMS)

        assert isinstance(queue, InMemoryQueue)

    def test_clear_instance(self):
        first = QueueFactory.create(QueueBackend.MEMORY)
        QueueFactory.clear_instance()

        assert QueueFactory.create(QueueBackend.MEMORY) is not first


class TestClickDispatcherSelection:

    @pytest.fixture
    def tracker(self):
        return ClickTracker(InMemoryLinkDirectory(), RetryPolicy(attempts=1, base_delay=0, max_delay=0))

    def test_memory_queue_with_embedded_worker_publishes(self, monkeypatch, tracker):
        monkeypatch.setattr(settings, "tracking_mode", "queue")
        monkeypatch.setattr(settings, "embedded_worker", True)

        dispatcher = get_click_dispatcher(tracker, InMemoryQueue())

        assert isinstance(dispatcher, QueueClickDispatcher)

    def test_memory_queue_without_worker_tracks_inline(self, monkeypatch, tracker):
        monkeypatch.setattr(settings, "tracking_mode", "queue")
        monkeypatch.setattr(settings, "embedded_worker", False)

        dispatcher = get_click_dispatcher(tracker, InMemoryQueue())

        assert isinstance(dispatcher, InlineClickDispatcher)

    def test_redis_fallback_without_worker_still_counts_clicks(self, monkeypatch, tracker):
        monkeypatch.setattr(settings, "redis_url", "redis://127.0.0.1:1/0")
        monkeypatch.setattr(settings, "tracking_mode", "queue")
        monkeypatch.setattr(settings, "embedded_worker", False)

        queue = QueueFactory.create(QueueBackend.REDIS_STREAMS)
        dispatcher = get_click_dispatcher(tracker, queue)

        assert isinstance(queue, InMemoryQueue)
        assert isinstance(dispatcher, InlineClickDispatcher)

    def test_inline_mode_ignores_queue(self, monkeypatch, tracker):
        monkeypatch.setattr(settings, "tracking_mode", "inline")

        assert isinstance(get_click_dispatcher(tracker, InMemoryQueue()), InlineClickDispatcher)
