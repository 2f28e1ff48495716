"""
FastAPI dependencies for dependency injection.

Singletons (directory, queue, scheduler) are built once with @lru_cache;
services and the resolver are built per request from them, so tests can
swap any piece with app.dependency_overrides.
"""

import logging
from datetime import timedelta
from functools import lru_cache

from fastapi import Depends

from linkforge_app.config import settings
from linkforge_app.directory.factory import DirectoryBackend, DirectoryFactory
from linkforge_app.directory.strategies import LinkDirectory
from linkforge_app.queue.factory import QueueBackend, QueueFactory
from linkforge_app.queue.strategies import InMemoryQueue, QueueStrategy
from linkforge_app.retry import lookup_retry_policy, tracking_retry_policy
from linkforge_app.services.link_service import LinkService
from linkforge_app.services.resolver import RedirectResolver
from linkforge_app.services.short_code_strategies import RandomShortCodeStrategy, ShortCodeStrategy
from linkforge_app.tracking.dispatchers import (
    ClickDispatcher,
    InlineClickDispatcher,
    QueueClickDispatcher,
    TrackingMode,
)
from linkforge_app.tracking.scheduler import ClickScheduler
from linkforge_app.tracking.tracker import ClickTracker

logger = logging.getLogger(__name__)


@lru_cache()
def get_directory() -> LinkDirectory:
    """Link directory instance (singleton), backend chosen by settings"""
    return DirectoryFactory.create(DirectoryBackend(settings.directory_backend))


@lru_cache()
def get_queue() -> QueueStrategy:
    """Queue instance (singleton), backend chosen by settings"""
    return QueueFactory.create(QueueBackend(settings.queue_backend))


@lru_cache()
def get_click_scheduler() -> ClickScheduler:
    """Process-wide owner of in-flight click tasks"""
    return ClickScheduler()


@lru_cache()
def get_code_strategy() -> ShortCodeStrategy:
    return RandomShortCodeStrategy(length=settings.short_code_length)


def get_click_tracker(directory: LinkDirectory = Depends(get_directory)) -> ClickTracker:
    return ClickTracker(directory, tracking_retry_policy())


@lru_cache()
def _warn_unconsumed_queue() -> None:
    logger.error(
        "Queue tracking with an in-memory queue and no embedded worker would drop every click; "
        "tracking inline instead"
    )


def get_click_dispatcher(
    tracker: ClickTracker = Depends(get_click_tracker),
    queue: QueueStrategy = Depends(get_queue),
) -> ClickDispatcher:
    """Inline tracking or queue publish, depending on settings.tracking_mode"""
    mode = TrackingMode(settings.tracking_mode)
    if mode == TrackingMode.INLINE:
        return InlineClickDispatcher(tracker)
    if isinstance(queue, InMemoryQueue) and not settings.embedded_worker:
        # Nothing in another process can consume an in-memory queue
        _warn_unconsumed_queue()
        return InlineClickDispatcher(tracker)
    return QueueClickDispatcher(queue, settings.queue_name, tracking_retry_policy())


def get_resolver(
    directory: LinkDirectory = Depends(get_directory),
    scheduler: ClickScheduler = Depends(get_click_scheduler),
    dispatcher: ClickDispatcher = Depends(get_click_dispatcher),
) -> RedirectResolver:
    return RedirectResolver(
        directory=directory,
        scheduler=scheduler,
        dispatcher=dispatcher,
        lookup_policy=lookup_retry_policy(),
        lookup_timeout=settings.lookup_timeout_seconds,
    )


def get_link_service(
    directory: LinkDirectory = Depends(get_directory),
    code_strategy: ShortCodeStrategy = Depends(get_code_strategy),
) -> LinkService:
    return LinkService(
        directory=directory,
        code_strategy=code_strategy,
        max_code_attempts=settings.short_code_max_retries,
        guest_ttl=timedelta(days=settings.guest_link_ttl_days),
    )
