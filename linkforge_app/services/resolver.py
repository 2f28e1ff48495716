import asyncio
import logging
from typing import Optional

from linkforge_app.clock import Clock, utcnow
from linkforge_app.directory.strategies import LinkDirectory
from linkforge_app.exceptions import DirectoryError
from linkforge_app.queue.models import ClickMessage
from linkforge_app.retry import RetryPolicy, call_with_retry
from linkforge_app.schemas.link import ClickMetadata, LinkRecord
from linkforge_app.services.outcomes import GoneReason, Outcome
from linkforge_app.tracking.dispatchers import ClickDispatcher
from linkforge_app.tracking.scheduler import ClickScheduler

logger = logging.getLogger(__name__)


class RedirectResolver:
    """
    Turns a short code into exactly one Outcome.

    Flow:
    1. Look up the code in the directory (bounded by `lookup_timeout`)
    2. Apply lifecycle policy: inactive → Gone, expired → Gone
    3. On success, spawn the click-tracking task and return the redirect
       without waiting for it

    Lookup failures become InternalError, never NotFound: an outage must not
    look like a missing link. The resolver keeps no state between calls.
    """

    def __init__(
        self,
        directory: LinkDirectory,
        scheduler: Optional[ClickScheduler] = None,
        dispatcher: Optional[ClickDispatcher] = None,
        lookup_policy: Optional[RetryPolicy] = None,
        lookup_timeout: float = 2.0,
        clock: Clock = utcnow,
    ):
        self.directory = directory
        self.scheduler = scheduler
        self.dispatcher = dispatcher
        self.lookup_policy = lookup_policy or RetryPolicy(attempts=1)
        self.lookup_timeout = lookup_timeout
        self.clock = clock

    async def resolve(self, code: str, metadata: Optional[ClickMetadata] = None) -> Outcome:
        if not code:
            return Outcome.not_found()

        try:
            link = await asyncio.wait_for(self._lookup(code), timeout=self.lookup_timeout)
        except asyncio.TimeoutError:
            logger.error("Lookup for code %r timed out after %.2fs", code, self.lookup_timeout)
            return Outcome.internal_error()
        except DirectoryError:
            logger.error("Lookup for code %r failed", code, exc_info=True)
            return Outcome.internal_error()
        except Exception:
            logger.exception("Unexpected error looking up code %r", code)
            return Outcome.internal_error()

        if link is None:
            logger.debug("Code %r not found", code)
            return Outcome.not_found()

        if not link.is_active:
            logger.info("Code %r is gone: deactivated (link %s)", code, link.id)
            return Outcome.gone(GoneReason.DEACTIVATED, link.id)

        now = self.clock()
        if link.is_expired(now):
            logger.info("Code %r is gone: expired at %s (link %s)", code, link.expires_at, link.id)
            return Outcome.gone(GoneReason.EXPIRED, link.id)

        self._schedule_click(link, metadata, now)
        return Outcome.redirect(link.target, link.id)

    async def _lookup(self, code: str) -> Optional[LinkRecord]:
        return await call_with_retry(
            lambda: self.directory.get_by_code(code),
            self.lookup_policy,
            f"Lookup for code {code!r}",
        )

    def _schedule_click(self, link: LinkRecord, metadata: Optional[ClickMetadata], now) -> None:
        if self.scheduler is None or self.dispatcher is None:
            return

        message = ClickMessage(
            link_id=link.id,
            code=link.code,
            occurred_at=now,
            metadata=metadata or ClickMetadata(),
        )
        try:
            self.scheduler.spawn(self.dispatcher.dispatch(message), name=f"click-{link.code}")
        except Exception:
            # The redirect is already decided; losing one click is acceptable
            logger.exception("Could not schedule click tracking for code %r", link.code)
