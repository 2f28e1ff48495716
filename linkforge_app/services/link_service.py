import logging
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from linkforge_app.clock import Clock, as_utc, utcnow
from linkforge_app.directory.strategies import LinkDirectory
from linkforge_app.exceptions import (
    DuplicateShortCodeError,
    InvalidExpiryError,
    LinkNotFoundError,
    ShortCodeExhaustedError,
)
from linkforge_app.schemas.link import LinkRecord, LinkStats, LinkStatus, validate_target_url
from linkforge_app.services.short_code_strategies import ShortCodeStrategy

logger = logging.getLogger(__name__)


class LinkService:
    """
    Link management: the create/activate/delete side used by the dashboard API.

    The directory and code strategy are injected, which keeps the service easy
    to test with an in-memory directory and a scripted code strategy.
    """

    def __init__(
        self,
        directory: LinkDirectory,
        code_strategy: ShortCodeStrategy,
        max_code_attempts: int = 5,
        guest_ttl: timedelta = timedelta(days=7),
        clock: Clock = utcnow,
    ):
        self.directory = directory
        self.code_strategy = code_strategy
        self.max_code_attempts = max_code_attempts
        self.guest_ttl = guest_ttl
        self.clock = clock

    async def create_link(
        self,
        target: str,
        owner: Optional[str] = None,
        custom_expiry: Optional[datetime] = None,
    ) -> LinkRecord:
        """
        Create a new short link.

        Guest links (no owner) always expire `guest_ttl` after creation.
        Owned links keep `custom_expiry` (which must be in the future) or
        never expire.

        Raises:
            InvalidTargetError: target is not an absolute http(s) URL
            InvalidExpiryError: custom expiry is not in the future
            ShortCodeExhaustedError: every candidate code collided
        """
        target = validate_target_url(target)
        now = self.clock()

        if owner is None:
            expires_at = now + self.guest_ttl
        else:
            expires_at = as_utc(custom_expiry)
            if expires_at is not None and expires_at <= now:
                raise InvalidExpiryError("Expiration date must be in the future")

        link_id = str(uuid.uuid4())
        for attempt in range(1, self.max_code_attempts + 1):
            code = self.code_strategy.generate()

            if not self.code_strategy.is_valid(code):
                logger.warning("Generated short code %r is malformed (attempt %d/%d)", code, attempt, self.max_code_attempts)
                continue

            if await self.directory.code_exists(code):
                logger.info("Short code collision on %r (attempt %d/%d)", code, attempt, self.max_code_attempts)
                continue

            record = LinkRecord(
                id=link_id,
                owner=owner,
                target=target,
                code=code,
                is_active=True,
                expires_at=expires_at,
                click_count=0,
                created_at=now,
            )
            try:
                link = await self.directory.insert_link(record)
            except DuplicateShortCodeError:
                # Taken between the check and the insert
                logger.info("Short code %r taken at commit (attempt %d/%d)", code, attempt, self.max_code_attempts)
                continue

            logger.info("Created link %s with code %r (owner=%s)", link.id, link.code, owner or "guest")
            return link

        logger.error(
            "Could not generate a unique short code after %d attempts; code space is too small",
            self.max_code_attempts,
        )
        raise ShortCodeExhaustedError(
            f"Could not generate unique short code after {self.max_code_attempts} attempts"
        )

    async def get_link(self, link_id: str) -> LinkRecord:
        link = await self.directory.get_by_id(link_id)
        if link is None:
            raise LinkNotFoundError(link_id)
        return link

    async def list_links(self, owner: str, link_status: Optional[LinkStatus] = None) -> List[LinkRecord]:
        """
        An owner's links, newest first, optionally narrowed to one status.

        Expiry wins over the active flag: a deactivated link past its expiry
        is listed as expired, not inactive.
        """
        links = await self.directory.list_links(owner)
        if link_status is None:
            return links
        now = self.clock()
        return [link for link in links if self._status_of(link, now) == link_status]

    @staticmethod
    def _status_of(link: LinkRecord, now: datetime) -> LinkStatus:
        if link.is_expired(now):
            return LinkStatus.EXPIRED
        return LinkStatus.ACTIVE if link.is_active else LinkStatus.INACTIVE

    async def get_link_by_code(self, code: str) -> Optional[LinkRecord]:
        return await self.directory.get_by_code(code)

    async def set_active(self, link_id: str, active: bool) -> LinkRecord:
        link = await self.directory.set_active(link_id, active)
        logger.info("Link %s %s", link_id, "activated" if active else "deactivated")
        return link

    async def delete_link(self, link_id: str) -> None:
        await self.directory.delete_link(link_id)
        logger.info("Deleted link %s", link_id)

    async def get_stats(self, link_id: str, days: int = 7, top_referrers: int = 10) -> LinkStats:
        """Basic click aggregation for one link over the last `days` days"""
        link = await self.get_link(link_id)
        since = self.clock() - timedelta(days=days)
        summary = await self.directory.summarize_clicks(link_id, since, top_referrers=top_referrers)
        return LinkStats(
            link_id=link.id,
            code=link.code,
            click_count=link.click_count,
            days=days,
            **summary.model_dump(),
        )
