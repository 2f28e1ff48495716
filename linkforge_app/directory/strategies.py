"""
Link directory strategies using Strategy Pattern.

The directory is the only shared mutable resource of the redirect core.
Everything above it (resolver, tracker, link service) talks to this narrow
async interface and never sees the storage library underneath:

- SQLAlchemyLinkDirectory: any SQLAlchemy database (SQLite, PostgreSQL)
- InMemoryLinkDirectory: development and tests
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import Counter
from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from linkforge_app.clock import as_utc
from linkforge_app.exceptions import DirectoryError, DuplicateShortCodeError, LinkForgeError, LinkNotFoundError
from linkforge_app.models.link import ClickEvent, Link
from linkforge_app.schemas.link import ClickMetadata, ClickSummary, DailyClicks, LinkRecord, ReferrerCount

logger = logging.getLogger(__name__)


class LinkDirectory(ABC):
    """
    Abstract base class for link directories.

    Read side (redirect path): get_by_code.
    Write side (click tracking): insert_click_event, increment_click_count.
    Management side: insert_link, list_links, set_active, delete_link, summarize_clicks.

    Transient storage failures raise DirectoryError; callers decide whether
    to retry. Lookups are case-sensitive exact matches on `code`.
    """

    @abstractmethod
    async def get_by_code(self, code: str) -> Optional[LinkRecord]:
        """Return the link for `code` or None"""
        pass

    @abstractmethod
    async def get_by_id(self, link_id: str) -> Optional[LinkRecord]:
        """Return the link with `link_id` or None"""
        pass

    @abstractmethod
    async def code_exists(self, code: str) -> bool:
        """Check whether `code` is already assigned"""
        pass

    @abstractmethod
    async def insert_link(self, record: LinkRecord) -> LinkRecord:
        """
        Store a new link.

        Raises:
            DuplicateShortCodeError: if the code was taken at commit time
        """
        pass

    @abstractmethod
    async def set_active(self, link_id: str, active: bool) -> LinkRecord:
        """Flip the active flag. Raises LinkNotFoundError."""
        pass

    @abstractmethod
    async def delete_link(self, link_id: str) -> None:
        """Delete a link and its click events. Raises LinkNotFoundError."""
        pass

    @abstractmethod
    async def list_links(self, owner: str) -> List[LinkRecord]:
        """Links belonging to `owner`, newest first"""
        pass

    @abstractmethod
    async def insert_click_event(
        self,
        link_id: str,
        occurred_at: datetime,
        metadata: ClickMetadata,
        device_type: Optional[str] = None,
        browser: Optional[str] = None,
    ) -> None:
        """Append one click event. Raises LinkNotFoundError if the link is gone."""
        pass

    @abstractmethod
    async def increment_click_count(self, link_id: str) -> None:
        """Add exactly 1 to click_count. Raises LinkNotFoundError if the link is gone."""
        pass

    @abstractmethod
    async def summarize_clicks(self, link_id: str, since: datetime, top_referrers: int = 10) -> ClickSummary:
        """Aggregate click events (per day since `since`, by device, browser, referrer)"""
        pass

    def close(self) -> None:
        """Release resources held by the directory (no-op by default)"""


class SQLAlchemyLinkDirectory(LinkDirectory):
    """
    SQLAlchemy implementation.

    Each call opens its own short-lived session from the factory and runs in
    a worker thread, so concurrent requests never share a session and the
    event loop is never blocked by the (synchronous) driver. Connection
    reuse and stale-connection handling belong to the engine's pool.

    Request-path calls (lookups, management) and click-tracking writes run
    on separate thread pools. Slow or backed-up tracking writes can only
    exhaust their own pool, never the threads redirect lookups need.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        request_executor: Optional[Executor] = None,
        tracking_executor: Optional[Executor] = None,
    ):
        self.session_factory = session_factory
        self.request_executor = request_executor or ThreadPoolExecutor(
            max_workers=8, thread_name_prefix="directory-request"
        )
        self.tracking_executor = tracking_executor or ThreadPoolExecutor(
            max_workers=4, thread_name_prefix="directory-tracking"
        )

    async def _on_request_pool(self, fn, *args):
        return await asyncio.get_running_loop().run_in_executor(self.request_executor, fn, *args)

    async def _on_tracking_pool(self, fn, *args):
        return await asyncio.get_running_loop().run_in_executor(self.tracking_executor, fn, *args)

    def close(self) -> None:
        """Release both thread pools; queued tracking writes are abandoned"""
        self.request_executor.shutdown(wait=False, cancel_futures=True)
        self.tracking_executor.shutdown(wait=False, cancel_futures=True)

    @contextmanager
    def _session_scope(self):
        db: Session = self.session_factory()
        try:
            yield db
        except LinkForgeError:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            raise DirectoryError(f"Directory operation failed: {exc}") from exc
        finally:
            db.close()

    async def get_by_code(self, code: str) -> Optional[LinkRecord]:
        return await self._on_request_pool(self._get_by_code, code)

    def _get_by_code(self, code: str) -> Optional[LinkRecord]:
        with self._session_scope() as db:
            link = db.query(Link).filter(Link.code == code).first()
            return LinkRecord.model_validate(link) if link else None

    async def get_by_id(self, link_id: str) -> Optional[LinkRecord]:
        return await self._on_request_pool(self._get_by_id, link_id)

    def _get_by_id(self, link_id: str) -> Optional[LinkRecord]:
        with self._session_scope() as db:
            link = db.get(Link, link_id)
            return LinkRecord.model_validate(link) if link else None

    async def code_exists(self, code: str) -> bool:
        return await self._on_request_pool(self._code_exists, code)

    def _code_exists(self, code: str) -> bool:
        with self._session_scope() as db:
            return db.query(Link.id).filter(Link.code == code).first() is not None

    async def list_links(self, owner: str) -> List[LinkRecord]:
        return await self._on_request_pool(self._list_links, owner)

    def _list_links(self, owner: str) -> List[LinkRecord]:
        with self._session_scope() as db:
            links = db.query(Link).filter(Link.owner == owner).order_by(Link.created_at.desc(), Link.id).all()
            return [LinkRecord.model_validate(link) for link in links]

    async def insert_link(self, record: LinkRecord) -> LinkRecord:
        return await self._on_request_pool(self._insert_link, record)

    def _insert_link(self, record: LinkRecord) -> LinkRecord:
        with self._session_scope() as db:
            link = Link(
                id=record.id,
                owner=record.owner,
                target=record.target,
                code=record.code,
                is_active=record.is_active,
                expires_at=record.expires_at,
                click_count=record.click_count,
            )
            if record.created_at is not None:
                link.created_at = record.created_at
            db.add(link)
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                # The unique index on code is the commit-time uniqueness check
                raise DuplicateShortCodeError(record.code) from exc
            db.refresh(link)
            return LinkRecord.model_validate(link)

    async def set_active(self, link_id: str, active: bool) -> LinkRecord:
        return await self._on_request_pool(self._set_active, link_id, active)

    def _set_active(self, link_id: str, active: bool) -> LinkRecord:
        with self._session_scope() as db:
            link = db.get(Link, link_id)
            if link is None:
                raise LinkNotFoundError(link_id)
            link.is_active = active
            db.commit()
            db.refresh(link)
            return LinkRecord.model_validate(link)

    async def delete_link(self, link_id: str) -> None:
        await self._on_request_pool(self._delete_link, link_id)

    def _delete_link(self, link_id: str) -> None:
        with self._session_scope() as db:
            link = db.get(Link, link_id)
            if link is None:
                raise LinkNotFoundError(link_id)
            db.delete(link)  # cascades to click_events
            db.commit()

    async def insert_click_event(
        self,
        link_id: str,
        occurred_at: datetime,
        metadata: ClickMetadata,
        device_type: Optional[str] = None,
        browser: Optional[str] = None,
    ) -> None:
        await self._on_tracking_pool(
            self._insert_click_event, link_id, occurred_at, metadata, device_type, browser
        )

    def _insert_click_event(
        self,
        link_id: str,
        occurred_at: datetime,
        metadata: ClickMetadata,
        device_type: Optional[str],
        browser: Optional[str],
    ) -> None:
        with self._session_scope() as db:
            db.add(ClickEvent(
                link_id=link_id,
                occurred_at=occurred_at,
                client_agent=metadata.client_agent,
                referrer=metadata.referrer,
                source_ip=metadata.source_ip,
                device_type=device_type,
                browser=browser,
            ))
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                # Foreign key violation: the link was deleted after the redirect
                raise LinkNotFoundError(link_id) from exc

    async def increment_click_count(self, link_id: str) -> None:
        await self._on_tracking_pool(self._increment_click_count, link_id)

    def _increment_click_count(self, link_id: str) -> None:
        with self._session_scope() as db:
            # Single atomic UPDATE; concurrent increments never lose each other
            result = db.execute(
                update(Link)
                .where(Link.id == link_id)
                .values(click_count=Link.click_count + 1)
            )
            db.commit()
            if result.rowcount == 0:
                raise LinkNotFoundError(link_id)

    async def summarize_clicks(self, link_id: str, since: datetime, top_referrers: int = 10) -> ClickSummary:
        return await self._on_request_pool(self._summarize_clicks, link_id, since, top_referrers)

    def _summarize_clicks(self, link_id: str, since: datetime, top_referrers: int) -> ClickSummary:
        with self._session_scope() as db:
            total = db.query(func.count(ClickEvent.id)).filter(ClickEvent.link_id == link_id).scalar()

            day = func.date(ClickEvent.occurred_at)
            over_time = (
                db.query(day.label("date"), func.count(ClickEvent.id))
                .filter(ClickEvent.link_id == link_id, ClickEvent.occurred_at >= since)
                .group_by(day)
                .order_by(day)
                .all()
            )

            by_device = (
                db.query(ClickEvent.device_type, func.count(ClickEvent.id))
                .filter(ClickEvent.link_id == link_id)
                .group_by(ClickEvent.device_type)
                .all()
            )

            by_browser = (
                db.query(ClickEvent.browser, func.count(ClickEvent.id))
                .filter(ClickEvent.link_id == link_id)
                .group_by(ClickEvent.browser)
                .all()
            )

            count = func.count(ClickEvent.id).label("count")
            referrers = (
                db.query(ClickEvent.referrer, count)
                .filter(
                    ClickEvent.link_id == link_id,
                    ClickEvent.referrer.isnot(None),
                    ClickEvent.referrer != "",
                )
                .group_by(ClickEvent.referrer)
                .order_by(count.desc())
                .limit(top_referrers)
                .all()
            )

            return ClickSummary(
                total_events=total or 0,
                clicks_over_time=[DailyClicks(date=str(row[0]), count=row[1]) for row in over_time],
                by_device={row[0] or "unknown": row[1] for row in by_device},
                by_browser={row[0] or "unknown": row[1] for row in by_browser},
                top_referrers=[ReferrerCount(referrer=row[0], count=row[1]) for row in referrers],
            )


class InMemoryLinkDirectory(LinkDirectory):
    """
    In-memory directory using Python dicts.

    Pros:
    - No database needed
    - Good for development and testing

    Cons:
    - Lost on restart
    - Not shared between processes
    """

    def __init__(self):
        self._links: Dict[str, LinkRecord] = {}
        self._ids_by_code: Dict[str, str] = {}
        self._events: List[dict] = []

    async def get_by_code(self, code: str) -> Optional[LinkRecord]:
        link_id = self._ids_by_code.get(code)
        return self._links[link_id].model_copy() if link_id else None

    async def get_by_id(self, link_id: str) -> Optional[LinkRecord]:
        link = self._links.get(link_id)
        return link.model_copy() if link else None

    async def code_exists(self, code: str) -> bool:
        return code in self._ids_by_code

    async def list_links(self, owner: str) -> List[LinkRecord]:
        owned = [link.model_copy() for link in self._links.values() if link.owner == owner]
        oldest = datetime.min.replace(tzinfo=timezone.utc)
        return sorted(owned, key=lambda link: as_utc(link.created_at) or oldest, reverse=True)

    async def insert_link(self, record: LinkRecord) -> LinkRecord:
        if record.code in self._ids_by_code:
            raise DuplicateShortCodeError(record.code)
        self._links[record.id] = record.model_copy()
        self._ids_by_code[record.code] = record.id
        return record.model_copy()

    def _require(self, link_id: str) -> LinkRecord:
        link = self._links.get(link_id)
        if link is None:
            raise LinkNotFoundError(link_id)
        return link

    async def set_active(self, link_id: str, active: bool) -> LinkRecord:
        link = self._require(link_id)
        link.is_active = active
        return link.model_copy()

    async def delete_link(self, link_id: str) -> None:
        link = self._require(link_id)
        del self._links[link_id]
        del self._ids_by_code[link.code]
        self._events = [event for event in self._events if event["link_id"] != link_id]

    async def insert_click_event(
        self,
        link_id: str,
        occurred_at: datetime,
        metadata: ClickMetadata,
        device_type: Optional[str] = None,
        browser: Optional[str] = None,
    ) -> None:
        self._require(link_id)
        self._events.append({
            "link_id": link_id,
            "occurred_at": as_utc(occurred_at),
            "device_type": device_type,
            "browser": browser,
            **metadata.model_dump(),
        })

    async def increment_click_count(self, link_id: str) -> None:
        link = self._require(link_id)
        link.click_count += 1

    def events_for(self, link_id: str) -> List[dict]:
        """Recorded events for a link (inspection helper for tests and debugging)"""
        return [event for event in self._events if event["link_id"] == link_id]

    async def summarize_clicks(self, link_id: str, since: datetime, top_referrers: int = 10) -> ClickSummary:
        events = self.events_for(link_id)
        since = as_utc(since)

        per_day = Counter(
            event["occurred_at"].date().isoformat()
            for event in events
            if event["occurred_at"] >= since
        )
        referrers = Counter(event["referrer"] for event in events if event["referrer"])

        return ClickSummary(
            total_events=len(events),
            clicks_over_time=[DailyClicks(date=day, count=per_day[day]) for day in sorted(per_day)],
            by_device=dict(Counter(event["device_type"] or "unknown" for event in events)),
            by_browser=dict(Counter(event["browser"] or "unknown" for event in events)),
            top_referrers=[
                ReferrerCount(referrer=referrer, count=count)
                for referrer, count in referrers.most_common(top_referrers)
            ],
        )
