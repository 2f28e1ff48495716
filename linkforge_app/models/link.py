import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from linkforge_app.database.connection import Base


def _new_link_id() -> str:
    return str(uuid.uuid4())


class Link(Base):
    """
    A short link: the unit of redirection.

    `code` is the lookup key and never changes once assigned.
    A link resolves only while `is_active` is true and `expires_at` is
    either unset or in the future.
    """
    __tablename__ = "links"

    id = Column(String(36), primary_key=True, default=_new_link_id)
    owner = Column(String, nullable=True, index=True)  # None for guest links
    target = Column(String, nullable=False)
    # unique=True creates the index the redirect lookup relies on
    code = Column(String(32), unique=True, nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    click_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    click_events = relationship(
        "ClickEvent",
        back_populates="link",
        cascade="all, delete-orphan",
    )


class ClickEvent(Base):
    """One recorded redirect. Written once, never updated."""
    __tablename__ = "click_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    link_id = Column(
        String(36),
        ForeignKey("links.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    occurred_at = Column(DateTime(timezone=True), nullable=False, index=True)
    client_agent = Column(String, nullable=True)
    referrer = Column(String, nullable=True)
    source_ip = Column(String, nullable=True)
    device_type = Column(String, nullable=True)
    browser = Column(String, nullable=True)

    link = relationship("Link", back_populates="click_events")
