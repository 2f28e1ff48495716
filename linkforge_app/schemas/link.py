from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, TypeAdapter, ValidationError, computed_field, field_validator

from linkforge_app.clock import as_utc
from linkforge_app.config import settings
from linkforge_app.exceptions import InvalidTargetError

_http_url = TypeAdapter(HttpUrl)


def validate_target_url(value: str) -> str:
    """
    Check that `value` is an absolute http(s) URL and return it untouched.

    HttpUrl is only used as a validator: it normalizes (e.g. adds a trailing
    slash), and redirects must go to the exact string the owner submitted.
    The string is sent as the Location header as-is, so only printable ASCII
    is accepted; non-ASCII characters must be percent-encoded by the caller.
    """
    if not value or value != value.strip():
        raise InvalidTargetError("Target URL must be a non-empty absolute URL without surrounding whitespace")
    if any(not "!" <= char <= "~" for char in value):
        raise InvalidTargetError("Target URL must be printable ASCII (percent-encode spaces and non-ASCII characters)")
    try:
        _http_url.validate_python(value)
    except ValidationError as exc:
        raise InvalidTargetError(f"Invalid target URL: {value!r}") from exc
    return value


class LinkRecord(BaseModel):
    """Read-only snapshot of a link as stored in the directory"""
    id: str
    owner: Optional[str] = None
    target: str
    code: str
    is_active: bool = True
    expires_at: Optional[datetime] = None
    click_count: int = 0
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    def is_expired(self, now: datetime) -> bool:
        expires_at = as_utc(self.expires_at)
        return expires_at is not None and expires_at <= now


class LinkCreate(BaseModel):
    target: str = Field(..., description="Absolute http(s) URL to redirect to")
    owner: Optional[str] = Field(None, description="Account id from the identity provider; omit for guest links")
    expires_at: Optional[datetime] = Field(None, description="Custom expiry for owned links")

    @field_validator("target")
    @classmethod
    def check_target(cls, value: str) -> str:
        return validate_target_url(value)


class LinkStatus(str, Enum):
    """Dashboard filter over an owner's links"""
    ACTIVE = "active"  # Enabled and not expired
    INACTIVE = "inactive"  # Deactivated by the owner
    EXPIRED = "expired"


class LinkActiveUpdate(BaseModel):
    is_active: bool


class LinkResponse(LinkRecord):
    """Response schema for management endpoints"""

    @computed_field
    @property
    def short_url(self) -> str:
        return f"{settings.base_url}/{self.code}"


class ClickMetadata(BaseModel):
    """Request-derived metadata attached to a click. Every field is optional."""
    client_agent: Optional[str] = None
    referrer: Optional[str] = None
    source_ip: Optional[str] = None


class DailyClicks(BaseModel):
    date: str
    count: int


class ReferrerCount(BaseModel):
    referrer: str
    count: int


class ClickSummary(BaseModel):
    """Aggregates over a link's recorded click events"""
    total_events: int = 0
    clicks_over_time: List[DailyClicks] = []
    by_device: Dict[str, int] = {}
    by_browser: Dict[str, int] = {}
    top_referrers: List[ReferrerCount] = []


class LinkStats(ClickSummary):
    link_id: str
    code: str
    click_count: int
    days: int
