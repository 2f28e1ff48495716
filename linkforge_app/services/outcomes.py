from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class OutcomeKind(str, Enum):
    REDIRECT = "redirect"
    NOT_FOUND = "not_found"
    GONE = "gone"
    INTERNAL_ERROR = "internal_error"


class GoneReason(str, Enum):
    DEACTIVATED = "deactivated"
    EXPIRED = "expired"


class Outcome(BaseModel):
    """Result of resolving a short code: exactly one kind, never an exception"""
    kind: OutcomeKind
    target: Optional[str] = None
    reason: Optional[GoneReason] = None
    link_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def redirect(cls, target: str, link_id: Optional[str] = None) -> "Outcome":
        return cls(kind=OutcomeKind.REDIRECT, target=target, link_id=link_id)

    @classmethod
    def not_found(cls) -> "Outcome":
        return cls(kind=OutcomeKind.NOT_FOUND)

    @classmethod
    def gone(cls, reason: GoneReason, link_id: Optional[str] = None) -> "Outcome":
        return cls(kind=OutcomeKind.GONE, reason=reason, link_id=link_id)

    @classmethod
    def internal_error(cls) -> "Outcome":
        return cls(kind=OutcomeKind.INTERNAL_ERROR)
