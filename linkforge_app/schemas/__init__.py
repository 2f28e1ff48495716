from .link import (
    ClickMetadata,
    ClickSummary,
    DailyClicks,
    LinkActiveUpdate,
    LinkCreate,
    LinkRecord,
    LinkResponse,
    LinkStats,
    ReferrerCount,
    validate_target_url,
)

__all__ = [
    "ClickMetadata",
    "ClickSummary",
    "DailyClicks",
    "LinkActiveUpdate",
    "LinkCreate",
    "LinkRecord",
    "LinkResponse",
    "LinkStats",
    "ReferrerCount",
    "validate_target_url",
]
