"""
Data models for queue messages.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from linkforge_app.clock import utcnow
from linkforge_app.schemas.link import ClickMetadata


class ClickMessage(BaseModel):
    """
    One resolved redirect waiting to be tracked.

    Published when a short code resolves; the worker turns it into a click
    event row plus a counter increment.
    """

    link_id: str = Field(..., description="Id of the resolved link")
    code: str = Field(..., description="The short code that was accessed")
    occurred_at: datetime = Field(default_factory=utcnow, description="When the redirect was served")
    metadata: ClickMetadata = Field(default_factory=ClickMetadata)

    # Set by the queue on consume, used for acknowledgment
    message_id: Optional[str] = Field(None, exclude=True)

    model_config = {
        "json_schema_extra": {
            "example": {
                "link_id": "1b4e28ba-2fa1-11d2-883f-0016d3cca427",
                "code": "abc1234",
                "occurred_at": "2025-10-29T10:30:00+00:00",
                "metadata": {
                    "client_agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0",
                    "referrer": "https://twitter.com",
                    "source_ip": "192.168.1.1",
                },
            }
        }
    }
