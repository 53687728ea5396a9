"""
matchday/schemas/notifications.py
Results of notification fan-out and reveal scheduling
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class FanoutTier(str, Enum):
    PROCEDURE = "procedure"
    DIRECT = "direct"
    FAILED = "failed"


class FanoutResult(BaseModel):
    match_id: int
    tier: FanoutTier
    delivered: int = Field(0, ge=0)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.tier != FanoutTier.FAILED


class ScheduleReport(BaseModel):
    """Per-recipient reveal notifications written for one match."""
    match_id: int
    send_at: datetime
    scheduled: int = Field(0, ge=0)
    skipped: int = Field(0, ge=0, description="Recipients already holding a reveal notification")
    failed: int = Field(0, ge=0)
