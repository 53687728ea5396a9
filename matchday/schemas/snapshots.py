"""
matchday/schemas/snapshots.py
"""
from typing import Optional

from pydantic import BaseModel


class SnapshotOutcome(BaseModel):
    match_id: int
    kind: str  # participants | outcome
    created: bool
    reason: Optional[str] = None  # already_snapshotted | failed
    error: Optional[str] = None
