"""
Scheduled notifications.

Written by the reveal scheduler and the fan-out service; an external poller
promotes pending rows to sent once send_at has elapsed.
"""
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text

from matchday.orm.base import BaseModel, PortableJSON


class NotificationStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"


class NotificationType(str, Enum):
    SURVEY_RESULTS_READY = "survey_results_ready"
    MATCH_JOIN_REQUEST = "match_join_request"
    MATCH_UPDATE = "match_update"


class ScheduledNotification(BaseModel):
    __tablename__ = "scheduled_notifications"

    recipient_ref = Column(String(100), nullable=False, index=True)
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=True, index=True)
    type = Column(String(50), nullable=False)
    title = Column(String(200), nullable=False, default="")
    message = Column(Text, nullable=False, default="")
    payload = Column(PortableJSON, nullable=False, default=dict)
    send_at = Column(DateTime, nullable=False, index=True)
    status = Column(String(20), nullable=False, default=NotificationStatus.PENDING.value)
    is_read = Column(Boolean, nullable=False, default=False)
    sent_at = Column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<ScheduledNotification(recipient={self.recipient_ref}, type={self.type}, status={self.status})>"
