# memorial/schemas/notification.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass(frozen=True)
class NoticeRecipient:
    email: str
    name: Optional[str]
    approve_url: str
    reject_url: str


@dataclass(frozen=True)
class ModerationNotice:
    """Everything an approver needs to act on a new submission."""
    message_id: str
    author_name: str
    content: str
    created_at: Optional[datetime]
    dashboard_url: str
    image_url: Optional[str] = None
    recipients: List[NoticeRecipient] = field(default_factory=list)
