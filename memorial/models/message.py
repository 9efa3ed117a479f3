# memorial/models/message.py
import enum
import uuid

from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func

from memorial.db.base import Base


class MessageStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Message(Base):
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    name = Column(String(80), nullable=False)
    content = Column(Text, nullable=False)

    status = Column(String(16), nullable=False, default=MessageStatus.PENDING.value, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    # Set only on a transition into "approved"
    approved_at = Column(DateTime(timezone=True), nullable=True)

    # Provenance only: no foreign key, the approver may be deleted later
    approved_by_approver_id = Column(String(36), nullable=True)

    # Capability secret for the one-click email links. Never on the public read path.
    moderation_token = Column(String(128), nullable=False)

    image_url = Column(String(512), nullable=True)
    image_public_id = Column(String(255), nullable=True)

    @property
    def status_enum(self) -> MessageStatus:
        return MessageStatus(self.status)
