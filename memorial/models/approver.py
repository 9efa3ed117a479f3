# memorial/models/approver.py
import uuid

from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.sql import func

from memorial.db.base import Base


class Approver(Base):
    __tablename__ = "approvers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)

    # Stored lower-cased and trimmed
    email = Column(String(255), unique=True, index=True, nullable=False)

    # "<hex-salt>:<hex-key>" from memorial.security.passwords. Never sent to a client.
    password_hash = Column(String(255), nullable=False)

    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
