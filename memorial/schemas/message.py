# memorial/schemas/message.py
"""
Pydantic schemas for messages.

Submission bodies are parsed through validate_submission(), which returns a
tagged result: either a MessageSubmission or a SubmissionInvalid carrying an
enumerated reason. Nothing downstream sees a partially validated body.
"""
import base64
import binascii
import enum
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, computed_field, field_validator
from pydantic_core import PydanticCustomError

NAME_MAX_LENGTH = 80
CONTENT_MIN_LENGTH = 10
CONTENT_MAX_LENGTH = 1000
# Encoded data URI length (~5 MB)
IMAGE_MAX_ENCODED_LENGTH = 5 * 1024 * 1024

_DATA_URI = re.compile(r"^data:(image/(?:png|jpeg|jpg|gif|webp));base64,(.+)$", re.DOTALL)

_YOUTUBE_PATTERNS = [
    re.compile(r"(?:https?://)?(?:www\.)?youtu\.be/([a-zA-Z0-9_-]{11})"),
    re.compile(r"(?:https?://)?(?:www\.)?youtube\.com/watch\?(?:[^#&\s]*&)*v=([a-zA-Z0-9_-]{11})"),
    re.compile(r"(?:https?://)?(?:www\.)?youtube\.com/embed/([a-zA-Z0-9_-]{11})"),
    re.compile(r"(?:https?://)?(?:www\.)?youtube\.com/shorts/([a-zA-Z0-9_-]{11})"),
    re.compile(r"(?:https?://)?(?:www\.)?youtube\.com/live/([a-zA-Z0-9_-]{11})"),
]


def extract_youtube_id(text: str) -> Optional[str]:
    for pattern in _YOUTUBE_PATTERNS:
        match = pattern.search(text or "")
        if match:
            return match.group(1)
    return None


class InvalidReason(str, enum.Enum):
    NAME_REQUIRED = "name_required"
    NAME_TOO_LONG = "name_too_long"
    CONTENT_TOO_SHORT = "content_too_short"
    CONTENT_TOO_LONG = "content_too_long"
    CAPTCHA_REQUIRED = "captcha_required"
    IMAGE_INVALID = "image_invalid"
    IMAGE_TOO_LARGE = "image_too_large"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class ImagePayload:
    data: bytes
    content_type: str


class MessageSubmission(BaseModel):
    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    # defaults route missing fields through the same enumerated errors as empty ones
    name: str = Field(default=None, validate_default=True)
    content: str = Field(default=None, validate_default=True)
    captcha_token: str = Field(default=None, validate_default=True)
    image: Optional[ImagePayload] = None

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, v: Any) -> str:
        if not isinstance(v, str) or not v.strip():
            raise PydanticCustomError(InvalidReason.NAME_REQUIRED.value, "Name is required.")
        v = v.strip()
        if len(v) > NAME_MAX_LENGTH:
            raise PydanticCustomError(
                InvalidReason.NAME_TOO_LONG.value,
                f"Name must be {NAME_MAX_LENGTH} characters or fewer.",
            )
        return v

    @field_validator("content", mode="before")
    @classmethod
    def validate_content(cls, v: Any) -> str:
        v = v.strip() if isinstance(v, str) else ""
        if len(v) < CONTENT_MIN_LENGTH:
            raise PydanticCustomError(
                InvalidReason.CONTENT_TOO_SHORT.value,
                f"Message must be at least {CONTENT_MIN_LENGTH} characters.",
            )
        if len(v) > CONTENT_MAX_LENGTH:
            raise PydanticCustomError(
                InvalidReason.CONTENT_TOO_LONG.value,
                f"Message must be {CONTENT_MAX_LENGTH} characters or fewer.",
            )
        return v

    @field_validator("captcha_token", mode="before")
    @classmethod
    def validate_captcha_token(cls, v: Any) -> str:
        if not isinstance(v, str) or not v:
            raise PydanticCustomError(InvalidReason.CAPTCHA_REQUIRED.value, "CAPTCHA verification required.")
        return v

    @field_validator("image", mode="before")
    @classmethod
    def decode_image(cls, v: Any) -> Optional[ImagePayload]:
        """Accept a "data:image/...;base64,..." URI and decode it."""
        if v is None or v == "":
            return None
        if isinstance(v, ImagePayload):
            return v
        if not isinstance(v, str):
            raise PydanticCustomError(InvalidReason.IMAGE_INVALID.value, "Image must be a base64 data URI.")
        if len(v) > IMAGE_MAX_ENCODED_LENGTH:
            raise PydanticCustomError(InvalidReason.IMAGE_TOO_LARGE.value, "Image must be 5 MB or smaller.")

        match = _DATA_URI.match(v)
        if not match:
            raise PydanticCustomError(InvalidReason.IMAGE_INVALID.value, "Image must be a base64 data URI.")
        try:
            data = base64.b64decode(match.group(2), validate=True)
        except (binascii.Error, ValueError):
            raise PydanticCustomError(InvalidReason.IMAGE_INVALID.value, "Image data is not valid base64.")
        if not data:
            raise PydanticCustomError(InvalidReason.IMAGE_INVALID.value, "Image is empty.")

        content_type = match.group(1).replace("image/jpg", "image/jpeg")
        return ImagePayload(data=data, content_type=content_type)


@dataclass(frozen=True)
class SubmissionInvalid:
    reason: InvalidReason
    message: str


def validate_submission(raw: Any) -> Union[MessageSubmission, SubmissionInvalid]:
    if not isinstance(raw, dict):
        return SubmissionInvalid(InvalidReason.MALFORMED, "Request body must be a JSON object.")
    try:
        return MessageSubmission.model_validate(raw)
    except ValidationError as exc:
        first = exc.errors()[0]
        try:
            reason = InvalidReason(first["type"])
            message = first["msg"]
        except ValueError:
            reason = InvalidReason.MALFORMED
            message = "Request body is malformed."
        return SubmissionInvalid(reason, message)


# ── Responses ────────────────────────────────────────────────────────────────
class MessagePublic(BaseModel):
    """Public read path. Never includes the moderation token."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    content: str
    created_at: Optional[datetime] = None
    image_url: Optional[str] = None

    @computed_field
    @property
    def video_id(self) -> Optional[str]:
        return extract_youtube_id(self.content)


class MessageAdminView(MessagePublic):
    status: str
    approved_at: Optional[datetime] = None
    approved_by_approver_id: Optional[str] = None
    # "unknown" when the approver has since been deleted
    approved_by_name: Optional[str] = None


class MessageSummary(BaseModel):
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    total: int = 0


class SubmissionAccepted(BaseModel):
    success: bool = True
    id: str
    status: str


class ModerationOutcome(BaseModel):
    id: str
    status: str
    outcome: str
    approved_at: Optional[datetime] = None
    approved_by_approver_id: Optional[str] = None


class StatusFilter(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
