# herald/models.py
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .utils.io_helpers import iso, parse_when, utcnow

EVERYONE = "@everyone"
MAX_BUTTONS = 5
MAX_BUTTON_LABEL = 80


class AttachmentPlacement(str, Enum):
    BEFORE_TEXT = "before_text"
    AFTER_TEXT = "after_text"

    @classmethod
    def parse(cls, raw: Any) -> "AttachmentPlacement":
        # "start"/"end" come from records written by the older panel
        val = str(raw or "").strip().lower()
        if val in ("after_text", "end", "after"):
            return cls.AFTER_TEXT
        return cls.BEFORE_TEXT


class LifecycleState(str, Enum):
    IMMEDIATE = "immediate"
    PENDING = "pending"
    SENT = "sent"
    CANCELED = "canceled"
    FAILED = "failed"


class RejectReason(str, Enum):
    MISSING_CHANNEL = "MISSING_CHANNEL"
    MISSING_CONTENT = "MISSING_CONTENT"
    INVALID_EMBED = "INVALID_EMBED"
    INVALID_TIME = "INVALID_TIME"
    PAST_TIME = "PAST_TIME"
    HORIZON_EXCEEDED = "HORIZON_EXCEEDED"


class FailureReason(str, Enum):
    CHANNEL_NOT_FOUND = "CHANNEL_NOT_FOUND"
    CHANNEL_NOT_TEXT = "CHANNEL_NOT_TEXT"
    SEND_FAILED = "SEND_FAILED"
    FOLLOWUP_FAILED = "FOLLOWUP_FAILED"


class AnnouncementRejected(Exception):
    """Raised by request validation; nothing has been written or sent yet."""

    def __init__(self, reason: RejectReason, message: str):
        super().__init__(message)
        self.reason = reason
        self.message = message


def _pick(raw: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for k in keys:
        if k in raw and raw[k] is not None:
            return raw[k]
    return default


def _int(val: Any, default: int = 0) -> int:
    try:
        return int(val)
    except (TypeError, ValueError):
        return default


@dataclass
class Button:
    label: str
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "url": self.url}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Button":
        return cls(label=str(raw.get("label") or ""), url=str(raw.get("url") or ""))


@dataclass
class EmbedSpec:
    title: Optional[str] = None
    description: Optional[str] = None
    color: Any = None  # "#rrggbb", "rrggbb" or an int; validated at render time
    image_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    footer_text: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "color": self.color,
            "image_url": self.image_url,
            "thumbnail_url": self.thumbnail_url,
            "footer_text": self.footer_text,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "EmbedSpec":
        return cls(
            title=_pick(raw, "title"),
            description=_pick(raw, "description"),
            color=_pick(raw, "color"),
            image_url=_pick(raw, "image_url", "image"),
            thumbnail_url=_pick(raw, "thumbnail_url", "thumbnail"),
            footer_text=_pick(raw, "footer_text", "footer"),
        )


@dataclass
class AttachmentFile:
    original_name: str
    stored_path: str
    size: int = 0
    mime_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original_name": self.original_name,
            "stored_path": self.stored_path,
            "size": self.size,
            "mime_type": self.mime_type,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "AttachmentFile":
        return cls(
            original_name=str(_pick(raw, "original_name", "originalname", "name", default="")),
            stored_path=str(_pick(raw, "stored_path", "path", default="")),
            size=_int(_pick(raw, "size")),
            mime_type=_pick(raw, "mime_type", "mimetype", "mimeType"),
        )


@dataclass
class Author:
    id: str
    username: str = ""
    avatar: Optional[str] = None
    timezone: str = "UTC"

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "username": self.username, "avatar": self.avatar, "timezone": self.timezone}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Author":
        return cls(
            id=str(raw.get("id") or ""),
            username=str(raw.get("username") or ""),
            avatar=raw.get("avatar"),
            timezone=str(raw.get("timezone") or "UTC"),
        )


@dataclass
class Announcement:
    """One operator-submitted message, immediate or scheduled, as kept in history."""

    channel_id: str
    text_content: str = ""
    role_mention: Optional[str] = None
    buttons: List[Button] = field(default_factory=list)
    embed: Optional[EmbedSpec] = None
    attachments: List[AttachmentFile] = field(default_factory=list)
    attachment_placement: AttachmentPlacement = AttachmentPlacement.BEFORE_TEXT
    scheduled_time: Optional[datetime] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=utcnow)
    is_scheduled: bool = False
    is_sent: bool = False
    is_canceled: bool = False
    is_failed: bool = False
    sent_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    delivered_message_id: Optional[str] = None
    failure_reason: Optional[str] = None
    author: Optional[Author] = None

    @property
    def lifecycle_state(self) -> LifecycleState:
        if self.is_canceled:
            return LifecycleState.CANCELED
        if self.is_sent:
            return LifecycleState.SENT
        if self.is_failed:
            return LifecycleState.FAILED
        if self.is_scheduled:
            return LifecycleState.PENDING
        return LifecycleState.IMMEDIATE

    def is_pending(self) -> bool:
        return self.lifecycle_state is LifecycleState.PENDING

    def is_stale(self, now: Optional[datetime] = None) -> bool:
        """Still pending although its time has already passed (e.g. during downtime)."""
        now = now or utcnow()
        return self.is_pending() and self.scheduled_time is not None and self.scheduled_time <= now

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "channel_id": self.channel_id,
            "text_content": self.text_content,
            "role_mention": self.role_mention,
            "buttons": [b.to_dict() for b in self.buttons],
            "embed": self.embed.to_dict() if self.embed else None,
            "attachments": [a.to_dict() for a in self.attachments],
            "attachment_placement": self.attachment_placement.value,
            "scheduled_time": iso(self.scheduled_time),
            "created_at": iso(self.created_at),
            "is_scheduled": self.is_scheduled,
            "is_sent": self.is_sent,
            "is_canceled": self.is_canceled,
            "is_failed": self.is_failed,
            "sent_at": iso(self.sent_at),
            "canceled_at": iso(self.canceled_at),
            "failed_at": iso(self.failed_at),
            "delivered_message_id": self.delivered_message_id,
            "failure_reason": self.failure_reason,
            "author": self.author.to_dict() if self.author else None,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Announcement":
        is_scheduled = bool(_pick(raw, "is_scheduled", "scheduled", default=False))
        # the older panel stamped scheduledTime=createdAt on immediate sends
        scheduled_time = parse_when(_pick(raw, "scheduled_time", "scheduledTime")) if is_scheduled else None
        embed_raw = raw.get("embed")
        author_raw = raw.get("author")
        message_id = _pick(raw, "delivered_message_id", "messageId")
        return cls(
            id=str(raw.get("id") or uuid.uuid4().hex),
            channel_id=str(_pick(raw, "channel_id", "channelId", default="")),
            text_content=str(_pick(raw, "text_content", "content", default="")),
            role_mention=_pick(raw, "role_mention", "roleId"),
            buttons=[Button.from_dict(b) for b in (raw.get("buttons") or []) if isinstance(b, dict)],
            embed=EmbedSpec.from_dict(embed_raw) if isinstance(embed_raw, dict) else None,
            attachments=[
                AttachmentFile.from_dict(a)
                for a in (_pick(raw, "attachments", "files", default=[]) or [])
                if isinstance(a, dict)
            ],
            attachment_placement=AttachmentPlacement.parse(
                _pick(raw, "attachment_placement", "attachmentPosition")
            ),
            scheduled_time=scheduled_time,
            created_at=parse_when(_pick(raw, "created_at", "createdAt")) or utcnow(),
            is_scheduled=is_scheduled,
            is_sent=bool(_pick(raw, "is_sent", "sent", default=False)),
            is_canceled=bool(_pick(raw, "is_canceled", "canceled", default=False)),
            is_failed=bool(raw.get("is_failed", False)),
            sent_at=parse_when(_pick(raw, "sent_at", "sentAt")),
            canceled_at=parse_when(_pick(raw, "canceled_at", "canceledAt")),
            failed_at=parse_when(raw.get("failed_at")),
            delivered_message_id=str(message_id) if message_id is not None else None,
            failure_reason=raw.get("failure_reason"),
            author=Author.from_dict(author_raw) if isinstance(author_raw, dict) else None,
        )


@dataclass
class DeliveryResult:
    delivered: bool
    message_id: Optional[str] = None
    reason: Optional[FailureReason] = None
    detail: str = ""

    @classmethod
    def ok(cls, message_id: Any) -> "DeliveryResult":
        return cls(delivered=True, message_id=str(message_id))

    @classmethod
    def failed(cls, reason: FailureReason, detail: str, message_id: Any = None) -> "DeliveryResult":
        return cls(
            delivered=False,
            message_id=str(message_id) if message_id is not None else None,
            reason=reason,
            detail=detail,
        )


@dataclass
class ScheduleResult:
    accepted: bool
    id: Optional[str] = None
    reason: Optional[RejectReason] = None
    message: str = ""


@dataclass
class CreateResult:
    accepted: bool
    id: Optional[str] = None
    reason: Optional[Any] = None  # RejectReason, or FailureReason for a failed immediate send
    message: str = ""
    delivery: Optional[DeliveryResult] = None
