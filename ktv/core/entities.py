"""
Snapshot records for KTV Request Hub.

These are the plain in-memory shapes the queue, ranking and lifecycle logic
operate on. Stores map database rows into them and back.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Set


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    USER = "USER"


class RequestStatus(str, enum.Enum):
    QUEUED = "queued"
    PLAYED = "played"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self):
        return self is not RequestStatus.QUEUED


def utcnow():
    return datetime.now(timezone.utc)


def ensure_utc(value):
    """Treat naive datetimes (SQLite drops tzinfo) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat(value):
    return value.isoformat() if value else None


@dataclass
class Song:
    """Catalog entry. The id is the catalog number printed in the song book."""

    id: str
    title: str
    artist: str
    language: str = "Unknown"
    added_at: Optional[datetime] = None
    is_deleted: bool = False
    tags: List[str] = field(default_factory=list)

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "language": self.language,
            "tags": list(self.tags),
            "added_at": isoformat(self.added_at),
            "is_deleted": self.is_deleted,
        }


@dataclass
class SongRequest:
    """A single resident's request to sing one song."""

    id: str
    song_id: str
    user_id: str
    requested_at: datetime
    status: RequestStatus = RequestStatus.QUEUED
    key_shift: Optional[int] = None

    def to_dict(self):
        return {
            "id": self.id,
            "song_id": self.song_id,
            "user_id": self.user_id,
            "requested_at": isoformat(self.requested_at),
            "status": self.status.value,
            "key_shift": self.key_shift,
        }


@dataclass
class User:
    id: str
    email: str
    name: str
    building: str = "A"
    floor: str = ""
    door: str = ""
    role: Role = Role.USER
    is_suspended: bool = False
    favorites: Set[str] = field(default_factory=set)
    login_count: int = 0
    last_login: Optional[datetime] = None

    @property
    def is_admin(self):
        return self.role == Role.ADMIN

    @property
    def residence(self):
        # Rendered as e.g. "A76-19F" next to queue entries
        return f"{self.building}{self.door}-{self.floor}F"

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "building": self.building,
            "floor": self.floor,
            "door": self.door,
            "role": self.role.value,
            "is_suspended": self.is_suspended,
            "favorites": sorted(self.favorites),
            "login_count": self.login_count,
            "last_login": isoformat(self.last_login),
        }


FEEDBACK_TYPES = ("issue", "suggestion", "praise", "other")


@dataclass
class Feedback:
    id: Optional[int]
    name: str
    email: str
    phone: str
    type: str
    content: str
    created_at: Optional[datetime] = None
    user_id: Optional[str] = None
    is_read: bool = False

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "type": self.type,
            "content": self.content,
            "created_at": isoformat(self.created_at),
            "is_read": self.is_read,
        }
