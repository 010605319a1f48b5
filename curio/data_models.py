"""
Data models for the Curio client.
These models mirror the rows returned by the Curio REST backend.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


def parse_timestamp(value: Any) -> datetime:
    """Parse a backend timestamp (ISO 8601, possibly with a trailing Z)."""
    if isinstance(value, datetime):
        return value
    if not value:
        return datetime.now()
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


class NotificationType(str, Enum):
    FOLLOW = "follow"
    COMMENT = "comment"
    REPLY = "reply"
    LIKE = "like"
    ARTICLE_APPROVED = "article_approved"
    ARTICLE_REJECTED = "article_rejected"
    ARTICLE_PUBLISHED = "article_published"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Optional[str]) -> "NotificationType":
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


class InteractionKind(str, Enum):
    LIKED = "liked"
    BOOKMARKED = "bookmarked"
    IN_READING_LIST = "in_reading_list"
    FOLLOWING = "following"
    COMMENT_LIKED = "comment_liked"


@dataclass
class User:
    """Represents a user in the system."""
    id: int
    username: str
    email: str = ""
    full_name: str = ""
    role: str = "user"

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "User":
        return cls(
            id=int(data.get("user_id") or data.get("id") or 0),
            username=data.get("username") or "",
            email=data.get("email") or "",
            full_name=data.get("full_name") or "",
            role=data.get("role") or "user",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.id,
            "username": self.username,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role,
        }


@dataclass
class Notification:
    """Represents a notification."""
    id: int
    type: NotificationType
    title: str
    message: str
    link: Optional[str]
    created_at: datetime
    read: bool = False

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Notification":
        return cls(
            id=int(data.get("notification_id") or data.get("id")),
            type=NotificationType.parse(data.get("type")),
            title=data.get("title") or "",
            message=data.get("message") or "",
            link=data.get("link") or None,
            created_at=parse_timestamp(data.get("created_at")),
            read=bool(data.get("is_read") or data.get("read") or False),
        )


@dataclass
class InteractionFlags:
    """The viewer's relationship to one article."""
    liked: bool = False
    bookmarked: bool = False
    in_reading_list: bool = False


@dataclass
class Comment:
    """Represents a comment or reply on an article."""
    id: int
    parent_id: Optional[int]
    article_id: Optional[int]
    author_id: Optional[int]
    author: str
    content: str
    like_count: int
    created_at: datetime
    replies: List["Comment"] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Comment":
        parent = data.get("parent_comment_id")
        return cls(
            id=int(data.get("comment_id") or data.get("id")),
            parent_id=int(parent) if parent else None,
            article_id=data.get("article_id"),
            author_id=data.get("user_id"),
            author=data.get("username") or "unknown",
            content=data.get("content") or "",
            like_count=int(data.get("like_count") or 0),
            created_at=parse_timestamp(data.get("created_at")),
        )

    @property
    def is_root(self) -> bool:
        return self.parent_id is None
