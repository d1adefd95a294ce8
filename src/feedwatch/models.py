from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class ChatKind(str, Enum):
    """Chat kind as stored in the database"""
    PRIVATE = "private"
    GROUP = "group"
    SUPERGROUP = "supergroup"
    UNKNOWN = "unknown"


class FeedType(str, Enum):
    """Syndication format of a feed"""
    RSS = "rss"
    ATOM = "atom"
    JSON = "json"


@dataclass
class Chat:
    """Telegram chat model"""
    id: int
    kind: ChatKind
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    title: Optional[str] = None
    invite_link: Optional[str] = None
    utc_offset_minutes: Optional[int] = None


@dataclass
class Feed:
    """Feed model, shared by every chat subscribed to the same link"""
    id: int
    link: str
    feed_type: FeedType
    created_at: datetime


@dataclass
class Subscription:
    """Chat subscription to a feed"""
    id: Optional[int]
    chat_id: int
    feed_id: int
    created_at: datetime
