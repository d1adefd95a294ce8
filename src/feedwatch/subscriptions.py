import logging
import sqlite3
from typing import List, Optional

from .database import Database
from .errors import (
    AlreadySubscribed,
    ChatNotFound,
    FeedNotFound,
    SubscriptionLimitExceeded,
    SubscriptionNotFound,
    UrlNotProvided,
)
from .feed import FeedResolver
from .models import Chat, Subscription

logger = logging.getLogger(__name__)

# Maximum feeds per chat
MAX_SUBSCRIPTIONS_PER_CHAT = 20


class SubscriptionManager:
    """Create, delete and list chat subscriptions"""

    def __init__(self, db: Database, resolver: FeedResolver):
        self.db = db
        self.resolver = resolver

    def create_subscription(self, chat: Chat, url: Optional[str]) -> Subscription:
        """Subscribe a chat to the feed at url.

        URL checks and feed type detection run before the write transaction is
        opened; they never touch the database. Chat and feed upserts, the
        duplicate check, the limit check and the insert share one transaction,
        so a failure leaves no new chat or feed row behind.
        """
        if url is None or not url.strip():
            raise UrlNotProvided()
        url = url.strip()

        feed_type = self.resolver.resolve(url)

        with self.db.transaction() as conn:
            stored_chat = self.db.upsert_chat(conn, chat)
            feed = self.db.create_feed(conn, url, feed_type)

            if self.db.find_subscription(conn, stored_chat.id, feed.id):
                raise AlreadySubscribed(url)

            if self.db.count_subscriptions(conn, stored_chat.id) >= MAX_SUBSCRIPTIONS_PER_CHAT:
                raise SubscriptionLimitExceeded(url)

            try:
                subscription = self.db.insert_subscription(conn, stored_chat.id, feed.id)
            except sqlite3.IntegrityError as e:
                raise AlreadySubscribed(url) from e

        logger.info(f"Chat {chat.id} subscribed to {url} ({feed_type.value})")
        return subscription

    def delete_subscription(self, chat_id: int, link: str) -> None:
        """Remove the subscription of a chat to the feed at link"""
        link = (link or "").strip()
        with self.db.transaction() as conn:
            feed = self.db.find_feed_by_link(conn, link)
            if feed is None:
                raise FeedNotFound(link)

            chat = self.db.find_chat(conn, chat_id)
            if chat is None:
                raise ChatNotFound(str(chat_id))

            if self.db.find_subscription(conn, chat.id, feed.id) is None:
                raise SubscriptionNotFound(link)

            self.db.remove_subscription(conn, chat.id, feed.id)

        logger.info(f"Chat {chat_id} unsubscribed from {link}")

    def list_subscriptions(self, chat_id: int) -> List[str]:
        """Get the feed links of a chat, sorted by link.

        An unknown chat raises ChatNotFound; a known chat without
        subscriptions returns an empty list.
        """
        with self.db.read() as conn:
            if self.db.find_chat(conn, chat_id) is None:
                raise ChatNotFound(str(chat_id))
            return self.db.get_feed_links(conn, chat_id)
