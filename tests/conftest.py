from typing import Dict, Optional

import pytest

from feedwatch.database import Database
from feedwatch.feed import FeedResolver, FeedValidator
from feedwatch.models import Chat, ChatKind, FeedType
from feedwatch.subscriptions import SubscriptionManager
from feedwatch.timezone import TimezoneConfigurator


class FakeValidator(FeedValidator):
    """Answers from a fixed table instead of the network"""

    def __init__(self, feeds: Optional[Dict[str, FeedType]] = None, default: Optional[FeedType] = FeedType.RSS):
        self.feeds = feeds or {}
        self.default = default
        self.calls = []

    def detect_type(self, url: str) -> Optional[FeedType]:
        self.calls.append(url)
        return self.feeds.get(url, self.default)


@pytest.fixture
def db(tmp_path):
    return Database(tmp_path / "data.db")


@pytest.fixture
def validator():
    return FakeValidator(feeds={"http://google.com": None})


@pytest.fixture
def manager(db, validator):
    return SubscriptionManager(db, FeedResolver(validator))


@pytest.fixture
def timezones(db):
    return TimezoneConfigurator(db)


@pytest.fixture
def private_chat():
    return Chat(
        id=42,
        kind=ChatKind.PRIVATE,
        username="Username",
        first_name="First",
        last_name="Last",
    )


@pytest.fixture
def group_chat():
    return Chat(id=-100, kind=ChatKind.GROUP, title="Readers")
