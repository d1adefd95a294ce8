"""Error types raised by the subscription core.

Every concrete error carries the single reply string shown to the user, so the
command router never needs its own mapping table.
"""


class FeedwatchError(Exception):
    """Base class for errors surfaced to the chat"""

    message = "Something went wrong"

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.message)
        self.detail = detail


# Input validation

class UrlNotProvided(FeedwatchError):
    message = "Url is not provided"


class InvalidUrl(FeedwatchError):
    message = "Invalid url"


class NotAFeed(FeedwatchError):
    message = "Url is not a feed"


class NotANumber(FeedwatchError):
    message = "Passed value is not a number"


class NotDivisibleBy30(FeedwatchError):
    message = "Offset must be divisible by 30"


class OutOfRange(FeedwatchError):
    message = "Offset must be >= -720 (UTC -12) and <= 840 (UTC +14)"


# State conflicts

class AlreadySubscribed(FeedwatchError):
    message = "Subscription already exists"


class SubscriptionLimitExceeded(FeedwatchError):
    message = "You exceeded the number of subscriptions"


class FeedNotFound(FeedwatchError):
    message = "Feed does not exist"


class ChatNotFound(FeedwatchError):
    message = "You don't have any subscriptions yet. Use /subscribe first"


class SubscriptionNotFound(FeedwatchError):
    message = "Subscription does not exist"


# Storage

class StorageError(FeedwatchError):
    message = "Something went wrong with the bot's storage"


class ConfigError(Exception):
    """Missing or invalid process configuration"""
