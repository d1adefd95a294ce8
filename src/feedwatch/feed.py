import logging
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import urlparse

import feedparser
import requests

from .errors import InvalidUrl, NotAFeed
from .models import FeedType

logger = logging.getLogger(__name__)

USER_AGENT = "FeedwatchBot/1.0"

# feedparser version prefix → stored feed type
_VERSION_PREFIXES = (
    ("rss", FeedType.RSS),
    ("atom", FeedType.ATOM),
    ("json", FeedType.JSON),
)


class FeedValidator(ABC):
    """Abstract base class for feed validation services"""

    @abstractmethod
    def detect_type(self, url: str) -> Optional[FeedType]:
        """Return the feed type behind url, or None if it is not a parsable feed"""
        pass


class HttpFeedValidator(FeedValidator):
    """Download a URL and classify it with feedparser"""

    def __init__(self, timeout: int = 30):
        self.timeout = timeout

    def detect_type(self, url: str) -> Optional[FeedType]:
        try:
            response = requests.get(
                url,
                headers={"User-Agent": USER_AGENT},
                timeout=self.timeout
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning(f"Failed to fetch {url}: {e}")
            return None
        except ValueError as e:
            # urllib3 rejects some hosts (e.g. labels over 63 chars) with LocationParseError
            logger.warning(f"Unusable url {url}: {e}")
            return None

        # feedparser looks headers up by lowercase name; content-type selects the JSON parser
        headers = {key.lower(): value for key, value in response.headers.items()}
        parsed = feedparser.parse(response.content, response_headers=headers)
        return feed_type_from_version(parsed.get("version", ""))


def feed_type_from_version(version: str) -> Optional[FeedType]:
    """Map a feedparser version string (rss20, atom10, json11, ...) to a FeedType"""
    for prefix, feed_type in _VERSION_PREFIXES:
        if version.startswith(prefix):
            return feed_type
    return None


def is_valid_url(url: str) -> bool:
    """Check that url is an absolute URL with a scheme and a host"""
    if not url or any(ch.isspace() for ch in url):
        return False
    try:
        parsed = urlparse(url)
        # Accessing port validates it
        parsed.port
    except ValueError:
        return False
    return bool(parsed.scheme) and bool(parsed.netloc)


class FeedResolver:
    """Validate a candidate URL and ask the validation service for its type"""

    def __init__(self, validator: FeedValidator):
        self.validator = validator

    def resolve(self, url: str) -> FeedType:
        """Return the feed type of url.

        Raises:
            InvalidUrl: url is not syntactically valid
            NotAFeed: the validation service could not confirm a feed type
        """
        if not is_valid_url(url):
            raise InvalidUrl(url)

        feed_type = self.validator.detect_type(url)
        if feed_type is None:
            raise NotAFeed(url)

        logger.debug(f"Resolved {url} as {feed_type.value}")
        return feed_type
