from unittest.mock import MagicMock, patch

import pytest
import requests
from urllib3.exceptions import LocationParseError

from feedwatch.errors import InvalidUrl, NotAFeed
from feedwatch.feed import FeedResolver, HttpFeedValidator, feed_type_from_version, is_valid_url
from feedwatch.models import FeedType

RSS = b"""<?xml version="1.0"?>
<rss version="2.0"><channel><title>t</title><link>http://example.com</link>
<description>d</description><item><title>i</title><link>http://example.com/1</link></item>
</channel></rss>"""

ATOM = b"""<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom"><title>t</title><id>urn:x</id>
<updated>2024-01-01T00:00:00Z</updated>
<entry><title>i</title><id>urn:1</id><updated>2024-01-01T00:00:00Z</updated></entry></feed>"""

JSON_FEED = b"""{"version": "https://jsonfeed.org/version/1.1", "title": "t",
"items": [{"id": "1", "content_text": "hello"}]}"""

HTML = b"<html><head><title>Google</title></head><body>hi</body></html>"


def fake_response(content: bytes, content_type: str = "application/rss+xml", status: int = 200):
    response = MagicMock()
    response.content = content
    response.headers = {"Content-Type": content_type}
    response.status_code = status
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status} error")
    return response


class TestIsValidUrl:

    @pytest.mark.parametrize("url", [
        "http://example.com/feed",
        "https://example.com:8443/rss.xml?x=1",
    ])
    def test_valid(self, url):
        assert is_valid_url(url)

    @pytest.mark.parametrize("url", [
        "11",
        "",
        "example.com/feed",
        "http://",
        "http://exa mple.com",
        "http://example.com:99999/",
        "http://[::1/",
    ])
    def test_invalid(self, url):
        assert not is_valid_url(url)


@pytest.mark.parametrize("version, expected", [
    ("rss20", FeedType.RSS),
    ("rss10", FeedType.RSS),
    ("atom10", FeedType.ATOM),
    ("json11", FeedType.JSON),
    ("cdf", None),
    ("", None),
])
def test_feed_type_from_version(version, expected):
    assert feed_type_from_version(version) == expected


class TestHttpFeedValidator:

    @pytest.mark.parametrize("content, content_type, expected", [
        (RSS, "application/rss+xml", FeedType.RSS),
        (ATOM, "application/atom+xml", FeedType.ATOM),
        (JSON_FEED, "application/feed+json", FeedType.JSON),
        (HTML, "text/html", None),
    ])
    def test_detects_type(self, content, content_type, expected):
        response = fake_response(content, content_type)
        with patch("feedwatch.feed.requests.get", return_value=response) as get:
            assert HttpFeedValidator(timeout=5).detect_type("http://example.com/feed") == expected
        assert get.call_args.kwargs["timeout"] == 5

    def test_http_error_is_not_a_feed(self):
        with patch("feedwatch.feed.requests.get", return_value=fake_response(RSS, status=404)):
            assert HttpFeedValidator().detect_type("http://example.com/feed") is None

    def test_network_error_is_not_a_feed(self):
        with patch("feedwatch.feed.requests.get", side_effect=requests.ConnectionError("down")):
            assert HttpFeedValidator().detect_type("http://example.com/feed") is None

    def test_unparsable_host_is_not_a_feed(self):
        url = "http://" + "a" * 70 + ".com/feed"
        assert is_valid_url(url)

        with patch("feedwatch.feed.requests.get", side_effect=LocationParseError(url)):
            with pytest.raises(NotAFeed):
                FeedResolver(HttpFeedValidator()).resolve(url)


class TestFeedResolver:

    def test_resolve(self):
        validator = MagicMock()
        validator.detect_type.return_value = FeedType.ATOM

        assert FeedResolver(validator).resolve("http://example.com/atom") == FeedType.ATOM
        validator.detect_type.assert_called_once_with("http://example.com/atom")

    def test_invalid_url_skips_validator(self):
        validator = MagicMock()

        with pytest.raises(InvalidUrl):
            FeedResolver(validator).resolve("not a url")
        validator.detect_type.assert_not_called()

    def test_not_a_feed(self):
        validator = MagicMock()
        validator.detect_type.return_value = None

        with pytest.raises(NotAFeed):
            FeedResolver(validator).resolve("http://google.com")
