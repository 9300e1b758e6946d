from typing import List, Optional

import pytest

from rss_reader.feeds import FeedRecord


def make_feed(feed_id: str, category: Optional[str] = None, **kw) -> FeedRecord:
    return FeedRecord(id=feed_id, url=f"https://example.com/{feed_id}.xml", category=category, **kw)


def ids(records) -> List[str]:
    return [r.id for r in records]


@pytest.fixture
def nested_feeds() -> List[FeedRecord]:
    return [
        make_feed("hn", "Tech/News"),
        make_feed("lobsters", "Tech/News"),
        make_feed("pybites", "Tech/Blogs/Python"),
        make_feed("rust", "Tech/Blogs/Rust"),
        make_feed("bbc", "World"),
        make_feed("orphan"),
        make_feed("guardian", "World"),
        make_feed("lwn", "Tech"),
    ]
