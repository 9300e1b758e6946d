import asyncio

import pytest
from conftest import ids, make_feed

from rss_reader.feeds import (
    AuthError,
    CoordinatorState,
    FeedAdminSession,
    InMemoryFeedRepository,
    RepositorySessionGate,
    TransientNetworkError,
    ValidationError,
)

SECRET = "s3cret"
WINDOW = 0.02


class FlakyGate(RepositorySessionGate):
    def __init__(self, repository, admin_secret):
        super().__init__(repository, admin_secret)
        self.fail_upsert = False
        self.upserts = 0

    async def upsert(self, feed_id, url, category, is_sub, custom_title, secret):
        self.upserts += 1
        if self.fail_upsert:
            raise TransientNetworkError("store unavailable")
        await super().upsert(feed_id, url, category, is_sub, custom_title, secret)


@pytest.fixture
def repo(nested_feeds):
    return InMemoryFeedRepository(nested_feeds)


@pytest.fixture
def gate(repo):
    return FlakyGate(repo, SECRET)


@pytest.mark.asyncio
async def test_unlock_requires_matching_secret(gate):
    with pytest.raises(AuthError):
        await FeedAdminSession(gate, "wrong").unlock()
    with pytest.raises(AuthError):
        await FeedAdminSession(gate, "").unlock()

    session = FeedAdminSession(gate, SECRET)
    with pytest.raises(AuthError):
        session.move_groups(["World"])
    tree = await session.unlock()
    assert tree.top_level_names() == ["Tech", "World"]
    assert session.state == CoordinatorState.IDLE


@pytest.mark.asyncio
async def test_gestures_at_every_level_persist_one_order(gate, repo):
    session = FeedAdminSession(gate, SECRET, debounce_seconds=WINDOW)
    await session.unlock()

    session.gesture()(["World", "Tech"])
    session.gesture("Tech")(["Blogs", "News"])
    session.gesture("World", feeds=True)(["guardian", "bbc"])
    session.gesture(None, feeds=True)(["orphan"])

    tree = session.tree
    assert tree.top_level_names() == ["World", "Tech"]
    assert list(tree.root["Tech"].children) == ["Blogs", "News"]
    assert ids(tree.root["World"].feeds) == ["guardian", "bbc"]
    assert session.order_map == {"": ["World", "Tech"], "Tech": ["Blogs", "News"], "Tech/Blogs": ["Python", "Rust"]}

    await session.coordinator.wait_idle()
    assert ids(repo.list_feeds()) == ["guardian", "bbc", "pybites", "rust", "hn", "lobsters", "lwn", "orphan"]
    await session.close()


@pytest.mark.asyncio
async def test_save_feed_normalizes_category_and_refreshes(gate, repo):
    session = FeedAdminSession(gate, SECRET, debounce_seconds=WINDOW)
    await session.unlock()

    await session.save_feed(" py ", "https://example.com/py.xml", "/Tech//Blogs/", custom_title="  ")

    stored = repo.get_feed("py")
    assert stored.category == "Tech/Blogs"
    assert stored.custom_title is None
    assert "py" in ids(session.flat)
    assert ids(session.tree.node_at("Tech/Blogs").feeds) == ["py"]


@pytest.mark.asyncio
async def test_save_feed_validates_before_network(gate):
    session = FeedAdminSession(gate, SECRET)
    await session.unlock()
    with pytest.raises(ValidationError):
        await session.save_feed("", "https://example.com/x.xml")
    with pytest.raises(ValidationError):
        await session.save_feed("x", "  ")
    assert gate.upserts == 0


@pytest.mark.asyncio
async def test_failed_save_resynchronizes_list(gate, repo):
    session = FeedAdminSession(gate, SECRET)
    await session.unlock()
    repo.upsert_feed(make_feed("added-elsewhere"))
    gate.fail_upsert = True

    with pytest.raises(TransientNetworkError):
        await session.save_feed("x", "https://example.com/x.xml")
    assert ids(session.flat)[-1] == "added-elsewhere"


@pytest.mark.asyncio
async def test_pending_reorder_is_written_before_delete(gate, repo):
    session = FeedAdminSession(gate, SECRET, debounce_seconds=10)
    await session.unlock()

    session.move_groups(["World", "Tech"])
    await session.delete_feed("bbc")

    assert ids(repo.list_feeds())[0] == "guardian"
    assert ids(session.flat)[0] == "guardian"
    assert not session.coordinator.armed


class BrokenStoreGate(RepositorySessionGate):
    def __init__(self, repository, admin_secret):
        super().__init__(repository, admin_secret)
        self.list_calls = 0

    async def list(self, secret):
        self.list_calls += 1
        return await super().list(secret)

    async def upsert(self, feed_id, url, category, is_sub, custom_title, secret):
        raise RuntimeError("database is locked")

    async def reorder(self, ids, secret):
        raise TransientNetworkError("store unavailable")


class SlowReorderGate(RepositorySessionGate):
    def __init__(self, repository, admin_secret):
        super().__init__(repository, admin_secret)
        self.release = asyncio.Event()

    async def reorder(self, ids, secret):
        await self.release.wait()
        await super().reorder(ids, secret)


@pytest.mark.asyncio
async def test_failed_reorder_restores_tree_order():
    errors = []
    repo = InMemoryFeedRepository([make_feed("a", "X"), make_feed("b", "Y")])
    session = FeedAdminSession(BrokenStoreGate(repo, SECRET), SECRET, debounce_seconds=WINDOW, on_error=errors.append)
    await session.unlock()

    session.move_groups(["Y", "X"])
    assert session.tree.top_level_names() == ["Y", "X"]
    await session.coordinator.wait_idle()

    assert ids(session.flat) == ["a", "b"]
    assert session.tree.top_level_names() == ["X", "Y"]
    assert session.order_map[""] == ["X", "Y"]
    assert len(errors) == 1


@pytest.mark.asyncio
async def test_unexpected_save_error_still_resynchronizes(repo):
    gate = BrokenStoreGate(repo, SECRET)
    session = FeedAdminSession(gate, SECRET)
    await session.unlock()
    repo.upsert_feed(make_feed("added-elsewhere"))
    calls_before = gate.list_calls

    with pytest.raises(RuntimeError):
        await session.save_feed("x", "https://example.com/x.xml")

    assert gate.list_calls == calls_before + 1
    assert ids(session.flat)[-1] == "added-elsewhere"


@pytest.mark.asyncio
async def test_save_waits_for_reorder_already_in_flight(repo):
    gate = SlowReorderGate(repo, SECRET)
    session = FeedAdminSession(gate, SECRET, debounce_seconds=WINDOW)
    await session.unlock()

    session.move_groups(["World", "Tech"])
    await asyncio.sleep(WINDOW * 3)
    assert session.state == CoordinatorState.RECONCILING

    saving = asyncio.create_task(session.save_feed("c", "https://example.com/c.xml"))
    await asyncio.sleep(WINDOW)
    gate.release.set()
    await saving

    assert ids(repo.list_feeds())[0] == "bbc"
    assert ids(session.flat) == ids(repo.list_feeds())
    assert session.tree.top_level_names() == ["World", "Tech"]
