"""Service-level checks for the lost-race branches that routes cannot reach."""
import pytest

from miniwiki.database import build_engine, build_session_maker, init_db
from miniwiki.models import WikiPage
from miniwiki.schemas import UserRead
from miniwiki.services.pages import EditForbidden, PageService, comment_length
from miniwiki.users import UsernameTaken, UserStore, build_password_hasher


@pytest.fixture
async def session_maker(settings):
    engine = build_engine(settings.DATABASE_URL)
    await init_db(engine, True)
    try:
        yield build_session_maker(engine)
    finally:
        await engine.dispose()


@pytest.fixture
def hasher():
    return build_password_hasher(4)


async def _make_user(session_maker, hasher, username):
    async with session_maker() as session:
        user = await UserStore(session, hasher).create(username, "pw")
        return UserRead.model_validate(user)


async def _make_page(session_maker, author, slug, content):
    async with session_maker() as session:
        await PageService(session).save_page(author, slug, content)


async def _content_of(session_maker, slug):
    async with session_maker() as session:
        page = await PageService(session).get_page(slug)
        return page.content


def _miss_first_lookup(monkeypatch, obj, name):
    """Make obj.<name> return None once, as if a concurrent insert had not landed yet."""
    real = getattr(obj, name)
    calls = []

    async def lookup(*args):
        calls.append(args)
        if len(calls) == 1:
            return None
        return await real(*args)

    monkeypatch.setattr(obj, name, lookup)
    return calls


@pytest.mark.anyio
async def test_duplicate_insert_after_precheck_is_username_taken(session_maker, hasher, monkeypatch):
    await _make_user(session_maker, hasher, "alice")

    async with session_maker() as session:
        store = UserStore(session, hasher)
        _miss_first_lookup(monkeypatch, store, "get_by_username")
        with pytest.raises(UsernameTaken):
            await store.create("alice", "other")
        # the session is usable again after the failed insert
        assert (await store.get_by_username("alice")) is not None


@pytest.mark.anyio
async def test_losing_page_race_to_another_author_is_forbidden(session_maker, hasher, monkeypatch):
    alice = await _make_user(session_maker, hasher, "alice")
    bob = await _make_user(session_maker, hasher, "bob")
    await _make_page(session_maker, alice, "contested", "alice got here first")

    async with session_maker() as session:
        pages = PageService(session)
        calls = _miss_first_lookup(monkeypatch, pages, "get_editable_page")
        with pytest.raises(EditForbidden):
            await pages.save_page(bob, "contested", "bob's version")
        assert len(calls) == 2

    assert await _content_of(session_maker, "contested") == "alice got here first"


@pytest.mark.anyio
async def test_losing_page_race_to_yourself_updates(session_maker, hasher, monkeypatch):
    alice = await _make_user(session_maker, hasher, "alice")
    await _make_page(session_maker, alice, "twice", "from the other tab")

    async with session_maker() as session:
        pages = PageService(session)
        _miss_first_lookup(monkeypatch, pages, "get_editable_page")
        page = await pages.save_page(alice, "twice", "from this tab")
        assert isinstance(page, WikiPage)
        assert page.content == "from this tab"

    assert await _content_of(session_maker, "twice") == "from this tab"


@pytest.mark.parametrize(
    "text, expected",
    [("", 0), ("abc", 3), ("é", 1), ("\U0001F600", 2), ("a\U0001F600b", 4)],
)
def test_comment_length(text, expected):
    assert comment_length(text) == expected
