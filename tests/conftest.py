import pytest

from smart_bookmarks import create_app
from smart_bookmarks.feed import ChangeFeed
from smart_bookmarks.identity import SessionClient
from smart_bookmarks.repository import BookmarkRepository
from smart_bookmarks.view import BookmarkView
from tests.fakes import FakeSupabase, make_user

CALLBACK_URL = 'http://bookmarks.test/auth/callback'


@pytest.fixture
def supabase():
    return FakeSupabase()


@pytest.fixture
def alice():
    return make_user('user-alice', 'alice@example.com', full_name='Alice Example',
                     avatar_url='https://lh3.googleusercontent.com/a/alice')


@pytest.fixture
def bob():
    return make_user('user-bob', 'bob@example.com', name='Bob')


def build_view(supabase):
    return BookmarkView(
        SessionClient(supabase, CALLBACK_URL),
        BookmarkRepository(supabase),
        ChangeFeed(supabase),
    )


@pytest.fixture
def make_view(supabase):
    def factory():
        return build_view(supabase)
    return factory


@pytest.fixture
def app(supabase):
    async def view_factory():
        return build_view(supabase)

    app = create_app('testing', view_factory=view_factory)
    yield app
    app.extensions['bookmark_views'].shutdown()


@pytest.fixture
def client(app):
    return app.test_client()
