"""Tests for BookmarkView over the real clients and a fake Supabase."""
import pytest

from smart_bookmarks.errors import REQUIRED_FIELDS_MESSAGE
from smart_bookmarks.models import Profile
from smart_bookmarks.state import SIGNED_IN, SIGNED_OUT, phase


async def signed_in_view(make_view, supabase, user):
    supabase.auth.session_user = user
    view = make_view()
    await view.start()
    return view


def titles(view):
    return [bookmark.title for bookmark in view.state.bookmarks]


@pytest.mark.asyncio
async def test_start_signed_in_loads_and_subscribes(make_view, supabase, alice):
    supabase.add_row('user-alice', 'Older', 'https://1.test')
    supabase.add_row('user-alice', 'Newer', 'https://2.test')

    view = await signed_in_view(make_view, supabase, alice)

    assert phase(view.state) == SIGNED_IN
    assert titles(view) == ['Newer', 'Older']
    assert view.state.profile == Profile('Alice Example', 'https://lh3.googleusercontent.com/a/alice')
    assert [c.topic for c in supabase.active_channels] == ['bookmarks-user-alice']
    assert len(supabase.auth.subscriptions) == 1


@pytest.mark.asyncio
async def test_start_signed_out(make_view, supabase):
    view = make_view()
    await view.start()

    assert phase(view.state) == SIGNED_OUT
    assert view.state.bookmarks == ()
    assert supabase.active_channels == []
    assert supabase.calls == []


@pytest.mark.asyncio
async def test_start_failure_falls_back_to_signed_out(make_view, supabase):
    supabase.auth.errors['get_session'] = 'Invalid Refresh Token: Refresh Token Not Found'
    view = make_view()

    await view.start()

    assert phase(view.state) == SIGNED_OUT
    assert view.state.error == 'Invalid Refresh Token: Refresh Token Not Found'
    assert view.state.bookmarks == ()


@pytest.mark.asyncio
async def test_add_trims_and_prepends(make_view, supabase, alice):
    supabase.add_row('user-alice', 'Existing', 'https://e.test')
    view = await signed_in_view(make_view, supabase, alice)

    bookmark = await view.add_bookmark(' My Docs ', ' https://x.test ')

    assert (bookmark.title, bookmark.url) == ('My Docs', 'https://x.test')
    assert titles(view) == ['My Docs', 'Existing']
    assert (view.state.draft_title, view.state.draft_url) == ('', '')
    assert view.state.error is None


@pytest.mark.asyncio
@pytest.mark.parametrize('title, url', [('', 'https://x.test'), ('Docs', '   ')])
async def test_add_with_blank_field_makes_no_call(make_view, supabase, alice, title, url):
    view = await signed_in_view(make_view, supabase, alice)

    assert await view.add_bookmark(title, url) is None

    assert supabase.calls_for('insert') == []
    assert view.state.error == REQUIRED_FIELDS_MESSAGE
    assert (view.state.draft_title, view.state.draft_url) == (title, url)


@pytest.mark.asyncio
async def test_add_failure_keeps_draft(make_view, supabase, alice):
    view = await signed_in_view(make_view, supabase, alice)
    supabase.failures['insert'] = 'duplicate key value violates unique constraint'

    await view.add_bookmark('Docs', 'https://x.test')

    assert view.state.error == 'duplicate key value violates unique constraint'
    assert (view.state.draft_title, view.state.draft_url) == ('Docs', 'https://x.test')
    assert view.state.bookmarks == ()


@pytest.mark.asyncio
async def test_add_without_returned_row_reloads(make_view, supabase, alice):
    view = await signed_in_view(make_view, supabase, alice)
    supabase.return_representation = False

    await view.add_bookmark('Docs', 'https://x.test')

    assert titles(view) == ['Docs']
    assert view.state.draft_title == ''


@pytest.mark.asyncio
async def test_delete_removes_row(make_view, supabase, alice):
    supabase.add_row('user-alice', 'One', 'https://1.test')
    row = supabase.add_row('user-alice', 'Two', 'https://2.test')
    view = await signed_in_view(make_view, supabase, alice)

    assert await view.delete_bookmark(row['id'])

    assert titles(view) == ['One']
    assert [r['title'] for r in supabase.rows] == ['One']


@pytest.mark.asyncio
async def test_delete_is_optimistic_and_rolls_back(make_view, supabase, alice):
    for n in range(3):
        supabase.add_row('user-alice', f'B{n}', f'https://{n}.test')
    view = await signed_in_view(make_view, supabase, alice)
    before = view.state.bookmarks
    seen_during_call = []

    original_delete = view.repository.delete

    async def observing_delete(bookmark_id):
        seen_during_call.append(titles(view))
        await original_delete(bookmark_id)

    view.repository.delete = observing_delete
    supabase.failures['delete'] = 'permission denied'

    assert not await view.delete_bookmark('bm-2')

    assert seen_during_call == [['B2', 'B0']]
    assert view.state.bookmarks == before
    assert view.state.error == 'permission denied'


@pytest.mark.asyncio
async def test_switching_edit_rows_abandons_unsaved_changes(make_view, supabase, alice):
    a = supabase.add_row('user-alice', 'A', 'https://a.test')
    b = supabase.add_row('user-alice', 'B', 'https://b.test')
    view = await signed_in_view(make_view, supabase, alice)

    await view.start_edit(a['id'])
    assert (view.state.edit_title, view.state.edit_url) == ('A', 'https://a.test')

    await view.start_edit(b['id'])

    assert view.state.editing_id == b['id']
    assert (view.state.edit_title, view.state.edit_url) == ('B', 'https://b.test')
    assert view.state.error is None
    assert titles(view) == ['B', 'A']


@pytest.mark.asyncio
async def test_save_edit_merges_updated_row(make_view, supabase, alice):
    supabase.add_row('user-alice', 'Other', 'https://o.test')
    row = supabase.add_row('user-alice', 'Old', 'https://old.test')
    view = await signed_in_view(make_view, supabase, alice)
    await view.start_edit(row['id'])

    await view.save_edit(row['id'], ' New ', ' https://new.test ')

    assert titles(view) == ['New', 'Other']
    assert view.state.editing_id is None


@pytest.mark.asyncio
async def test_save_edit_validation_keeps_editing(make_view, supabase, alice):
    row = supabase.add_row('user-alice', 'Old', 'https://old.test')
    view = await signed_in_view(make_view, supabase, alice)
    await view.start_edit(row['id'])

    await view.save_edit(row['id'], '', 'https://new.test')

    assert supabase.calls_for('update') == []
    assert view.state.error == REQUIRED_FIELDS_MESSAGE
    assert view.state.editing_id == row['id']
    assert view.state.edit_title == ''


@pytest.mark.asyncio
async def test_cancel_edit_discards_draft(make_view, supabase, alice):
    row = supabase.add_row('user-alice', 'Old', 'https://old.test')
    view = await signed_in_view(make_view, supabase, alice)
    await view.start_edit(row['id'])

    await view.cancel_edit()

    assert view.state.editing_id is None
    assert titles(view) == ['Old']


@pytest.mark.asyncio
async def test_local_list_matches_storage_after_each_operation(make_view, supabase, alice):
    view = await signed_in_view(make_view, supabase, alice)
    repository = view.repository

    async def assert_no_drift():
        assert list(view.state.bookmarks) == await repository.list('user-alice')

    first = await view.add_bookmark('First', 'https://1.test')
    await assert_no_drift()
    second = await view.add_bookmark('Second', 'https://2.test')
    await assert_no_drift()
    await view.start_edit(first.id)
    await view.save_edit(first.id, 'First edited', 'https://1.test/edited')
    await assert_no_drift()
    await view.delete_bookmark(second.id)
    await assert_no_drift()


@pytest.mark.asyncio
async def test_feed_change_reloads_list(make_view, supabase, alice):
    view = await signed_in_view(make_view, supabase, alice)
    supabase.add_row('user-alice', 'From another tab', 'https://tab.test')

    supabase.push_change('user-alice')
    await view.wait_idle()

    assert titles(view) == ['From another tab']


@pytest.mark.asyncio
async def test_feed_reload_is_idempotent(make_view, supabase, alice):
    supabase.add_row('user-alice', 'One', 'https://1.test')
    supabase.add_row('user-alice', 'Two', 'https://2.test')
    view = await signed_in_view(make_view, supabase, alice)

    supabase.push_change('user-alice')
    await view.wait_idle()
    first = view.state.bookmarks
    supabase.push_change('user-alice')
    await view.wait_idle()

    assert view.state.bookmarks == first
    assert titles(view) == ['Two', 'One']


@pytest.mark.asyncio
async def test_reload_failure_keeps_list(make_view, supabase, alice):
    supabase.add_row('user-alice', 'One', 'https://1.test')
    view = await signed_in_view(make_view, supabase, alice)
    supabase.failures['select'] = 'upstream timeout'

    await view.reload()

    assert titles(view) == ['One']
    assert view.state.error == 'upstream timeout'


@pytest.mark.asyncio
async def test_sign_out_resets_view(make_view, supabase, alice):
    supabase.add_row('user-alice', 'One', 'https://1.test')
    view = await signed_in_view(make_view, supabase, alice)
    await view.toggle_profile_menu()

    assert await view.sign_out()

    assert phase(view.state) == SIGNED_OUT
    assert view.state.bookmarks == ()
    assert view.state.profile == Profile('', '')
    assert view.state.profile_menu_open is False
    assert supabase.active_channels == []


@pytest.mark.asyncio
async def test_sign_out_failure_still_closes_menu(make_view, supabase, alice):
    view = await signed_in_view(make_view, supabase, alice)
    await view.toggle_profile_menu()
    supabase.auth.errors['sign_out'] = 'Network request failed'

    assert not await view.sign_out()

    assert view.state.error == 'Network request failed'
    assert view.state.profile_menu_open is False
    assert phase(view.state) == SIGNED_IN


@pytest.mark.asyncio
async def test_listener_signed_out_resets_regardless_of_state(make_view, supabase, alice):
    row = supabase.add_row('user-alice', 'One', 'https://1.test')
    view = await signed_in_view(make_view, supabase, alice)
    await view.start_edit(row['id'])

    supabase.auth.emit('SIGNED_OUT', None)
    await view.wait_idle()

    assert view.state.user_id is None
    assert view.state.bookmarks == ()
    assert view.state.profile == Profile()
    assert view.state.editing_id is None


@pytest.mark.asyncio
async def test_sign_in_flow(make_view, supabase, alice):
    supabase.add_row('user-alice', 'Saved earlier', 'https://1.test')
    view = make_view()
    await view.start()

    url = await view.sign_in()
    assert url.startswith('https://auth.test/authorize')

    supabase.auth.pending_user = alice
    identity = await view.complete_sign_in('code-1')

    assert identity.id == 'user-alice'
    assert phase(view.state) == SIGNED_IN
    assert titles(view) == ['Saved earlier']
    assert [c.topic for c in supabase.active_channels] == ['bookmarks-user-alice']


@pytest.mark.asyncio
async def test_sign_in_failure_is_shown(make_view, supabase):
    view = make_view()
    await view.start()
    supabase.auth.errors['sign_in_with_oauth'] = 'Provider is not enabled'

    assert await view.sign_in() is None
    assert view.state.error == 'Provider is not enabled'


@pytest.mark.asyncio
async def test_identity_switch_replaces_subscription(make_view, supabase, alice, bob):
    supabase.add_row('user-bob', 'Bob only', 'https://bob.test')
    view = await signed_in_view(make_view, supabase, alice)

    supabase.auth.session_user = bob
    supabase.auth.emit('SIGNED_IN', bob)
    await view.wait_idle()

    assert [c.topic for c in supabase.active_channels] == ['bookmarks-user-bob']
    assert [c.topic for c in supabase.removed_channels] == ['bookmarks-user-alice']
    assert titles(view) == ['Bob only']


@pytest.mark.asyncio
async def test_token_refresh_keeps_subscription(make_view, supabase, alice):
    view = await signed_in_view(make_view, supabase, alice)
    await view.add_bookmark('Draft kept?', '')

    supabase.auth.emit('TOKEN_REFRESHED', alice)
    await view.wait_idle()

    assert len(supabase.channels) == 1
    assert supabase.removed_channels == []
    assert view.state.draft_title == 'Draft kept?'


@pytest.mark.asyncio
async def test_close_releases_registrations_once(make_view, supabase, alice):
    view = await signed_in_view(make_view, supabase, alice)
    [subscription] = supabase.auth.subscriptions

    await view.close()
    await view.close()

    assert subscription.unsubscribe_calls == 1
    assert supabase.auth.subscriptions == []
    assert supabase.active_channels == []
    assert len(supabase.removed_channels) == 1

    supabase.auth.emit('SIGNED_IN', alice)
    supabase.push_change('user-alice')
    assert view._tasks == set()


@pytest.mark.asyncio
async def test_watchers_receive_revisions(make_view, supabase, alice):
    view = await signed_in_view(make_view, supabase, alice)
    watcher = view.watch()

    await view.toggle_profile_menu()
    await view.toggle_profile_menu()

    assert [watcher.get_nowait(), watcher.get_nowait()] == [view.revision - 1, view.revision]

    view.unwatch(watcher)
    await view.toggle_profile_menu()
    assert watcher.empty()


@pytest.mark.asyncio
async def test_identity_burst_keeps_one_channel(make_view, supabase, alice):
    view = await signed_in_view(make_view, supabase, alice)
    supabase.slow_joins = True

    supabase.auth.emit('SIGNED_OUT', None)
    supabase.auth.emit('SIGNED_IN', alice)
    supabase.auth.emit('TOKEN_REFRESHED', alice)
    await view.wait_idle()

    assert [c.topic for c in supabase.active_channels] == ['bookmarks-user-alice']
    assert phase(view.state) == SIGNED_IN

    await view.close()
    assert supabase.active_channels == []


@pytest.mark.asyncio
async def test_token_refresh_during_start_keeps_one_channel(make_view, supabase, alice):
    supabase.auth.session_user = alice
    supabase.slow_joins = True
    cached_session = supabase.auth.get_session

    async def refreshing_get_session():
        session = await cached_session()
        supabase.auth.emit('TOKEN_REFRESHED', alice)
        return session

    supabase.auth.get_session = refreshing_get_session
    view = make_view()
    await view.start()
    await view.wait_idle()

    assert [c.topic for c in supabase.active_channels] == ['bookmarks-user-alice']

    await view.close()
    assert supabase.active_channels == []


@pytest.mark.asyncio
async def test_failed_join_is_shown_and_released(make_view, supabase, alice):
    supabase.add_row('user-alice', 'Docs', 'https://docs.test')
    supabase.join_error = 'channel join timed out'

    view = await signed_in_view(make_view, supabase, alice)

    assert view.state.error == 'channel join timed out'
    assert titles(view) == ['Docs']
    assert supabase.channels == []
    assert not view.feed.active
