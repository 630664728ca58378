"""View state and the transitions that produce new snapshots of it.

Every function here is pure: it takes the current ``ViewState`` and returns a
new one. ``BookmarkView`` is the only caller and applies them one at a time on
its event loop.
"""

from dataclasses import dataclass, replace
from typing import Optional, Tuple

from smart_bookmarks.models import Bookmark, Profile, project_profile

LOADING = 'loading'
SIGNED_OUT = 'signed_out'
SIGNED_IN = 'signed_in'


@dataclass(frozen=True)
class ViewState:
    loading: bool = True
    user_id: Optional[str] = None
    bookmarks: Tuple[Bookmark, ...] = ()
    error: Optional[str] = None
    draft_title: str = ''
    draft_url: str = ''
    editing_id: Optional[str] = None
    edit_title: str = ''
    edit_url: str = ''
    profile: Profile = Profile()
    profile_menu_open: bool = False

    def find(self, bookmark_id):
        for bookmark in self.bookmarks:
            if bookmark.id == bookmark_id:
                return bookmark
        return None


def phase(state):
    if state.loading:
        return LOADING
    return SIGNED_IN if state.user_id else SIGNED_OUT


# Session

def session_resolved(state, identity):
    """Startup identity lookup finished, with or without an identity."""
    return ViewState(
        loading=False,
        user_id=identity.id if identity else None,
        profile=project_profile(identity),
        error=state.error,
    )


def session_failed(state, message):
    return ViewState(loading=False, error=message)


def identity_changed(state, identity):
    """A session transition was reported by the auth listener.

    A different identity (or none) starts from a fresh state. The same identity
    keeps its drafts and list and only refreshes its profile.
    """
    user_id = identity.id if identity else None
    if user_id and user_id == state.user_id:
        return replace(state, loading=False, profile=project_profile(identity))

    return ViewState(
        loading=False,
        user_id=user_id,
        profile=project_profile(identity),
        error=state.error,
    )


# Errors

def error_raised(state, message):
    return replace(state, error=message)


def error_cleared(state):
    return replace(state, error=None)


# List

def bookmarks_loaded(state, bookmarks):
    return replace(state, bookmarks=tuple(bookmarks), error=None)


def draft_changed(state, title, url):
    return replace(state, draft_title=title or '', draft_url=url or '')


def bookmark_added(state, bookmark):
    """Prepend a freshly stored bookmark and clear the add form."""
    return replace(
        state,
        bookmarks=(bookmark,) + tuple(b for b in state.bookmarks if b.id != bookmark.id),
        draft_title='',
        draft_url='',
        error=None,
    )


def bookmark_removed(state, bookmark_id):
    return replace(
        state,
        bookmarks=tuple(b for b in state.bookmarks if b.id != bookmark_id),
    )


def bookmarks_restored(state, snapshot, message):
    """Roll a failed delete back to the list as it was before."""
    return replace(state, bookmarks=tuple(snapshot), error=message)


# Editing

def edit_started(state, bookmark):
    return replace(
        state,
        editing_id=bookmark.id,
        edit_title=bookmark.title,
        edit_url=bookmark.url,
        error=None,
    )


def edit_changed(state, title, url):
    return replace(state, edit_title=title or '', edit_url=url or '')


def edit_cancelled(state):
    return replace(state, editing_id=None, edit_title='', edit_url='')


def bookmark_updated(state, bookmark):
    bookmarks = tuple(bookmark if b.id == bookmark.id else b for b in state.bookmarks)
    return edit_cancelled(replace(state, bookmarks=bookmarks))


# Profile menu

def profile_menu_toggled(state):
    return replace(state, profile_menu_open=not state.profile_menu_open)


def profile_menu_closed(state):
    return replace(state, profile_menu_open=False)
