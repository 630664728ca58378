import queue
import secrets

from flask import (
    Blueprint,
    Response,
    current_app,
    redirect,
    render_template,
    request,
    session,
    url_for,
)

from smart_bookmarks.state import SIGNED_IN, phase
from smart_bookmarks.utils import avatar_allowed

main_bp = Blueprint('main', __name__)


def get_runtime():
    return current_app.extensions['bookmark_views']


def get_view_id():
    view_id = session.get('view_id')
    if not view_id:
        view_id = secrets.token_urlsafe(32)
        session['view_id'] = view_id
        session.permanent = True
    return view_id


def get_current_view():
    """Get the live view bound to this browser session."""
    return get_runtime().view_for(get_view_id())


def run(coro):
    """Run a view operation on the runtime loop and wait for it."""
    return get_runtime().call(coro)


def signed_in_view():
    view = get_current_view()
    if phase(view.state) != SIGNED_IN:
        return None
    return view


@main_bp.app_context_processor
def inject_helpers():
    def show_avatar(profile):
        return avatar_allowed(profile.avatar_url, current_app.config['AVATAR_HOSTS'])

    return {'show_avatar': show_avatar}


@main_bp.route('/')
def index():
    """Bookmark page for whatever state the session is in."""
    view = get_current_view()
    state = view.state
    return render_template('index.html', state=state, phase=phase(state))


@main_bp.route('/components/bookmarks')
def bookmark_list():
    """Return the bookmark list HTML for HTMX."""
    view = get_current_view()
    state = view.state
    if phase(state) != SIGNED_IN:
        # Signed out elsewhere; reload the whole page.
        return '', 200, {'HX-Refresh': 'true'}
    return render_template('components/bookmark_list.html', state=state)


@main_bp.route('/events')
def events():
    """Stream a notification every time the view's state changes."""
    runtime = get_runtime()
    view_id = get_view_id()
    view = runtime.view_for(view_id)
    keepalive = current_app.config['SSE_KEEPALIVE_SECONDS']
    watcher = view.watch()

    def stream():
        try:
            yield 'retry: 3000\n\n'
            while True:
                try:
                    revision = watcher.get(timeout=keepalive)
                except queue.Empty:
                    yield ': keepalive\n\n'
                    continue

                # Collapse a burst of changes into one refresh.
                while True:
                    try:
                        revision = watcher.get_nowait()
                    except queue.Empty:
                        break
                yield f'event: bookmarks\ndata: {revision}\n\n'
        finally:
            view.unwatch(watcher)
            # The idle clock restarts once the tab stops listening.
            runtime.touch(view_id)

    return Response(
        stream(),
        mimetype='text/event-stream',
        headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'}
    )


@main_bp.route('/bookmarks', methods=['POST'])
def add_bookmark():
    """Create a bookmark from the add form."""
    view = signed_in_view()
    if not view:
        return redirect(url_for('main.index'))

    bookmark = run(view.add_bookmark(request.form.get('title', ''), request.form.get('url', '')))
    if bookmark is None and view.state.error:
        current_app.logger.warning(f"Bookmark not added: {view.state.error}")
    return redirect(url_for('main.index'))


@main_bp.route('/bookmarks/<bookmark_id>/edit', methods=['POST'])
def edit_bookmark(bookmark_id):
    """Switch a row to its inline edit form."""
    view = signed_in_view()
    if view:
        run(view.start_edit(bookmark_id))
    return redirect(url_for('main.index', _anchor=f'bookmark-{bookmark_id}'))


@main_bp.route('/bookmarks/<bookmark_id>/save', methods=['POST'])
def save_bookmark(bookmark_id):
    """Save the inline edit of a bookmark."""
    view = signed_in_view()
    if not view:
        return redirect(url_for('main.index'))

    bookmark = run(view.save_edit(
        bookmark_id,
        request.form.get('title', ''),
        request.form.get('url', '')
    ))
    if bookmark is None:
        current_app.logger.warning(f"Bookmark {bookmark_id} not updated: {view.state.error}")
    return redirect(url_for('main.index', _anchor=f'bookmark-{bookmark_id}'))


@main_bp.route('/bookmarks/<bookmark_id>/cancel', methods=['POST'])
def cancel_edit(bookmark_id):
    view = signed_in_view()
    if view:
        run(view.cancel_edit())
    return redirect(url_for('main.index', _anchor=f'bookmark-{bookmark_id}'))


@main_bp.route('/bookmarks/<bookmark_id>/delete', methods=['POST'])
def delete_bookmark(bookmark_id):
    """Delete a bookmark."""
    view = signed_in_view()
    if not view:
        return redirect(url_for('main.index'))

    if not run(view.delete_bookmark(bookmark_id)):
        current_app.logger.warning(f"Bookmark {bookmark_id} not deleted: {view.state.error}")
    return redirect(url_for('main.index'))


@main_bp.route('/profile/menu', methods=['POST'])
def toggle_profile_menu():
    view = signed_in_view()
    if view:
        run(view.toggle_profile_menu())
    return redirect(url_for('main.index'))
