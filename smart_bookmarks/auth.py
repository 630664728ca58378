from flask import Blueprint, current_app, redirect, request, url_for

from smart_bookmarks.main import get_current_view, run

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/sign-in', methods=['POST'])
def sign_in():
    """Send the browser to the OAuth provider."""
    view = get_current_view()
    provider = request.form.get('provider', '').strip() or None

    provider_url = run(view.sign_in(provider))
    if not provider_url:
        current_app.logger.warning(f"Sign in failed: {view.state.error}")
        return redirect(url_for('main.index'))

    return redirect(provider_url)


@auth_bp.route('/callback')
def callback():
    """Finish sign in once the provider sends the browser back."""
    view = get_current_view()

    provider_error = request.args.get('error_description') or request.args.get('error')
    if provider_error:
        current_app.logger.warning(f"OAuth provider returned an error: {provider_error}")
        run(view.raise_error(provider_error))
        return redirect(url_for('main.index'))

    code = request.args.get('code', '').strip()
    if not code:
        run(view.raise_error('Sign in was not completed. Please try again.'))
        return redirect(url_for('main.index'))

    identity = run(view.complete_sign_in(code))
    if identity:
        current_app.logger.info(f"Signed in user {identity.id}")
    else:
        current_app.logger.warning(f"Sign in callback failed: {view.state.error}")

    return redirect(url_for('main.index'))


@auth_bp.route('/sign-out', methods=['POST'])
def sign_out():
    """Sign out of the current session."""
    view = get_current_view()
    if not run(view.sign_out()):
        current_app.logger.warning(f"Sign out failed: {view.state.error}")
    return redirect(url_for('main.index'))
