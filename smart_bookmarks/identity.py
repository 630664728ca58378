"""Session and identity handling on top of the hosted auth service."""

import logging

from supabase import AuthError, AuthSessionMissingError

from smart_bookmarks.errors import SessionError
from smart_bookmarks.models import Identity

logger = logging.getLogger(__name__)

OAUTH_QUERY_PARAMS = {
    'access_type': 'offline',
    'prompt': 'consent',
}


class SessionClient:
    """Resolve, establish and terminate the signed-in identity."""

    def __init__(self, supabase, redirect_to, default_provider='google'):
        self._auth = supabase.auth
        self.redirect_to = redirect_to
        self.default_provider = default_provider

    async def resolve_current_identity(self):
        """Recover the cached session, falling back to a fresh user lookup."""
        try:
            session = await self._auth.get_session()
            user = session.user if session else None

            if user is None:
                response = await self._auth.get_user()
                user = response.user if response else None
        except AuthSessionMissingError:
            return None
        except AuthError as e:
            raise SessionError(e.message or str(e)) from e

        return Identity.from_user(user)

    async def sign_in(self, provider=None):
        """Start the OAuth redirect flow and return the provider URL."""
        provider = provider or self.default_provider
        try:
            response = await self._auth.sign_in_with_oauth({
                'provider': provider,
                'options': {
                    'redirect_to': self.redirect_to,
                    'query_params': dict(OAUTH_QUERY_PARAMS),
                },
            })
        except AuthError as e:
            raise SessionError(e.message or str(e)) from e

        if not response or not response.url:
            raise SessionError(f'Sign in with {provider} is unavailable.')

        logger.debug(f"Redirecting to {provider} for sign in")
        return response.url

    async def complete_sign_in(self, auth_code):
        """Exchange the code handed back by the provider for a session."""
        try:
            response = await self._auth.exchange_code_for_session({'auth_code': auth_code})
        except AuthError as e:
            raise SessionError(e.message or str(e)) from e

        return Identity.from_user(response.user if response else None)

    async def sign_out(self):
        try:
            await self._auth.sign_out()
        except AuthError as e:
            raise SessionError(e.message or str(e)) from e

    def on_identity_change(self, callback):
        """Call ``callback(identity_or_none)`` on every session transition.

        Returns the auth subscription; call ``unsubscribe()`` on it to stop
        listening.
        """
        def listener(event, session):
            user = session.user if session else None
            logger.debug(f"Auth state changed: {event}")
            callback(Identity.from_user(user))

        return self._auth.on_auth_state_change(listener)
