import atexit
import logging
import os

from flask import Flask
from supabase import AsyncClientOptions, acreate_client

from smart_bookmarks.config import config
from smart_bookmarks.feed import ChangeFeed
from smart_bookmarks.identity import SessionClient
from smart_bookmarks.repository import BookmarkRepository
from smart_bookmarks.runtime import ViewRuntime
from smart_bookmarks.utils import join_url
from smart_bookmarks.view import BookmarkView


def supabase_view_factory(app_config):
    """Build views backed by their own Supabase client and auth session."""
    redirect_to = join_url(app_config['SITE_URL'], app_config['OAUTH_CALLBACK_PATH'])

    async def factory():
        client = await acreate_client(
            app_config['SUPABASE_URL'],
            app_config['SUPABASE_ANON_KEY'],
            options=AsyncClientOptions(flow_type='pkce'),
        )
        return BookmarkView(
            SessionClient(client, redirect_to, default_provider=app_config['OAUTH_PROVIDER']),
            BookmarkRepository(client),
            ChangeFeed(client),
        )

    return factory


def create_app(config_name=None, view_factory=None):
    """Create and configure the Flask application."""
    config_name = config_name or os.environ.get('APP_CONFIG', 'default')

    app = Flask(__name__)
    app.config.from_object(config[config_name])

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )
    app.logger.setLevel(app.config['LOG_LEVEL'])

    if view_factory is None:
        view_factory = supabase_view_factory(app.config)

    runtime = ViewRuntime(view_factory, idle_timeout=app.config['VIEW_IDLE_TIMEOUT'])
    app.extensions['bookmark_views'] = runtime.start()
    atexit.register(runtime.shutdown)

    from smart_bookmarks.auth import auth_bp
    from smart_bookmarks.main import main_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp, url_prefix='/auth')

    app.logger.info(f"Bookmark app created with '{config_name}' configuration")
    return app
