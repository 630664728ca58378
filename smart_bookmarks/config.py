import os
from datetime import timedelta


class Config:
    # Supabase project
    SUPABASE_URL = os.environ.get('SUPABASE_URL', 'http://localhost:54321')
    SUPABASE_ANON_KEY = os.environ.get('SUPABASE_ANON_KEY', '')

    # OAuth
    SITE_URL = os.environ.get('SITE_URL', 'http://localhost:5000')
    OAUTH_PROVIDER = os.environ.get('OAUTH_PROVIDER', 'google')
    OAUTH_CALLBACK_PATH = '/auth/callback'

    # Hosts allowed to serve profile pictures
    AVATAR_HOSTS = os.environ.get(
        'AVATAR_HOSTS',
        'lh3.googleusercontent.com,avatars.githubusercontent.com'
    )

    # Security
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-change-this')

    # Session configuration
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    SESSION_PERMANENT = True
    PERMANENT_SESSION_LIFETIME = timedelta(days=30)

    # Live views
    VIEW_IDLE_TIMEOUT = int(os.environ.get('VIEW_IDLE_TIMEOUT', '1800'))
    SSE_KEEPALIVE_SECONDS = int(os.environ.get('SSE_KEEPALIVE_SECONDS', '15'))

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')


class ProductionConfig(Config):
    DEBUG = False
    SESSION_COOKIE_SECURE = True


class TestingConfig(Config):
    TESTING = True
    SUPABASE_URL = 'http://supabase.test'
    SUPABASE_ANON_KEY = 'test-anon-key'
    SITE_URL = 'http://bookmarks.test'
    SECRET_KEY = 'test-secret-key'
    VIEW_IDLE_TIMEOUT = 60
    SSE_KEEPALIVE_SECONDS = 1


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
