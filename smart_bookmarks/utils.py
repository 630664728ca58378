from urllib.parse import urlparse

import validators

from smart_bookmarks.errors import ValidationError


def clean_fields(title, url):
    """Trim a title/URL pair, rejecting blank values."""
    title = (title or '').strip()
    url = (url or '').strip()

    if not title or not url:
        raise ValidationError()

    return title, url


def parse_hosts(value):
    """Parse a comma separated host list from configuration."""
    if not value:
        return ()
    if isinstance(value, (list, tuple, set, frozenset)):
        hosts = value
    else:
        hosts = value.split(',')
    return tuple(host.strip().lower() for host in hosts if host and host.strip())


def avatar_allowed(avatar_url, hosts):
    """Check whether an avatar can be rendered as an image."""
    if not avatar_url or not validators.url(avatar_url):
        return False

    hostname = urlparse(avatar_url).hostname
    if not hostname:
        return False

    return hostname.lower() in parse_hosts(hosts)


def join_url(base, path):
    """Join a site root and an absolute path without doubling slashes."""
    return base.rstrip('/') + '/' + path.lstrip('/')
