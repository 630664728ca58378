from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Bookmark:
    id: str
    user_id: str
    title: str
    url: str
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row):
        """Build a bookmark from a row of the ``bookmarks`` table."""
        return cls(
            id=str(row['id']),
            user_id=str(row['user_id']),
            title=row.get('title') or '',
            url=row.get('url') or '',
            created_at=row.get('created_at'),
        )

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'title': self.title,
            'url': self.url,
            'created_at': self.created_at,
        }


@dataclass(frozen=True)
class Identity:
    id: str
    email: Optional[str] = None
    metadata: dict = field(default_factory=dict, compare=False)

    @classmethod
    def from_user(cls, user):
        """Build an identity from the auth service's user object."""
        if user is None:
            return None
        return cls(
            id=str(user.id),
            email=getattr(user, 'email', None),
            metadata=dict(getattr(user, 'user_metadata', None) or {}),
        )


@dataclass(frozen=True)
class Profile:
    name: str = ''
    avatar_url: str = ''

    @property
    def initial(self):
        return (self.name or 'U')[:1].upper()


def _first_text(*values):
    for value in values:
        if isinstance(value, str) and value:
            return value
    return None


def project_profile(identity):
    """Derive the display name and avatar shown in the profile control.

    Name falls back from ``full_name`` to ``name`` to the email address and
    finally to ``"Profile"``; the avatar falls back from ``avatar_url`` to
    ``picture``. A missing identity yields the blank profile.
    """
    if identity is None:
        return Profile()

    metadata = identity.metadata or {}
    name = _first_text(metadata.get('full_name'), metadata.get('name'), identity.email) or 'Profile'
    avatar = _first_text(metadata.get('avatar_url'), metadata.get('picture')) or ''
    return Profile(name=name, avatar_url=avatar)
