"""
Tells session IDs minted in this execution apart from those in the request.

An ID that came with the request but has no record in the store is either
a session that expired in Redis before its cookie expired in the browser,
or a client attempting a session fixation attack. Either way it must not
be reused.
"""

import secrets
from typing import NamedTuple, Set

from .store import StoreClient


def generate_id() -> str:
    """Mint a new, unpredictable session ID."""
    return secrets.token_urlsafe(32)


class CookieParams(NamedTuple):
    """Attributes of the session cookie."""

    lifetime: int = 0
    """Seconds until the cookie expires; ``0`` for a session cookie."""

    path: str = '/'
    domain: str = ''
    secure: bool = False
    httponly: bool = True


class SessionIdentityGuard(object):
    """Tracks the session IDs generated in the current execution."""

    def __init__(self, store: StoreClient) -> None:
        self.store = store
        self.new_sessions: Set[str] = set()

    def record_generated(self, session_id: str) -> None:
        self.new_sessions.add(session_id)

    def is_new(self, session_id: str) -> bool:
        return session_id in self.new_sessions

    def must_regenerate(self, session_id: str) -> bool:
        """
        Decide whether ``session_id`` must be thrown away.

        That is the case when the ID came from the request and there is no
        record for it in the store.
        """
        return not self.is_new(session_id) \
            and not self.store.exists(session_id)
