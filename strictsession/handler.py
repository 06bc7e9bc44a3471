"""
Session handler that keeps session data in Redis.

One :class:`SessionHandler` serves exactly one request. The host runtime
drives it through the following steps:

.. code-block:: python

   handler = SessionHandler(lock_ttl=30, session_ttl=1440, ...)
   handler.open(savepath.parse('tcp://localhost:6379'), 'session')
   if not handler.validate_id(session_id):
       session_id = handler.regenerate()
   data = handler.read(session_id)      # Blocks until the lock is ours.
   ...
   handler.write(session_id, data)
   handler.close()                      # Releases every lock we hold.

Stale sessions are never swept: Redis expires them on its own.
"""

import logging
from datetime import datetime, timedelta
from enum import Enum
from functools import wraps
from typing import Any, Callable, Optional

from pytz import UTC

from . import identity, locking
from .exceptions import SessionNotOpen, StoreUnavailable
from .identity import CookieParams, SessionIdentityGuard
from .locking import LockManager
from .savepath import ConnectionConfig
from .store import Factory, StoreClient

logger = logging.getLogger(__name__)

CookieIssuer = Callable[[str, str, Optional[datetime], str, str, bool, bool],
                        None]


class State(Enum):
    """Where a handler is in its lifecycle."""

    UNOPENED = 'unopened'
    OPENED = 'opened'
    LOCKED = 'locked'
    WRITTEN = 'written'
    UNCHANGED = 'unchanged'
    CLOSED = 'closed'
    DESTROYED = 'destroyed'


def _requires_open(func: Callable) -> Callable:
    @wraps(func)
    def inner(self: 'SessionHandler', *args: Any, **kwargs: Any) -> Any:
        if self.state in (State.UNOPENED, State.CLOSED):
            raise SessionNotOpen(f'Cannot {func.__name__}: handler is '
                                 f'{self.state.value}')
        return func(self, *args, **kwargs)
    return inner


def _no_cookie(name: str, value: str, expires: Optional[datetime],
               path: str, domain: str, secure: bool, httponly: bool) -> None:
    logger.warning('No cookie issuer; cannot send cookie %s', name)


class SessionHandler(object):
    """
    Serves the session of a single request out of Redis.

    Parameters
    ----------
    lock_ttl : int
        Maximum seconds a session may stay locked. ``0`` means that locks
        are only ever released by :meth:`close` or :meth:`destroy`.
    session_ttl : int
        Seconds a session is kept in Redis after its last write.
    lock_attempts : int
        Give up waiting for a lock after this many attempts; ``-1`` waits
        forever.
    factory : callable
        Builds the redis client. Defaults to :class:`redis.StrictRedis`.
    id_generator : callable
        Mints new session IDs.
    cookie_issuer : callable
        Called as ``(name, value, expires, path, domain, secure, httponly)``
        to replace the session cookie held by the client.
    cookie_params : :class:`.CookieParams`

    """

    def __init__(self, lock_ttl: int, session_ttl: int,
                 lock_attempts: int = locking.FOREVER,
                 factory: Optional[Factory] = None,
                 id_generator: Callable[[], str] = identity.generate_id,
                 cookie_issuer: CookieIssuer = _no_cookie,
                 cookie_params: CookieParams = CookieParams()) -> None:
        self.lock_ttl = lock_ttl
        self.session_ttl = session_ttl
        self.store = StoreClient(factory)
        self.locks = LockManager(self.store, lock_ttl,
                                 max_attempts=lock_attempts)
        self.guard = SessionIdentityGuard(self.store)
        self.id_generator = id_generator
        self.cookie_issuer = cookie_issuer
        self.cookie_params = cookie_params
        self.cookie_name: Optional[str] = None
        self.state = State.UNOPENED

    def open(self, config: ConnectionConfig, name: str) -> bool:
        """Connect to the store; ``name`` is the session cookie name."""
        self.cookie_name = name
        if not self.store.connect(config):
            return False
        self.state = State.OPENED
        return True

    def create_id(self) -> str:
        """Mint a session ID and remember that it was minted here."""
        session_id = self.id_generator()
        self.guard.record_generated(session_id)
        return session_id

    def is_new(self, session_id: str) -> bool:
        return self.guard.is_new(session_id)

    @_requires_open
    def validate_id(self, session_id: str) -> bool:
        """Check whether ``session_id`` may be used as-is."""
        return not self.guard.must_regenerate(session_id)

    def send_cookie(self, session_id: str) -> None:
        """Ask the cookie issuer to hand ``session_id`` to the client."""
        params = self.cookie_params
        expires = None
        if params.lifetime:
            expires = datetime.now(tz=UTC) + timedelta(seconds=params.lifetime)
        self.cookie_issuer(self.cookie_name or '', session_id, expires,
                           params.path, params.domain, params.secure,
                           params.httponly)

    @_requires_open
    def regenerate(self) -> str:
        """Replace an untrusted session ID, including the client cookie."""
        session_id = self.create_id()
        logger.debug('Regenerated session ID')
        self.send_cookie(session_id)
        return session_id

    @_requires_open
    def read(self, session_id: str) -> str:
        """
        Lock the session and get its data.

        An ID minted in this execution cannot have a record yet, so the store
        is not consulted. A missing record reads as an empty session.
        """
        self.locks.acquire(session_id)
        self.state = State.LOCKED
        if self.is_new(session_id):
            return ''
        return self.store.get(session_id) or ''

    @_requires_open
    def write(self, session_id: str, data: str) -> bool:
        """Store ``data`` and reset the expiry of the session."""
        try:
            written = self.store.setex(session_id, self.session_ttl, data)
        except StoreUnavailable as e:
            logger.error('Failed to write session: %s', e)
            return False
        if not written:
            logger.error('Redis refused to write session')
            return False
        self.state = State.WRITTEN
        return True

    @_requires_open
    def update_timestamp(self, session_id: str, data: str) -> bool:
        """Reset the expiry of a session that was not modified."""
        try:
            updated = self.store.expire(session_id, self.session_ttl)
        except StoreUnavailable as e:
            logger.error('Failed to refresh session: %s', e)
            return False
        self.state = State.UNCHANGED
        return updated

    @_requires_open
    def destroy(self, session_id: str) -> bool:
        """Delete the session and its lock, whether or not they exist."""
        try:
            self.store.delete(session_id)
            self.store.delete(locking.lock_key(session_id))
        except StoreUnavailable as e:
            logger.error('Failed to destroy session: %s', e)
        self.locks.discard(session_id)
        self.state = State.DESTROYED
        return True

    def close(self) -> bool:
        """Release every lock held by this handler, and disconnect."""
        if self.state in (State.UNOPENED, State.CLOSED):
            return True
        try:
            self.locks.release_all()
        finally:
            self.store.close()
            self.state = State.CLOSED
        return True

    def gc(self, max_lifetime: int) -> bool:
        """Nothing to do; Redis expires stale sessions by itself."""
        return True
