"""
Per-session mutual exclusion on top of the session store.

A lock is a ``<session_id>_lock`` key created with ``SET NX``, so at most one
execution can hold it at a time. Executions that lose the race sleep and
try again, doubling the wait after every failed attempt until it reaches
:const:`MAX_WAIT_TIME`. The lock TTL only matters when an execution dies
without releasing its locks.
"""

import logging
from typing import List, Optional

from retry.api import retry_call

from .exceptions import LockAcquisitionAborted, LockContention
from .store import StoreClient

logger = logging.getLogger(__name__)

MIN_WAIT_TIME = 0.001
"""Seconds to wait after the first failed locking attempt."""

MAX_WAIT_TIME = MIN_WAIT_TIME * 128
"""Upper bound on the wait between locking attempts (128ms)."""

FOREVER = -1


def lock_key(session_id: str) -> str:
    """Get the key of the lock that guards ``session_id``."""
    return f'{session_id}_lock'


class LockManager(object):
    """
    Acquires and releases session locks for one execution.

    Parameters
    ----------
    store : :class:`.StoreClient`
    ttl : int
        Maximum lifetime of a lock in seconds. ``0`` means that locks never
        expire on their own.
    max_attempts : int
        Give up after this many failed attempts. ``-1`` waits forever.

    """

    def __init__(self, store: StoreClient, ttl: int = 0,
                 max_attempts: int = FOREVER,
                 min_wait: float = MIN_WAIT_TIME,
                 max_wait: float = MAX_WAIT_TIME) -> None:
        self.store = store
        self.ttl = ttl
        self.max_attempts = max_attempts
        self.min_wait = min_wait
        self.max_wait = max_wait
        self.open_locks: List[str] = []

    def _try_acquire(self, session_id: str) -> None:
        ttl: Optional[int] = self.ttl if self.ttl > 0 else None
        if not self.store.set_if_absent(lock_key(session_id), '', ttl=ttl):
            logger.debug('Session %s is locked; waiting', session_id)
            raise LockContention(f'Session {session_id} is locked')

    def acquire(self, session_id: str) -> None:
        """
        Block until the lock on ``session_id`` is ours.

        Locks already held by this execution are not taken again.

        Raises
        ------
        :class:`.LockAcquisitionAborted`
            Raised if ``max_attempts`` is exhausted.

        """
        if session_id in self.open_locks:
            return
        try:
            retry_call(self._try_acquire, fargs=[session_id],
                       exceptions=LockContention, tries=self.max_attempts,
                       delay=self.min_wait, max_delay=self.max_wait,
                       backoff=2, logger=None)
        except LockContention as e:
            logger.error('Gave up on lock for session %s after %i attempts',
                         session_id, self.max_attempts)
            raise LockAcquisitionAborted(str(e)) from e
        logger.debug('Acquired lock on session %s', session_id)
        self.open_locks.append(session_id)

    def discard(self, session_id: str) -> None:
        """Forget about a lock whose key has already been deleted."""
        if session_id in self.open_locks:
            self.open_locks.remove(session_id)

    def release_all(self) -> None:
        """Release every lock held by this execution."""
        for session_id in self.open_locks:
            try:
                self.store.delete(lock_key(session_id))
            except Exception as e:
                logger.error('Failed to release lock on session %s: %s',
                             session_id, e)
            else:
                logger.debug('Released lock on session %s', session_id)
        self.open_locks = []
