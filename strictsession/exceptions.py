"""Exceptions raised by the session handler and its collaborators."""


class ConfigurationError(RuntimeError):
    """Raised when a required configuration parameter is missing or bad."""


class StoreUnavailable(RuntimeError):
    """The session store could not be reached."""


class SessionNotOpen(RuntimeError):
    """An operation was attempted on a handler that was never opened."""


class LockContention(RuntimeError):
    """The lock on a session is held by another execution."""


class LockAcquisitionAborted(RuntimeError):
    """Gave up waiting for the lock on a session."""
