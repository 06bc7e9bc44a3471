"""Default configuration for the session handler, read from the environment."""
import os
from typing import Mapping
from urllib.parse import urlencode

#################### Redis ####################
REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
REDIS_PORT = os.environ.get('REDIS_PORT', '6379')
REDIS_DATABASE = os.environ.get('REDIS_DATABASE', '0')
REDIS_TOKEN = os.environ.get('REDIS_TOKEN', None)
"""This is the token used in the AUTH procedure."""

REDIS_TIMEOUT = os.environ.get('REDIS_TIMEOUT', '0')
"""Socket timeout in seconds. ``0`` disables the timeout."""

REDIS_FAKE = bool(int(os.environ.get('REDIS_FAKE', '0')))
"""Use the FakeRedis library instead of a redis service.

Useful for testing, dev, beta."""

SESSION_KEY_PREFIX = os.environ.get('SESSION_KEY_PREFIX', 'session:')
"""Namespace for session and lock keys in Redis."""

SESSION_SAVE_PATH = os.environ.get('SESSION_SAVE_PATH', None)
"""Connection descriptor for the session store.

When not given, it is composed from the ``REDIS_*`` and
``SESSION_KEY_PREFIX`` settings of the application. See
:mod:`strictsession.savepath` for the format.
"""


def compose_save_path(config: Mapping) -> str:
    """Build a connection descriptor out of the ``REDIS_*`` settings."""
    params = {'timeout': config['REDIS_TIMEOUT'],
              'prefix': config['SESSION_KEY_PREFIX'],
              'database': config['REDIS_DATABASE']}
    if config.get('REDIS_TOKEN'):
        params['auth'] = config['REDIS_TOKEN']
    return (f'tcp://{config["REDIS_HOST"]}:{config["REDIS_PORT"]}'
            f'?{urlencode(params)}')


#################### Sessions ####################
SESSION_TTL = int(os.environ.get('SESSION_TTL', '1440'))
"""Seconds a session is kept after its last write."""

SESSION_LOCK_TTL = int(os.environ.get('SESSION_LOCK_TTL', '30'))
"""Maximum seconds a session can stay locked.

This is only a last resort for requests that die before releasing their
locks, so it should match the longest time a request is allowed to run.
``0`` means that locks never expire on their own.
"""

SESSION_LOCK_ATTEMPTS = int(os.environ.get('SESSION_LOCK_ATTEMPTS', '-1'))
"""Give up on a session lock after this many attempts. ``-1`` never gives
up."""

SESSION_JSON_LOGGING = bool(int(os.environ.get('SESSION_JSON_LOGGING', '0')))
"""Attach a JSON log handler to the root logger on ``init_app``."""

SESSION_PERMANENT = bool(int(os.environ.get('SESSION_PERMANENT', '1')))
"""Give the session cookie the same lifetime as the session.

Otherwise the cookie is dropped when the browser is closed.
"""
