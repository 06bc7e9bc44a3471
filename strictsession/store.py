"""
Thin adapter over the Redis client used by the session handler.

Every key passed to a :class:`StoreClient` is namespaced by the key prefix
of the connection, and every redis-py connection error is translated into
:class:`.StoreUnavailable`.
"""

import os
import logging
from typing import Any, Callable, Optional

import redis

from . import savepath
from .exceptions import StoreUnavailable

logger = logging.getLogger(__name__)

Factory = Callable[..., redis.StrictRedis]


def fake_factory(server: Any = None) -> Factory:
    """
    Get a factory that builds clients for an in-memory Redis.

    All clients built by the same factory share one fake server, so that
    state survives across requests. Requires the ``fakeredis`` package.
    """
    import fakeredis

    if server is None:
        server = fakeredis.FakeServer()

    def _factory(**kwargs: Any) -> redis.StrictRedis:
        return fakeredis.FakeStrictRedis(server=server, decode_responses=True)
    return _factory


class StoreClient(object):
    """Atomic key operations against the session store."""

    def __init__(self, factory: Optional[Factory] = None) -> None:
        self._factory = factory or redis.StrictRedis
        self._prefix = ''
        self.r: Optional[redis.StrictRedis] = None

    @property
    def connected(self) -> bool:
        return self.r is not None

    def connect(self, config: savepath.ConnectionConfig) -> bool:
        """
        Connect to Redis using a parsed connection descriptor.

        When the host is a path to a Unix socket no other connection
        parameters are passed; the two modes are mutually exclusive.
        Credentials and the database index are only passed when they are
        not the defaults.

        Returns
        -------
        bool
            ``False`` if the server could not be reached.

        """
        params: dict = {'decode_responses': True}
        if os.path.exists(config.host):
            params['unix_socket_path'] = config.host
        else:
            params['host'] = config.host
            params['port'] = config.port
            params['socket_timeout'] = config.timeout or None

        if config.auth is not savepath.DEFAULT_AUTH:
            params['password'] = config.auth
        if config.database != savepath.DEFAULT_DATABASE:
            params['db'] = config.database

        client = self._factory(**params)
        try:
            client.ping()
        except redis.exceptions.RedisError as e:
            logger.error('Could not connect to Redis at %s: %s',
                         config.host, e)
            client.close()
            return False

        logger.debug('Connected to Redis at %s', config.host)
        self.r = client
        self.set_key_prefix(config.prefix)
        return True

    def set_key_prefix(self, prefix: str) -> None:
        """Namespace all subsequent keys with ``prefix``."""
        self._prefix = prefix

    def key(self, key: str) -> str:
        return f'{self._prefix}{key}'

    def _call(self, command: str, key: str, *args: Any, **kwargs: Any) -> Any:
        try:
            return getattr(self.r, command)(self.key(key), *args, **kwargs)
        except (redis.exceptions.ConnectionError,
                redis.exceptions.TimeoutError) as e:
            raise StoreUnavailable(f'Connection failed: {e}') from e

    def get(self, key: str) -> Optional[str]:
        value: Optional[str] = self._call('get', key)
        return value

    def set_if_absent(self, key: str, value: str,
                      ttl: Optional[int] = None) -> bool:
        """Create ``key`` only if it does not exist, optionally expiring."""
        if ttl:
            return bool(self._call('set', key, value, nx=True, ex=ttl))
        return bool(self._call('set', key, value, nx=True))

    def setex(self, key: str, ttl: int, value: str) -> bool:
        return bool(self._call('setex', key, ttl, value))

    def expire(self, key: str, ttl: int) -> bool:
        return bool(self._call('expire', key, ttl))

    def exists(self, key: str) -> bool:
        return bool(self._call('exists', key))

    def delete(self, key: str) -> bool:
        return bool(self._call('delete', key))

    def close(self) -> None:
        """Release the connection, if there is one."""
        if self.r is None:
            return
        self.r.close()
        self.r = None
