"""
Parses the session store connection descriptor.

A descriptor is a URL-ish string that points at a Redis server, e.g.
``tcp://redis:6379?timeout=2.5&prefix=app:&auth=s3cret&database=2``, or
at a Unix socket, e.g. ``/var/run/redis.sock?database=1``.
"""

from typing import NamedTuple, Optional
from urllib.parse import urlsplit, parse_qs

from .exceptions import ConfigurationError

DEFAULT_HOST = '127.0.0.1'
DEFAULT_PORT = 6379
DEFAULT_TIMEOUT = 0.0
DEFAULT_PREFIX = 'session:'
DEFAULT_AUTH: Optional[str] = None
"""Sentinel meaning "do not authenticate"."""

DEFAULT_DATABASE = 0
"""Sentinel meaning "do not select a database"."""

SCHEMES = ('tcp', 'redis', 'unix')


class ConnectionConfig(NamedTuple):
    """Everything needed to connect to the session store."""

    host: str
    port: int
    timeout: float
    prefix: str
    auth: Optional[str]
    database: int


def parse(descriptor: str) -> ConnectionConfig:
    """
    Parse a connection descriptor.

    Parameters
    ----------
    descriptor : str

    Returns
    -------
    :class:`ConnectionConfig`

    Raises
    ------
    :class:`ConfigurationError`
        Raised if the port, timeout or database are not numbers.

    """
    descriptor = descriptor.strip()
    if '://' not in descriptor:
        if descriptor.startswith('/'):
            descriptor = f'unix://{descriptor}'
        else:
            descriptor = f'tcp://{descriptor}'
    parts = urlsplit(descriptor)
    if parts.scheme not in SCHEMES:
        raise ConfigurationError(f'Unsupported scheme: {parts.scheme}')

    query = {key: values[-1] for key, values
             in parse_qs(parts.query, keep_blank_values=True).items()}

    if parts.scheme == 'unix':
        host = parts.path
        port = DEFAULT_PORT
    else:
        host = parts.hostname or DEFAULT_HOST
        try:
            port = parts.port or DEFAULT_PORT
        except ValueError as e:
            raise ConfigurationError(f'Invalid port in {descriptor}') from e

    try:
        timeout = float(query.get('timeout', DEFAULT_TIMEOUT))
        database = int(query.get('database', DEFAULT_DATABASE))
    except ValueError as e:
        raise ConfigurationError(f'Invalid parameter in {descriptor}') from e

    return ConnectionConfig(
        host=host,
        port=port,
        timeout=timeout,
        prefix=query.get('prefix', DEFAULT_PREFIX),
        auth=query.get('auth') or DEFAULT_AUTH,
        database=database
    )
