"""
Locking, fixation-resistant server-side sessions for Flask, kept in Redis.

Intended for use in a Flask application factory, for example:

.. code-block:: python

   from flask import Flask
   from strictsession import StrictSession


   def create_web_app() -> Flask:
       app = Flask('someapp')
       app.config.from_pyfile('config.py')
       StrictSession(app)   # Replaces the cookie-based session.
       return app

While a request is being handled, the session it uses is locked; other
requests for the same session wait until it is saved. Session IDs sent by
clients are only honored if there is a session for them in Redis.
"""

import logging
from typing import Optional

from flask import Flask, g

from . import app_logging, config, savepath, store
from .exceptions import ConfigurationError
from .handler import SessionHandler
from .interface import HANDLER_KEY, RedisSessionInterface
from .store import Factory

logger = logging.getLogger(__name__)


class StrictSession(object):
    """Installs :class:`.RedisSessionInterface` on a Flask app."""

    def __init__(self, app: Optional[Flask] = None,
                 factory: Optional[Factory] = None) -> None:
        """
        Initialize ``app``, if given.

        Parameters
        ----------
        app : :class:`Flask`
        factory : callable
            Builds the redis client. Mostly useful for testing.

        """
        self.factory = factory
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """
        Set configuration defaults and replace the session interface.

        Raises
        ------
        :class:`.ConfigurationError`
            Raised if the session or lock TTL do not make sense.

        """
        for key in dir(config):
            if key.isupper():
                app.config.setdefault(key, getattr(config, key))

        if int(app.config['SESSION_TTL']) <= 0:
            raise ConfigurationError('SESSION_TTL must be positive')
        if int(app.config['SESSION_LOCK_TTL']) < 0:
            raise ConfigurationError('SESSION_LOCK_TTL cannot be negative')
        attempts = int(app.config['SESSION_LOCK_ATTEMPTS'])
        if attempts == 0 or attempts < -1:
            raise ConfigurationError('SESSION_LOCK_ATTEMPTS must be positive,'
                                     ' or -1 to wait forever')

        if app.config['SESSION_JSON_LOGGING']:
            app_logging.setup_logger()

        factory = self.factory
        if factory is None and app.config['REDIS_FAKE']:
            logger.warning('Using fake Redis; sessions live in this process')
            factory = store.fake_factory()

        descriptor = app.config['SESSION_SAVE_PATH'] \
            or config.compose_save_path(app.config)
        app.session_interface = RedisSessionInterface(
            savepath.parse(descriptor),
            factory=factory
        )
        app.teardown_request(self.teardown_request)

    def teardown_request(self, exception: Optional[BaseException]) -> None:
        """Release the session if the request ended before it was saved."""
        handler: Optional[SessionHandler] = g.pop(HANDLER_KEY, None)
        if handler is not None:
            logger.debug('Closing session handler on teardown')
            handler.close()
