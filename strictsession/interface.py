"""
Flask session interface backed by :class:`.SessionHandler`.

Every request gets its own handler, so the IDs minted and the locks taken
while handling one request are never visible to another. The handler is
kept on :data:`flask.g` until the session is saved, or until the request
is torn down if saving never happens.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from flask import Flask, Request, Response, g
from flask.json.tag import TaggedJSONSerializer
from flask.sessions import SessionInterface, SessionMixin
from werkzeug.datastructures import CallbackDict

from . import identity
from .handler import SessionHandler
from .identity import CookieParams
from .savepath import ConnectionConfig
from .store import Factory

logger = logging.getLogger(__name__)

HANDLER_KEY = 'strictsession_handler'


class PendingCookies(dict):
    """Cookies issued by the handler, waiting for the response."""

    def issue(self, name: str, value: str, expires: Optional[datetime],
              path: str, domain: str, secure: bool, httponly: bool) -> None:
        # Only the last cookie issued under a name reaches the client.
        self[name] = {
            'key': name,
            'value': value,
            'expires': expires,
            'path': path,
            'domain': domain or None,
            'secure': secure,
            'httponly': httponly
        }


class RedisSession(CallbackDict, SessionMixin):
    """Session data for one request, tracking modifications."""

    def __init__(self, initial: Optional[dict] = None, sid: str = '',
                 new: bool = False,
                 cookies: Optional[PendingCookies] = None) -> None:
        def on_update(self: 'RedisSession') -> None:
            self.modified = True

        CallbackDict.__init__(self, initial, on_update)
        self.sid = sid
        self.new = new
        self.modified = False
        self.cookies = cookies if cookies is not None else PendingCookies()


class RedisSessionInterface(SessionInterface):
    """
    Loads and saves sessions through a locking :class:`.SessionHandler`.

    Parameters
    ----------
    config : :class:`.ConnectionConfig`
        Where the session store lives.
    factory : callable
        Builds the redis client; see :class:`.StoreClient`.
    id_generator : callable
        Mints new session IDs.

    """

    serializer = TaggedJSONSerializer()
    session_class = RedisSession

    def __init__(self, config: ConnectionConfig,
                 factory: Optional[Factory] = None,
                 id_generator: Callable[[], str] = identity.generate_id) \
            -> None:
        self.config = config
        self.factory = factory
        self.id_generator = id_generator

    def get_cookie_params(self, app: Flask) -> CookieParams:
        lifetime = 0
        if app.config['SESSION_PERMANENT']:
            lifetime = int(app.config['SESSION_TTL'])
        return CookieParams(
            lifetime=lifetime,
            path=self.get_cookie_path(app),
            domain=self.get_cookie_domain(app) or '',
            secure=self.get_cookie_secure(app),
            httponly=self.get_cookie_httponly(app)
        )

    def make_handler(self, app: Flask, cookies: PendingCookies) \
            -> SessionHandler:
        return SessionHandler(
            lock_ttl=int(app.config['SESSION_LOCK_TTL']),
            session_ttl=int(app.config['SESSION_TTL']),
            lock_attempts=int(app.config['SESSION_LOCK_ATTEMPTS']),
            factory=self.factory,
            id_generator=self.id_generator,
            cookie_issuer=cookies.issue,
            cookie_params=self.get_cookie_params(app)
        )

    def open_session(self, app: Flask, request: Request) \
            -> Optional[RedisSession]:
        """
        Load the session for ``request``, locking it for the duration.

        Returns ``None`` if the session store cannot be reached, in which
        case Flask falls back to a null session.
        """
        cookies = PendingCookies()
        handler = self.make_handler(app, cookies)
        name = self.get_cookie_name(app)
        if not handler.open(self.config, name):
            logger.error('Session store unavailable; using a null session')
            return None
        setattr(g, HANDLER_KEY, handler)

        session_id = request.cookies.get(name)
        if not session_id:
            session_id = handler.create_id()
        elif not handler.validate_id(session_id):
            logger.info('Session ID from request has no session; replacing')
            session_id = handler.regenerate()

        raw = handler.read(session_id)
        data: Dict[str, Any] = {}
        if raw:
            try:
                data = self.serializer.loads(raw)
            except ValueError as e:
                logger.error('Corrupt session data; starting over: %s', e)
        return self.session_class(data, sid=session_id,
                                  new=handler.is_new(session_id),
                                  cookies=cookies)

    def save_session(self, app: Flask, session: SessionMixin,
                     response: Response) -> None:
        """Persist ``session`` and release its lock."""
        if not isinstance(session, RedisSession):
            return
        handler: Optional[SessionHandler] = g.pop(HANDLER_KEY, None)
        if handler is None:
            return
        try:
            response.vary.add('Cookie')
            name = self.get_cookie_name(app)
            # A regenerated ID was already sent to the client, so it needs a
            # record even if the session is empty.
            issued = name in session.cookies
            if not session and session.modified:
                handler.destroy(session.sid)
                session.cookies.pop(name, None)
                response.delete_cookie(
                    name,
                    domain=self.get_cookie_domain(app),
                    path=self.get_cookie_path(app)
                )
            elif session.modified or issued:
                data = self.serializer.dumps(dict(session))
                if handler.write(session.sid, data) and session.new \
                        and not issued:
                    handler.send_cookie(session.sid)
            elif not session.new:
                handler.update_timestamp(session.sid, '')

            samesite = self.get_cookie_samesite(app)
            for cookie in session.cookies.values():
                response.set_cookie(samesite=samesite, **cookie)
        finally:
            handler.close()
