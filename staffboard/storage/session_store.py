import json
import logging
import threading
from dataclasses import asdict
from typing import Optional

from staffboard.models.entities import Identity, Role, Session
from staffboard.storage.state_store import StateStore

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
USER_KEY = "user"


def _encode_user(user: Identity) -> str:
    data = asdict(user)
    data["role"] = user.role.value
    return json.dumps(data)


def _decode_user(raw: str) -> Optional[Identity]:
    try:
        data = json.loads(raw)
        return Identity(
            id=str(data["id"]),
            name=str(data["name"]),
            email=str(data["email"]),
            role=Role(data["role"]),
        )
    except (ValueError, KeyError, TypeError) as exc:
        logger.warning(f"Ignoring malformed persisted user: {exc}")
        return None


class SessionStore:
    """
    Owns the authenticated session: token plus identity.

    The in-memory ``Session`` is immutable and replaced wholesale, so readers
    always see a consistent pair. Login and logout are the only writers.
    """

    def __init__(self, state: StateStore):
        self.state = state
        self._session = Session.empty()
        self._write_lock = threading.Lock()

    def init(self) -> Session:
        return self.restore()

    def teardown(self) -> None:
        self._session = Session.empty()
        self.state.close()

    @property
    def current(self) -> Session:
        return self._session

    def restore(self) -> Session:
        token = self.state.get(TOKEN_KEY)
        raw_user = self.state.get(USER_KEY)
        user = _decode_user(raw_user) if raw_user is not None else None

        if not token or user is None:
            if token or raw_user is not None:
                logger.warning("Persisted session incomplete, starting logged out")
            self._session = Session.empty()
        else:
            self._session = Session(token=token, user=user)
            logger.info(f"Restored session for {user.email} ({user.role.value})")
        return self._session

    def set_auth(self, token: str, user: Identity) -> Session:
        session = Session(token=token, user=user)
        with self._write_lock:
            self.state.set_many({TOKEN_KEY: token, USER_KEY: _encode_user(user)})
            self._session = session
        logger.info(f"Authenticated {user.email} as {user.role.value}")
        return session

    def clear_auth(self) -> None:
        with self._write_lock:
            self.state.delete_many([TOKEN_KEY, USER_KEY])
            self._session = Session.empty()
        logger.info("Session cleared")

    def get_token(self) -> Optional[str]:
        return self._session.token
