from __future__ import annotations

import hmac
import secrets
import time
from typing import Callable, Dict, Optional

from .errors import InvalidCredentialsError, SessionExpiredOrInvalid

SESSION_TTL_SECONDS = 24 * 60 * 60

Clock = Callable[[], float]


class SessionStore:
    """In-memory login sessions.

    Tokens live until logout or ``ttl_seconds`` after login, whichever comes first.
    Nothing is persisted; a restart drops every session.
    """

    def __init__(
        self,
        username: str,
        password: str,
        ttl_seconds: float = SESSION_TTL_SECONDS,
        clock: Clock = time.time,
    ) -> None:
        self._username = username
        self._password = password
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._tokens: Dict[str, float] = {}

    def login(self, username: Optional[str], password: Optional[str]) -> str:
        user_ok = hmac.compare_digest(str(username or "").encode(), self._username.encode())
        pass_ok = hmac.compare_digest(str(password or "").encode(), self._password.encode())
        if not (user_ok and pass_ok):
            raise InvalidCredentialsError()
        self._purge()
        token = secrets.token_urlsafe(32)
        self._tokens[token] = self._clock() + self._ttl
        return token

    def validate(self, token: Optional[str]) -> bool:
        if not token:
            return False
        expires_at = self._tokens.get(token)
        if expires_at is None:
            return False
        if self._clock() >= expires_at:
            del self._tokens[token]
            return False
        return True

    def require(self, token: Optional[str]) -> str:
        if not self.validate(token):
            raise SessionExpiredOrInvalid()
        return token  # type: ignore[return-value]

    def logout(self, token: Optional[str]) -> None:
        if token:
            self._tokens.pop(token, None)

    def __len__(self) -> int:
        self._purge()
        return len(self._tokens)

    def _purge(self) -> None:
        now = self._clock()
        for token in [t for t, exp in self._tokens.items() if now >= exp]:
            del self._tokens[token]
