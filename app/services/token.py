"""Session token service.

Tokens are opaque random strings stored in ``session_tokens``. A token stays
valid while it keeps being used: every successful verification moves
``last_used_at`` forward, and a token untouched for the full TTL is treated as
if it did not exist. Stale rows are removed by :class:`TokenSweeper`.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.config import get_settings
from app.exceptions import InvalidToken
from app.models.session_token import SessionToken
from app.models.user import User
from app.services.generator import random_string

logger = logging.getLogger("account_api")

TOKEN_LENGTH = 32


def _utcnow() -> datetime:
    return datetime.utcnow()


@dataclass
class CurrentUser:
    """Authenticated principal attached to a request."""

    user_id: int


class TokenService:
    """Issues, verifies and revokes session tokens. The database is the only source of truth."""

    def __init__(self, ttl: timedelta | None = None) -> None:
        settings = get_settings()
        self.ttl = ttl or timedelta(days=settings.TOKEN_TTL_DAYS)

    def issue(self, db: Session, user: User) -> str:
        """Create and persist a new token for ``user``. Returns the raw token value."""
        token = random_string(TOKEN_LENGTH)
        db.add(SessionToken(token=token, user_id=user.id, last_used_at=_utcnow()))
        db.commit()
        return token

    def verify(self, db: Session, token: str | None) -> CurrentUser:
        """Resolve a token to its owner and refresh its window.

        Raises InvalidToken when the token is unknown, stale, or its owner no
        longer exists.
        """
        if not token:
            raise InvalidToken()

        now = _utcnow()
        window_start = now - self.ttl
        session_token = (
            db.query(SessionToken)
            .join(User, SessionToken.user_id == User.id)
            .filter(SessionToken.token == token, SessionToken.last_used_at > window_start)
            .first()
        )
        if not session_token:
            raise InvalidToken()
        user_id = session_token.user_id

        # The row may be revoked or swept between the lookup and the refresh
        result = db.execute(
            update(SessionToken)
            .where(SessionToken.token == token, SessionToken.last_used_at > window_start)
            .values(last_used_at=now)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        if result.rowcount == 0:
            raise InvalidToken()
        return CurrentUser(user_id=user_id)

    def revoke(self, db: Session, token: str) -> None:
        """Delete a single token. Unknown tokens are ignored."""
        db.query(SessionToken).filter(SessionToken.token == token).delete(synchronize_session=False)
        db.commit()

    def revoke_all(self, db: Session, user_id: int) -> None:
        """Delete every token owned by ``user_id``."""
        db.query(SessionToken).filter(SessionToken.user_id == user_id).delete(synchronize_session=False)
        db.commit()

    def sweep(self, db: Session) -> int:
        """Delete every token whose window has elapsed. Returns the number of rows removed."""
        cutoff = _utcnow() - self.ttl
        removed = db.query(SessionToken).filter(SessionToken.last_used_at <= cutoff).delete(synchronize_session=False)
        db.commit()
        return removed


class TokenSweeper:
    """Runs :meth:`TokenService.sweep` on a fixed interval in a daemon thread.

    Owned by the application lifespan: started once at startup and stopped at
    shutdown. A failed iteration is logged and the loop carries on.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        interval_seconds: float,
        token_service: TokenService | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.interval_seconds = interval_seconds
        self._token_service = token_service or get_token_service()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the background loop. Calling it on a running sweeper does nothing."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="token-sweeper", daemon=True)
        self._thread.start()
        logger.info("Token sweeper started (interval %ss)", self.interval_seconds)

    def stop(self, timeout: float | None = 5.0) -> None:
        """Signal the loop to exit and wait for the thread."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
            logger.info("Token sweeper stopped")

    def run_once(self) -> int:
        """Run a single sweep in a fresh session. Never raises."""
        db: Session | None = None
        try:
            db = self._session_factory()
            removed = self._token_service.sweep(db)
        except Exception:
            logger.exception("Token sweep failed")
            return 0
        finally:
            if db is not None:
                db.close()

        if removed:
            logger.info("Token sweep removed %d expired token(s)", removed)
        return removed

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            self.run_once()


_token_service: TokenService | None = None


def get_token_service() -> TokenService:
    """Get singleton token service instance."""
    global _token_service
    if _token_service is None:
        _token_service = TokenService()
    return _token_service
