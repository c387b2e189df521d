"""Session manager — owns the single authenticated upstream session.

Lifecycle::

    UNINITIALIZED --login ok--> VALID --expiry signal--> EXPIRED
          ^                                                  |
          +------------------- login failed <--- re-login ---+

Concurrent callers that find no valid session share one in-flight login task
instead of each logging in.  A burst of parallel logins is exactly what trips
the provider's 2FA challenges and IP throttling.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, TypeVar

from src.gateway.base import Credentials, Session, SessionState, UpstreamClient
from src.gateway.errors import (
    AuthenticationError,
    ConfigurationError,
    SessionExpiredError,
)
from src.gateway.retry import retry_on_expiry

logger = logging.getLogger("heartline.gateway.session")

T = TypeVar("T")

MISSING_CREDENTIALS = "Missing credentials: set GARMIN_EMAIL and GARMIN_PASSWORD"


class SessionManager:
    """Lazy, single-flight owner of the upstream session.

    Args:
        client:                Upstream provider client.
        credentials:           Account credentials, or None if not configured.
        login_timeout_seconds: Upper bound for one login attempt.
        clock:                 Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        client: UpstreamClient,
        credentials: Credentials | None,
        login_timeout_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._credentials = credentials
        self._login_timeout = login_timeout_seconds
        self._clock = clock
        self._session: Session | None = None
        self._state = SessionState.UNINITIALIZED
        self._login_task: asyncio.Task[Session] | None = None
        self._generation = 0
        self._login_attempts = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def login_attempts(self) -> int:
        """Number of upstream login attempts made by this process."""
        return self._login_attempts

    @property
    def has_credentials(self) -> bool:
        return self._credentials is not None

    async def ensure_session(self) -> Session:
        """Return a valid session, logging in first if needed.

        Raises:
            ConfigurationError:  No credentials configured.  No upstream call.
            AuthenticationError: Login failed; state is UNINITIALIZED afterwards.
        """
        if self._credentials is None:
            raise ConfigurationError(MISSING_CREDENTIALS)
        if self._state is SessionState.VALID and self._session is not None:
            return self._session

        if self._login_task is None:
            self._login_task = asyncio.create_task(self._login(self._credentials))
        else:
            logger.debug("Joining in-flight login")
        # Shield so one cancelled caller does not abort the login for the rest
        return await asyncio.shield(self._login_task)

    async def _login(self, credentials: Credentials) -> Session:
        self._login_attempts += 1
        logger.info(
            "Logging in to %s as %s (attempt %d)",
            self._client.SOURCE_ID, credentials.identifier, self._login_attempts,
        )
        try:
            handle = await asyncio.wait_for(
                self._client.login(credentials), timeout=self._login_timeout
            )
        except asyncio.TimeoutError:
            self._mark_uninitialized()
            logger.error("Login timed out after %.1fs", self._login_timeout)
            raise AuthenticationError(
                f"Login timed out after {self._login_timeout:.0f}s"
            ) from None
        except AuthenticationError as exc:
            self._mark_uninitialized()
            logger.error("Login rejected: %s", exc)
            raise
        except Exception as exc:
            self._mark_uninitialized()
            logger.error("Login failed: %s", exc)
            raise AuthenticationError(f"Login failed: {exc}") from exc
        finally:
            self._login_task = None

        self._generation += 1
        self._session = Session(
            handle=handle, generation=self._generation, created_at=self._clock()
        )
        self._state = SessionState.VALID
        logger.info("Session established (generation %d)", self._generation)
        return self._session

    def _mark_uninitialized(self) -> None:
        self._session = None
        self._state = SessionState.UNINITIALIZED

    def invalidate(self, session: Session | None = None) -> None:
        """Mark the current session expired.  Idempotent.

        Args:
            session: The session an expiry was observed on.  If a newer session
                     has replaced it since, the call is a no-op.
        """
        if self._session is None:
            return
        if session is not None and session.generation != self._session.generation:
            logger.debug(
                "Ignoring expiry for superseded session generation %d (current %d)",
                session.generation, self._session.generation,
            )
            return
        logger.info("Invalidating session generation %d", self._session.generation)
        self._session = None
        self._state = SessionState.EXPIRED

    async def with_session(
        self, op: Callable[[Any], Awaitable[T]], label: str = "upstream call"
    ) -> T:
        """Run ``op(handle)`` with a valid session, re-logging in once on expiry.

        Raises:
            SessionExpiredError: The retry after re-login also reported expiry.
                                 The session is left invalidated.
            ConfigurationError, AuthenticationError: From ensure_session().
        """

        async def attempt() -> T:
            session = await self.ensure_session()
            try:
                return await op(session.handle)
            except SessionExpiredError:
                self.invalidate(session)
                raise

        return await retry_on_expiry(attempt, max_retries=1, label=label)
