# src/taskpulse/core/session.py

from __future__ import annotations

"""
Identity session holder.

One explicitly constructed object (no module global) that tracks the signed-in
user and fans user changes out to subscribers (the stores). Stores read
`holder.user_id` to scope their requests.
"""

import logging
from collections.abc import Awaitable, Callable

from ..errors import AuthError
from .ports import AuthEvent, IdentityClient, Session

logger = logging.getLogger(__name__)

UserListener = Callable[[str | None], Awaitable[None]]


class SessionHolder:
    def __init__(self, identity: IdentityClient) -> None:
        self._identity = identity
        self._session: Session | None = None
        self._listeners: list[UserListener] = []
        self._unsubscribe: Callable[[], None] | None = None
        self.loading = True

    # ---- read side ----

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def user_id(self) -> str | None:
        return self._session.user_id if self._session else None

    @property
    def email(self) -> str | None:
        return self._session.email if self._session else None

    def subscribe(self, listener: UserListener) -> Callable[[], None]:
        """Call `listener(user_id | None)` whenever the signed-in user changes."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    # ---- lifecycle ----

    async def start(self) -> None:
        """Restore any existing session once, then follow the identity event stream."""
        self._unsubscribe = self._identity.on_session_change(self._on_identity_event)
        try:
            session = await self._identity.get_session()
        except Exception:
            logger.exception("Restoring session failed")
            session = None
        self.loading = False
        await self._set_session(session)

    async def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._listeners.clear()

    async def _on_identity_event(self, event: AuthEvent, session: Session | None) -> None:
        logger.info("Auth state changed: %s user=%s", event, session.user_id if session else None)
        self.loading = False
        if event == AuthEvent.SIGNED_OUT:
            session = None
        await self._set_session(session)

    async def _set_session(self, session: Session | None) -> None:
        previous = self.user_id
        self._session = session
        current = self.user_id
        if previous == current:
            return
        for listener in list(self._listeners):
            try:
                await listener(current)
            except Exception:
                logger.exception("Session listener failed user=%s", current)

    # ---- actions ----

    async def sign_in(self, email: str, password: str) -> Session:
        """Raises AuthError; the SIGNED_IN event updates this holder."""
        session = await self._identity.sign_in_with_password(email, password)
        if self.user_id != session.user_id:
            await self._set_session(session)
        return session

    async def sign_up(self, email: str, password: str, redirect_url: str | None = None) -> Session | None:
        """Raises AuthError. Returns None when the account still needs email confirmation."""
        return await self._identity.sign_up(email, password, redirect_url)

    async def sign_out(self) -> None:
        """
        Hard sign-out: local state ends up signed out whatever the backend says.
        A "session not found" answer counts as already signed out.
        """
        if self._session is None:
            logger.warning("sign_out called, but there is no session")
            return

        self.loading = True
        try:
            await self._identity.sign_out()
        except AuthError as e:
            if e.is_session_not_found:
                logger.warning("Session not found during sign-out, clearing local state anyway")
            else:
                logger.error("Error signing out: %s", e)
        except Exception:
            logger.exception("Error signing out")
        finally:
            self.loading = False
            await self._set_session(None)
