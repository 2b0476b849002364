"""
Auth state store.

Holds {user, role, permissions, session, loading, error} for one session. The store is an
ordinary object: construct one per request (or per test), enter it as an async context
manager, and it is torn down with its auth subscription released and any in-flight
resolution cancelled.

Lifecycle:
    uninitialized (loading=True) -> resolving -> ready (loading=False) -> logged-out

Every auth event that carries a session (SIGNED_IN, TOKEN_REFRESHED, USER_UPDATED, ...)
re-runs the access resolution; an event without a session resets the store. A newer
resolution supersedes an older one, and a superseded result is never written.
"""

import asyncio
import logging
from typing import Any, Callable, List, Optional

from admindash.core.errors import DEGRADE_KINDS
from admindash.modules.auth.resolver import AccessResolver
from admindash.modules.auth.schemas import AuthState, SessionInfo
from admindash.modules.auth.session import SessionProvider

logger = logging.getLogger(__name__)

StateListener = Callable[[AuthState], None]

LOAD_FAILED_MESSAGE = "Failed to load user data"


class AuthStore:
    def __init__(self, session_provider: SessionProvider, resolver: AccessResolver):
        self.session_provider = session_provider
        self.resolver = resolver
        self._state = AuthState()
        self._listeners: List[StateListener] = []
        self._subscription: Optional[Any] = None
        self._task: Optional[asyncio.Task] = None
        self._generation = 0
        self._closed = False

    @property
    def state(self) -> AuthState:
        return self._state

    async def __aenter__(self) -> "AuthStore":
        self.start()
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def start(self) -> None:
        """Subscribe to auth events. Paired with close()."""
        if self._subscription is None:
            self._subscription = self.session_provider.on_auth_state_change(self._handle_auth_event)

    async def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self._closed = True
        self._generation += 1
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
        self._listeners.clear()

    async def initialize(self) -> AuthState:
        """Mount-time session check, then resolution for the session's user"""
        session = await self.session_provider.get_session()
        if session is None:
            self._dispatch(session=None, loading=False)
            return self._state
        self._dispatch(session=SessionInfo.from_session(session))
        self._schedule_resolution(str(session.user.id), session.user.email)
        await self.settled()
        return self._state

    async def refresh_user(self) -> AuthState:
        """Re-run resolution for the current session's user"""
        current = self._state.session
        if current is None:
            return self._state
        self._schedule_resolution(current.user_id, current.email)
        await self.settled()
        return self._state

    async def settled(self) -> AuthState:
        """Wait until no resolution is in flight"""
        while self._task is not None and not self._task.done():
            task = self._task
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                # Superseded by a newer resolution; anything else is our own cancellation
                if not task.cancelled():
                    raise
        return self._state

    def update_user(self, **changes: Any) -> None:
        """Shallow merge into user; role, permissions and session are left alone"""
        if self._state.user is None:
            return
        self._dispatch(user=self._state.user.model_copy(update=changes))

    def logout(self) -> None:
        self._reset()

    def clear_error(self) -> None:
        self._dispatch(error=None)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call listener with every new state; returns the unsubscribe function"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _handle_auth_event(self, event: str, session: Optional[Any]) -> None:
        if self._closed:
            return
        logger.debug(f"Auth event: {event}")
        if session is None:
            self._reset()
            return
        self._dispatch(session=SessionInfo.from_session(session))
        self._schedule_resolution(str(session.user.id), session.user.email)

    def _schedule_resolution(self, user_id: str, email: Optional[str]) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._generation += 1
        self._dispatch(loading=True, error=None)
        self._task = asyncio.create_task(self._load_user_data(self._generation, user_id, email))

    async def _load_user_data(self, generation: int, user_id: str, email: Optional[str]) -> None:
        try:
            access = await self.resolver.resolve(user_id, email)
        except Exception as e:
            logger.exception(f"Error loading user data for {user_id}: {e}")
            if generation == self._generation:
                self._dispatch(loading=False, error=LOAD_FAILED_MESSAGE)
            return

        if generation != self._generation:
            logger.debug(f"Discarding superseded access resolution for {user_id}")
            return

        error = None
        if access.degraded is not None and access.degraded not in DEGRADE_KINDS:
            error = LOAD_FAILED_MESSAGE
        self._dispatch(
            user=access.user,
            role=access.role,
            permissions=list(access.permissions),
            loading=False,
            error=error,
        )

    def _reset(self) -> None:
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._dispatch(user=None, role=None, permissions=[], session=None, loading=False, error=None)

    def _dispatch(self, **changes: Any) -> None:
        self._state = self._state.model_copy(update=changes)
        for listener in list(self._listeners):
            listener(self._state)
