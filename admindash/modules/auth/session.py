# Supabase Auth
# Sessions are issued and refreshed by Supabase Auth; this module only wraps the client:
# - auth.get_session()             - current session (read from the cookie storage)
# - auth.on_auth_state_change()    - SIGNED_IN / SIGNED_OUT / TOKEN_REFRESHED / USER_UPDATED events
# - auth.sign_in_with_password()   - authenticate
# - auth.sign_out()                - end the session
# - auth.update_user()             - change password
# - auth.get_user()                - user behind the current token

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

from supabase import AsyncClient

from admindash.core.errors import BackendError, ErrorKind, to_backend_error

logger = logging.getLogger(__name__)

AuthListener = Callable[[str, Optional[Any]], None]


class SessionProvider:
    def __init__(self, supabase: AsyncClient):
        self.supabase = supabase

    def _authorize(self, session: Any) -> None:
        # A session loaded from storage emits no event, so queries must be told about the token
        token = session.access_token
        self.supabase.postgrest.auth(token)
        self.supabase.options.headers["Authorization"] = f"Bearer {token}"

    async def get_session(self) -> Optional[Any]:
        """Current session, or None when there is none or the backend cannot be reached"""
        try:
            session = await self.supabase.auth.get_session()
        except Exception as e:
            logger.warning(f"Could not read auth session: {e}")
            return None
        if session is not None:
            self._authorize(session)
        return session

    def on_auth_state_change(self, callback: AuthListener) -> Any:
        """Register callback for auth events. The returned subscription must be unsubscribed."""
        def listener(event: Any, session: Optional[Any]) -> None:
            if session is not None:
                self._authorize(session)
            callback(str(getattr(event, "value", event)), session)

        return self.supabase.auth.on_auth_state_change(listener)

    @contextmanager
    def subscribe(self, callback: AuthListener) -> Iterator[Any]:
        subscription = self.on_auth_state_change(callback)
        try:
            yield subscription
        finally:
            subscription.unsubscribe()

    async def sign_in_with_password(self, email: str, password: str) -> Any:
        try:
            response = await self.supabase.auth.sign_in_with_password({
                "email": email,
                "password": password
            })
        except Exception as e:
            error_message = str(e).lower()
            if "invalid" in error_message or "credentials" in error_message:
                raise BackendError(ErrorKind.ACCESS_DENIED, "Invalid email or password")
            raise to_backend_error(e)

        if not response.user or not response.session:
            raise BackendError(ErrorKind.ACCESS_DENIED, "Invalid email or password")
        self._authorize(response.session)
        return response.session

    async def sign_out(self) -> bool:
        try:
            await self.supabase.auth.sign_out()
            return True
        except Exception as e:
            logger.warning(f"Sign out failed: {e}")
            return False

    async def update_password(self, new_password: str) -> Any:
        try:
            response = await self.supabase.auth.update_user({"password": new_password})
        except Exception as e:
            raise to_backend_error(e, ErrorKind.MUTATION_FAILED)
        if not response or not response.user:
            raise BackendError(ErrorKind.MUTATION_FAILED, "Password was not updated")
        return response.user

    async def get_user(self) -> Optional[Any]:
        """User behind the current token as the auth server sees it; None when it rejects the token"""
        try:
            response = await self.supabase.auth.get_user()
        except Exception as e:
            logger.warning(f"Could not fetch auth user: {e}")
            return None
        return response.user if response else None
