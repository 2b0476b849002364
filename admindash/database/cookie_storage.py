"""
Cookie storage adapter for the Supabase auth client.

The auth client persists its session through get_item/set_item/remove_item. Instead of
keeping it in process memory, reads come from the incoming request's cookies and writes are
queued, then flushed onto the outgoing response (see the session cookie middleware in main.py).

Cookie settings:
- Secure: HTTPS only in production
- SameSite: strict (CSRF protection)
- HttpOnly: not readable from page scripts
- Max-Age: 7 days
"""

import logging
from typing import Dict, Mapping, Optional

from starlette.responses import Response

from admindash.config import settings

logger = logging.getLogger(__name__)

_REMOVED = None


class CookieStorage:
    def __init__(
        self,
        cookies: Optional[Mapping[str, str]] = None,
        *,
        secure: Optional[bool] = None,
        samesite: Optional[str] = None,
        max_age_days: Optional[int] = None,
        path: str = "/",
    ):
        self._values: Dict[str, str] = dict(cookies or {})
        self._pending: Dict[str, Optional[str]] = {}
        self.secure = settings.cookie_secure if secure is None else secure
        self.samesite = samesite or settings.auth_cookie_samesite
        self.max_age = (max_age_days or settings.auth_cookie_max_age_days) * 24 * 60 * 60
        self.path = path

    async def get_item(self, key: str) -> Optional[str]:
        return self._values.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._values[key] = value
        self._pending[key] = value
        logger.debug(f"Cookie set: {key[:20]}...")

    async def remove_item(self, key: str) -> None:
        self._values.pop(key, None)
        self._pending[key] = _REMOVED
        logger.debug(f"Cookie removed: {key}")

    @property
    def has_pending_writes(self) -> bool:
        return bool(self._pending)

    def apply(self, response: Response) -> None:
        """Write queued cookie changes onto the response, then forget them."""
        for key, value in self._pending.items():
            if value is _REMOVED:
                response.delete_cookie(key, path=self.path)
            else:
                response.set_cookie(
                    key,
                    value,
                    max_age=self.max_age,
                    path=self.path,
                    secure=self.secure,
                    httponly=True,
                    samesite=self.samesite,
                )
        self._pending.clear()
