"""
Session Context
===============

Process-wide cache of signed-in staff profiles.

One instance is created at import time and shared by every request. A
profile enters the cache on sign-in (or on the first request carrying its
user id) and leaves it on sign-out or once it is older than the session
TTL, so pages never fetch the current user on their own and a role change
or deactivation is picked up within one TTL.
"""

import threading
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from cityflow.config import get_settings
from cityflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

ProfileLoader = Callable[[str], Awaitable[Optional[Any]]]


class SessionContext:
    """
    Thread-safe registry of authenticated profiles keyed by user id.

    Entries expire after ttl_seconds; None or 0 keeps them until sign-out.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self._profiles: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._ttl = ttl_seconds
        self._clock = clock

    def _expired(self, loaded_at: float) -> bool:
        return bool(self._ttl) and self._clock() - loaded_at >= self._ttl

    def sign_in(self, profile: Any) -> None:
        """Cache a freshly loaded profile."""
        with self._lock:
            self._profiles[profile.id] = (profile, self._clock())
        logger.info("Session started", extra={"user_id": profile.id})

    def sign_out(self, user_id: str) -> bool:
        """Invalidate a session. Returns False if the user was not signed in."""
        with self._lock:
            removed = self._profiles.pop(user_id, None) is not None
        if removed:
            logger.info("Session ended", extra={"user_id": user_id})
        return removed

    def get(self, user_id: str) -> Optional[Any]:
        """Cached profile, or None when missing or stale."""
        with self._lock:
            entry = self._profiles.get(user_id)
            if entry is None:
                return None
            profile, loaded_at = entry
            if self._expired(loaded_at):
                del self._profiles[user_id]
                logger.debug("Session expired", extra={"user_id": user_id})
                return None
            return profile

    async def resolve(self, user_id: str, loader: ProfileLoader) -> Optional[Any]:
        """
        Return the cached profile, loading and caching it on a miss or expiry.

        Inactive or unknown users are never cached.
        """
        cached = self.get(user_id)
        if cached is not None:
            return cached

        profile = await loader(user_id)
        if profile is None or not getattr(profile, "is_active", True):
            return None
        self.sign_in(profile)
        return profile

    def clear(self) -> None:
        with self._lock:
            self._profiles.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._profiles)


session_context = SessionContext(ttl_seconds=get_settings().session_ttl_seconds)
