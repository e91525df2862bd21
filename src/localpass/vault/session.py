# LocalPass - Session Lock Manager
#
# Inactivity auto-lock. While the store is unlocked a single countdown task
# runs; any user activity cancels it and starts a fresh one. When it
# expires the store is locked, discarding key and plaintext.

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from .vault_store import VaultStore

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10 * 60


class SessionLockManager:
    """Locks a VaultStore after a period without user activity.

    Best effort: if the timer fires while a save is in flight, the save
    still completes and only the in-memory secrets are dropped.
    """

    def __init__(
        self,
        store: VaultStore,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        on_lock: Optional[Callable[[], None]] = None,
    ):
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self._store = store
        self._timeout = timeout_seconds
        self._on_lock = on_lock
        self._task: Optional[asyncio.Task] = None
        self._last_activity: Optional[datetime] = None
        self._lock_count = 0

    # ── Lifecycle ────────────────────────────────────────────────────

    def start(self) -> None:
        """Arm the timer if the store is unlocked. Call after unlock."""
        if not self._store.is_unlocked:
            return
        self._arm()
        logger.info("Auto-lock armed (timeout=%ss)", self._timeout)

    def touch(self) -> None:
        """Record user activity and restart the countdown."""
        self._last_activity = datetime.now(timezone.utc)
        if self._store.is_unlocked:
            self._arm()
        else:
            self._cancel()

    async def stop(self) -> None:
        """Cancel the countdown (e.g. on shutdown or manual lock)."""
        task = self._task
        self._cancel()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    @property
    def armed(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def timeout_seconds(self) -> float:
        return self._timeout

    @property
    def last_activity(self) -> Optional[datetime]:
        return self._last_activity

    @property
    def lock_count(self) -> int:
        """How many times the timer has locked the store."""
        return self._lock_count

    # ── Countdown ────────────────────────────────────────────────────

    def _cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def _arm(self) -> None:
        self._cancel()
        self._task = asyncio.get_running_loop().create_task(self._countdown())

    async def _countdown(self) -> None:
        await asyncio.sleep(self._timeout)
        if not self._store.is_unlocked:
            return
        self._store.lock(reason="inactivity")
        self._lock_count += 1
        logger.info("Vault auto-locked after %ss of inactivity", self._timeout)
        if self._on_lock is not None:
            try:
                self._on_lock()
            except Exception:
                logger.exception("on_lock callback failed")
