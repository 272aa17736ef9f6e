"""
Nonce registry guarding against PoP token replay.
"""

import threading
import time
from typing import Callable, Dict, Optional

from shared.logging import get_logger, redact_nonce


class ReplayGuard:
    """Thread-safe set of accepted nonces with atomic check-and-insert.

    Each nonce is stored with the expiry of the token that carried it.
    Entries become eligible for eviction once that expiry plus
    `eviction_grace_seconds` has passed; at that point the verifier rejects
    the token as expired, so forgetting the nonce cannot reopen a replay.
    Nonces from tokens without an expiry are kept for the life of the
    process.

    Eviction runs lazily inside `check_and_insert`, at most once every
    `sweep_interval_seconds`, or on demand through `sweep`.
    """

    def __init__(
        self,
        eviction_grace_seconds: float = 0.0,
        sweep_interval_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ):
        self.eviction_grace_seconds = eviction_grace_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self._nonces: Dict[str, Optional[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()
        self.logger = get_logger("pop_auth.replay")

    def check_and_insert(self, nonce: str, expires_at: Optional[float] = None) -> bool:
        """Accept `nonce` once.

        Returns True and records the nonce if it has not been seen, False
        (leaving the registry untouched) if it has. The membership test and
        the insert happen under one lock acquisition.
        """
        if not nonce:
            raise ValueError("nonce must be a non-empty string")

        with self._lock:
            now = self._clock()
            if now - self._last_sweep >= self.sweep_interval_seconds:
                self._sweep_locked(now)

            if nonce in self._nonces:
                self.logger.warning("Replay detected", nonce=redact_nonce(nonce))
                return False

            self._nonces[nonce] = expires_at
            return True

    def sweep(self) -> int:
        """Evict nonces whose tokens have expired. Returns the number removed."""
        with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: float) -> int:
        cutoff = now - self.eviction_grace_seconds
        expired = [
            nonce for nonce, expires_at in self._nonces.items()
            if expires_at is not None and expires_at < cutoff
        ]
        for nonce in expired:
            del self._nonces[nonce]

        self._last_sweep = now
        if expired:
            self.logger.debug("Expired nonces evicted", evicted=len(expired), remaining=len(self._nonces))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._nonces.clear()

    def __contains__(self, nonce: object) -> bool:
        with self._lock:
            return nonce in self._nonces

    def __len__(self) -> int:
        with self._lock:
            return len(self._nonces)
