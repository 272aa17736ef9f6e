"""
Replay protection package.

Holds the process-wide registry of accepted nonces. The registry is the only
mutable state shared between requests, and `ReplayGuard.check_and_insert` is
its only write path.
"""

from .guard import ReplayGuard

__all__ = ["ReplayGuard"]
