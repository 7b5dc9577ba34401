"""Tree configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


@dataclass
class TreeConfig:
    """Behaviour switches for a KDTree.

    Attributes:
        validate_after_writes: Run the validator after every insert, remove
            and balance while the write lock is still held. Failures raise
            InvariantViolationError. Meant for tests and debugging; it makes
            every write O(n).
        log_rebalance: Log depth before and after ``balance()`` at INFO.
    """

    validate_after_writes: bool = False
    log_rebalance: bool = True

    @classmethod
    def from_env(cls) -> TreeConfig:
        """Build a config from ``KDSPACE_*`` environment variables."""
        defaults = cls()
        return cls(
            validate_after_writes=_env_flag(
                "KDSPACE_VALIDATE_AFTER_WRITES", defaults.validate_after_writes
            ),
            log_rebalance=_env_flag("KDSPACE_LOG_REBALANCE", defaults.log_rebalance),
        )
