"""
POOL MANAGER
============

Point d'entrée du pool de clés API.

Assemble Registry, Selector, CooldownMonitor et StatusReporter.
Instance explicite, passée aux appelants (pas de singleton global).

Usage:
    pool = KeyPool.from_config()

    async with pool:                      # starts / stops the cooldown monitor
        record = pool.next_key()
        if record:
            ...
            pool.mark(record, KeyOutcome.RATE_LIMITED)

        for view in pool.snapshot():
            print(view.masked_key, view.available)
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Any

import config
from utils.logger import get_logger

from .key_registry import KeyRegistry, KeyRecord, KeyOutcome, utc_now
from .key_selector import KeySelector
from .cooldown_monitor import CooldownMonitor
from .status_reporter import StatusReporter, KeyStatusView

logger = get_logger("POOL_MANAGER")


# ============================================================================
# Configuration
# ============================================================================

@dataclass
class PoolConfig:
    """Pool options (durations in milliseconds)"""
    cooldown_ms: int = 60000        # Before a rate-limited key is retried
    max_attempts: int = 3           # Remote calls per logical request
    poll_interval_ms: int = 5000    # Cooldown monitor cadence
    wait_margin_ms: int = 1000      # Added when waiting out a pool-wide cooldown

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.cooldown_ms < 0:
            raise ValueError(f"cooldown_ms must be >= 0, got {self.cooldown_ms}")
        if self.poll_interval_ms <= 0:
            raise ValueError(f"poll_interval_ms must be > 0, got {self.poll_interval_ms}")
        if self.wait_margin_ms < 0:
            raise ValueError(f"wait_margin_ms must be >= 0, got {self.wait_margin_ms}")

    @property
    def cooldown_seconds(self) -> float:
        return self.cooldown_ms / 1000

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_ms / 1000

    @property
    def wait_margin_seconds(self) -> float:
        return self.wait_margin_ms / 1000

    @classmethod
    def from_config(cls) -> "PoolConfig":
        """Build from config.py (environment driven)"""
        return cls(
            cooldown_ms=config.KEY_COOLDOWN_MS,
            max_attempts=config.MAX_ATTEMPTS,
            poll_interval_ms=config.COOLDOWN_POLL_INTERVAL_MS,
            wait_margin_ms=config.COOLDOWN_WAIT_MARGIN_MS,
        )


# ============================================================================
# Key Pool
# ============================================================================

class KeyPool:
    """
    Process-wide pool of API keys, owned by the caller
    """

    def __init__(
        self,
        keys: List[str],
        pool_config: Optional[PoolConfig] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.config = pool_config or PoolConfig()

        self.registry = KeyRegistry(keys, cooldown_seconds=self.config.cooldown_seconds, clock=clock)
        self.selector = KeySelector(self.registry)
        self.monitor = CooldownMonitor(self.registry, poll_interval=self.config.poll_interval_seconds)
        self.reporter = StatusReporter(self.registry)

    @classmethod
    def from_config(cls) -> "KeyPool":
        """Pool built from GEMINI_API_KEYS and the pool settings in config.py"""
        pool = cls(config.GEMINI_API_KEYS, PoolConfig.from_config())
        logger.info(
            f"Pool initialized: {len(pool)} key(s), cooldown {pool.config.cooldown_seconds:.0f}s, "
            f"{pool.config.max_attempts} attempts"
        )
        return pool

    def __len__(self) -> int:
        return len(self.registry)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self):
        await self.monitor.start()

    async def stop(self):
        await self.monitor.stop()

    async def __aenter__(self) -> "KeyPool":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def next_key(self) -> Optional[KeyRecord]:
        return self.selector.next()

    def mark(self, record: KeyRecord, outcome: KeyOutcome):
        self.registry.mark(record, outcome)

    def min_cooldown_remaining(self) -> Optional[float]:
        return self.registry.min_cooldown_remaining()

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def snapshot(self) -> List[KeyStatusView]:
        return self.reporter.snapshot()

    def get_status(self) -> Dict[str, Any]:
        """Get pool status"""
        return {
            "monitor_running": self.monitor.running,
            "summary": self.reporter.summary(),
            "selector": self.selector.get_stats(),
            "keys": [v.to_dict() for v in self.snapshot()],
        }
