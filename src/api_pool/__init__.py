"""
Gemini API Key Pool
===================

Multi-key management for the rate-limited Gemini API.

Architecture:
- KeyRegistry: Key records and cooldown state
- KeySelector: Round-robin selection of eligible keys
- CooldownMonitor: Periodic restoration of expired cooldowns
- RequestOrchestrator: One logical request, retried on another key after 429/quota
- StatusReporter: Read-only pool health
- KeyPool: Assembles the above (main entry point)

Usage:
    from src.api_pool import KeyPool, RequestOrchestrator

    pool = KeyPool.from_config()

    async with pool:
        orchestrator = RequestOrchestrator(pool, client.analyze_chart)
        result = await orchestrator.execute(image)

    for view in pool.snapshot():
        print(view.masked_key, view.available, view.request_count)
"""

# Key Registry
from .key_registry import (
    KeyRegistry,
    KeyRecord,
    KeyEvent,
    KeyStatus,
    KeyOutcome,
)

# Errors
from .errors import (
    PoolError,
    PoolExhausted,
    RecoverableKeyError,
    RateLimited,
    QuotaExceeded,
    MalformedResponse,
    TransportError,
)

# Selection / cooldown / status
from .key_selector import KeySelector, SelectionStats
from .cooldown_monitor import CooldownMonitor
from .status_reporter import StatusReporter, KeyStatusView

# Pool Manager (main entry point)
from .pool_manager import KeyPool, PoolConfig

# Request Orchestrator
from .orchestrator import RequestOrchestrator

__all__ = [
    # Key Registry
    "KeyRegistry",
    "KeyRecord",
    "KeyEvent",
    "KeyStatus",
    "KeyOutcome",

    # Errors
    "PoolError",
    "PoolExhausted",
    "RecoverableKeyError",
    "RateLimited",
    "QuotaExceeded",
    "MalformedResponse",
    "TransportError",

    # Components
    "KeySelector",
    "SelectionStats",
    "CooldownMonitor",
    "StatusReporter",
    "KeyStatusView",

    # Pool Manager
    "KeyPool",
    "PoolConfig",
    "RequestOrchestrator",
]
