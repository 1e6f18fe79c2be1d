"""
KEY REGISTRY
============

Gestion centralisée des clés API Gemini.

Responsabilités:
- Stockage des clés (ordre fixe, jamais supprimées)
- État par clé: disponible / cooldown
- Transitions: USED, RATE_LIMITED, QUOTA_EXCEEDED, RESTORED
- Événements de diagnostic (clé masquée)

Architecture:
- Clés fournies à la construction (liste statique)
- Un seul verrou pour sélection + marquage
- Horloge injectable (tests)
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional
from dataclasses import dataclass
from enum import Enum

from utils.logger import get_logger
from utils.api_guard import mask_key

logger = get_logger("KEY_REGISTRY")


# ============================================================================
# Configuration
# ============================================================================

DEFAULT_COOLDOWN_SECONDS = 60


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Enums
# ============================================================================

class KeyStatus(Enum):
    """API key status"""
    ACTIVE = "active"
    COOLDOWN = "cooldown"


class KeyOutcome(Enum):
    """Outcome reported to the registry for a key"""
    USED = "used"
    RATE_LIMITED = "rate_limited"
    QUOTA_EXCEEDED = "quota_exceeded"


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class KeyRecord:
    """State of one credential"""
    key: str                                   # Actual API key (never logged)
    available: bool = True
    cooldown_until: Optional[datetime] = None
    request_count: int = 0
    last_used_at: Optional[datetime] = None    # Diagnostics only

    @property
    def masked(self) -> str:
        return mask_key(self.key)

    @property
    def status(self) -> KeyStatus:
        if not self.available or self.cooldown_until is not None:
            return KeyStatus.COOLDOWN
        return KeyStatus.ACTIVE

    def is_eligible(self, now: datetime) -> bool:
        """Check if key can be selected at `now`"""
        if not self.available:
            # An elapsed cooldown counts as eligible even before restoration
            return self.cooldown_until is not None and now >= self.cooldown_until
        if self.cooldown_until and now < self.cooldown_until:
            return False
        return True

    def cooldown_remaining(self, now: datetime) -> float:
        """Seconds left in cooldown (0 if none)"""
        if not self.cooldown_until:
            return 0.0
        return max(0.0, (self.cooldown_until - now).total_seconds())

    def to_dict(self) -> Dict:
        """Convert to dictionary (excluding sensitive key)"""
        return {
            "key": self.masked,
            "status": self.status.value,
            "available": self.available,
            "cooldown_until": self.cooldown_until.isoformat() if self.cooldown_until else None,
            "request_count": self.request_count,
            "last_used_at": self.last_used_at.isoformat() if self.last_used_at else None,
        }


@dataclass
class KeyEvent:
    """Diagnostic event emitted on every transition"""
    event: str                      # "used", "rate_limited", "quota_exceeded", "restored"
    masked_key: str
    at: datetime
    cooldown_until: Optional[datetime] = None
    request_count: int = 0


# ============================================================================
# Key Registry
# ============================================================================

class KeyRegistry:
    """
    Registry of API keys and their cooldown state

    Usage:
        registry = KeyRegistry(["AIza...1", "AIza...2"], cooldown_seconds=60)

        record = registry.records[0]
        registry.mark(record, KeyOutcome.RATE_LIMITED)   # cooldown 60s
        registry.restore_expired()                       # back to available once elapsed
    """

    def __init__(
        self,
        keys: List[str],
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock

        # Rotation cursor, owned by the selector but stored with the pool state
        self.cursor = 0

        # Selection + mark must be one critical section
        self.lock = threading.RLock()

        self._listeners: List[Callable[[KeyEvent], None]] = []

        self.records: List[KeyRecord] = []
        seen = set()
        for key in keys:
            key = (key or "").strip()
            if not key or key in seen:
                continue
            seen.add(key)
            self.records.append(KeyRecord(key=key))

        if self.records:
            logger.info(f"Key registry ready with {len(self.records)} key(s)")
        else:
            logger.warning("Key registry created with no API keys")

    def __len__(self) -> int:
        return len(self.records)

    def now(self) -> datetime:
        return self.clock()

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def add_listener(self, callback: Callable[[KeyEvent], None]):
        """Register a callback receiving every KeyEvent"""
        self._listeners.append(callback)

    def _emit(self, event: str, record: KeyRecord, at: datetime):
        key_event = KeyEvent(
            event=event,
            masked_key=record.masked,
            at=at,
            cooldown_until=record.cooldown_until,
            request_count=record.request_count,
        )
        for callback in self._listeners:
            try:
                callback(key_event)
            except Exception as e:
                logger.error(f"Key event listener failed on {event}: {e}")

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def mark(self, record: KeyRecord, outcome: KeyOutcome):
        """Apply an outcome to a key"""
        with self.lock:
            now = self.now()

            if outcome == KeyOutcome.USED:
                record.request_count += 1
                record.last_used_at = now
                logger.info(f"Using API key {record.masked} ({record.request_count} requests)")
                self._emit(outcome.value, record, now)
                return

            record.available = False
            record.cooldown_until = now + timedelta(seconds=self.cooldown_seconds)
            logger.warning(
                f"API key {record.masked} in cooldown until "
                f"{record.cooldown_until.astimezone().strftime('%H:%M:%S')} "
                f"(reason: {outcome.value})"
            )
            self._emit(outcome.value, record, now)

    def restore_if_expired(self, record: KeyRecord, now: Optional[datetime] = None) -> bool:
        """Reset an elapsed cooldown. Returns True if the key was restored."""
        with self.lock:
            if record.cooldown_until is None:
                if not record.available:
                    # Unavailable without a deadline never happens through mark()
                    record.available = True
                    logger.info(f"API key {record.masked} is now available again")
                    self._emit("restored", record, now or self.now())
                    return True
                return False

            now = now or self.now()
            if now < record.cooldown_until:
                return False

            record.available = True
            record.cooldown_until = None
            logger.info(f"API key {record.masked} is now available again")
            self._emit("restored", record, now)
            return True

    def restore_expired(self) -> List[KeyRecord]:
        """Restore every key whose cooldown has elapsed"""
        with self.lock:
            now = self.now()
            return [r for r in self.records if self.restore_if_expired(r, now)]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def in_cooldown(self) -> List[KeyRecord]:
        """Keys with a cooldown deadline set (elapsed or not)"""
        with self.lock:
            return [r for r in self.records if r.cooldown_until is not None]

    def min_cooldown_remaining(self) -> Optional[float]:
        """Seconds until the earliest cooldown elapses, None if no key is cooling down"""
        with self.lock:
            now = self.now()
            waits = [
                (r.cooldown_until - now).total_seconds()
                for r in self.records if r.cooldown_until is not None
            ]
        if not waits:
            return None
        return min(waits)

    def get_status(self) -> Dict:
        """Get registry status"""
        with self.lock:
            now = self.now()
            return {
                "total_keys": len(self.records),
                "available": sum(1 for r in self.records if r.is_eligible(now)),
                "in_cooldown": sum(1 for r in self.records if not r.is_eligible(now)),
                "total_requests": sum(r.request_count for r in self.records),
            }

    def list_keys(self) -> List[Dict]:
        """List all keys (without sensitive data)"""
        with self.lock:
            return [r.to_dict() for r in self.records]
