"""
Read-only view of pool health.
"""

from dataclasses import dataclass, asdict
from typing import Dict, List, Optional

from .key_registry import KeyRegistry


@dataclass
class KeyStatusView:
    """Status of one key as shown to callers"""
    masked_key: str
    available: bool
    request_count: int
    cooldown_until: Optional[str] = None   # Local time "HH:MM:SS"

    def to_dict(self) -> Dict:
        return asdict(self)


class StatusReporter:
    """
    Snapshot of every key, no mutation.

    An elapsed cooldown not yet swept is reported as available.
    """

    def __init__(self, registry: KeyRegistry):
        self.registry = registry

    def snapshot(self) -> List[KeyStatusView]:
        with self.registry.lock:
            now = self.registry.now()
            views = []
            for record in self.registry.records:
                eligible = record.is_eligible(now)
                cooldown = None
                if record.cooldown_until is not None and not eligible:
                    cooldown = record.cooldown_until.astimezone().strftime("%H:%M:%S")
                views.append(KeyStatusView(
                    masked_key=record.masked,
                    available=eligible,
                    request_count=record.request_count,
                    cooldown_until=cooldown,
                ))
            return views

    def summary(self) -> Dict:
        views = self.snapshot()
        return {
            "total": len(views),
            "available": sum(1 for v in views if v.available),
            "in_cooldown": sum(1 for v in views if not v.available),
            "total_requests": sum(v.request_count for v in views),
        }
