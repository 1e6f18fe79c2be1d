"""
KEY SELECTOR
============

Sélection round-robin des clés disponibles.

- Scan à partir du curseur, avec retour au début
- Première clé éligible gagne (cooldown expiré = éligible)
- Curseur avancé après la clé choisie
- Sélection et usage = une seule étape atomique
"""

from dataclasses import dataclass
from typing import Dict, Optional

from utils.logger import get_logger

from .key_registry import KeyRegistry, KeyRecord, KeyOutcome

logger = get_logger("KEY_SELECTOR")


@dataclass
class SelectionStats:
    """Selection statistics"""
    total_requests: int = 0
    selected: int = 0
    empty: int = 0


class KeySelector:
    """
    Round-robin key selector

    Usage:
        selector = KeySelector(registry)

        record = selector.next()
        if record is None:
            # every key is in cooldown (or none configured)
            ...
    """

    def __init__(self, registry: KeyRegistry):
        self.registry = registry
        self.stats = SelectionStats()

    def next(self) -> Optional[KeyRecord]:
        """Next eligible key, or None if every key is cooling down"""
        registry = self.registry

        with registry.lock:
            self.stats.total_requests += 1
            size = len(registry.records)

            if size == 0:
                self.stats.empty += 1
                return None

            now = registry.now()
            start = registry.cursor % size

            for offset in range(size):
                index = (start + offset) % size
                record = registry.records[index]

                if not record.is_eligible(now):
                    continue

                # Lazy restore: the monitor may not have swept this key yet
                registry.restore_if_expired(record, now)

                registry.cursor = (index + 1) % size
                registry.mark(record, KeyOutcome.USED)
                self.stats.selected += 1
                return record

            self.stats.empty += 1

        logger.debug(f"No eligible key among {size}")
        return None

    def get_stats(self) -> Dict:
        """Get selection statistics"""
        total = self.stats.total_requests
        return {
            "total_requests": total,
            "selected": self.stats.selected,
            "empty": self.stats.empty,
            "success_rate": self.stats.selected / total if total > 0 else 0,
        }

    def reset_stats(self):
        """Reset selection statistics"""
        self.stats = SelectionStats()
