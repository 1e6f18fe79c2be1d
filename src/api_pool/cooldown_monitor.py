"""
COOLDOWN MONITOR
================

Tâche périodique qui remet en service les clés dont le cooldown a expiré.

Le sélecteur traite déjà un cooldown expiré comme éligible: ce moniteur
ne sert qu'à garder l'état affiché à jour et à journaliser les retours.
"""

import asyncio
from typing import List, Optional

from utils.logger import get_logger

from .key_registry import KeyRegistry, KeyRecord

logger = get_logger("COOLDOWN_MONITOR")


DEFAULT_POLL_INTERVAL = 5.0  # seconds


class CooldownMonitor:
    """
    Periodic cooldown sweep on the running event loop

    Usage:
        monitor = CooldownMonitor(registry, poll_interval=5)
        await monitor.start()
        ...
        await monitor.stop()
    """

    def __init__(self, registry: KeyRegistry, poll_interval: float = DEFAULT_POLL_INTERVAL):
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")

        self.registry = registry
        self.poll_interval = poll_interval

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self.sweeps = 0

    @property
    def running(self) -> bool:
        return self._running and self._task is not None and not self._task.done()

    def sweep(self) -> List[KeyRecord]:
        """Restore every key whose cooldown has elapsed"""
        self.sweeps += 1
        restored = self.registry.restore_expired()
        if restored:
            logger.info(f"Sweep restored {len(restored)} key(s)")
        return restored

    async def _run(self):
        while self._running:
            await asyncio.sleep(self.poll_interval)
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"Cooldown sweep failed: {e}")

    async def start(self):
        """Start the sweep task (no-op if already running)"""
        if self.running:
            return

        self._running = True
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info(f"Cooldown monitor started (every {self.poll_interval:.1f}s)")

    async def stop(self):
        """Stop the sweep task and wait for it to finish"""
        self._running = False

        task, self._task = self._task, None
        if task is None:
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

        logger.info("Cooldown monitor stopped")
