"""
REQUEST ORCHESTRATOR
====================

Exécute une requête logique avec rotation des clés.

Par tentative:
1. Demander une clé au sélecteur
   - aucune clé éligible + clés en cooldown → attendre le plus court cooldown
     (+ marge) puis recommencer, sans consommer de tentative
   - aucune clé du tout → PoolExhausted
2. Appel distant avec la clé
3. Succès → résultat
4. RateLimited / QuotaExceeded → cooldown de la clé, tentative suivante
5. Autre erreur → propagée immédiatement, clé non pénalisée
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

from utils.logger import get_logger

from .errors import PoolExhausted, RecoverableKeyError
from .pool_manager import KeyPool

logger = get_logger("ORCHESTRATOR")


DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_WAIT_MARGIN = 1.0  # seconds added to the cooldown wait


class RequestOrchestrator:
    """
    Runs one remote call per attempt, switching keys on rate limits

    Usage:
        orchestrator = RequestOrchestrator(pool, client.analyze_chart)
        result = await orchestrator.execute(image)

    `call` is an async callable `(api_key, payload) -> result`.
    """

    def __init__(
        self,
        pool: KeyPool,
        call: Callable[[str, Any], Awaitable[Any]],
        max_attempts: Optional[int] = None,
        wait_margin: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.pool = pool
        self.call = call
        self.max_attempts = max_attempts if max_attempts is not None else pool.config.max_attempts
        self.wait_margin = wait_margin if wait_margin is not None else pool.config.wait_margin_seconds
        self._sleep = sleep

        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")

    async def execute(self, payload: Any) -> Any:
        """Execute the call, retrying on recoverable key failures"""
        attempt = 0
        last_error: Optional[RecoverableKeyError] = None

        while attempt < self.max_attempts:
            record = self.pool.next_key()

            if record is None:
                wait = self.pool.min_cooldown_remaining()
                if wait is None:
                    raise PoolExhausted("No API keys available. Add keys to the pool.")

                delay = max(wait, 0.0) + self.wait_margin
                logger.info(f"All keys in cooldown. Waiting {delay:.1f}s...")
                await self._sleep(delay)
                continue

            attempt += 1

            try:
                result = await self.call(record.key, payload)
            except RecoverableKeyError as e:
                last_error = e
                self.pool.mark(record, e.outcome)
                logger.warning(
                    f"{type(e).__name__} on key {record.masked}, "
                    f"retrying with next key (attempt {attempt}/{self.max_attempts})"
                )
                continue

            logger.info(f"Request succeeded with key {record.masked}")
            return result

        logger.error(f"Request failed after {self.max_attempts} attempts: {last_error}")
        raise last_error
