"""
CHART ANALYZER
==============

API appelant: analyse d'un graphique via le pool de clés Gemini.

- analyze(image)     → AnalysisResult (async, peut attendre un cooldown)
- pool_status()      → état des clés (sync)
- run_auto(...)      → analyse périodique, tick ignoré si une analyse tourne encore

Usage:
    pool = KeyPool.from_config()
    async with ChartAnalyzer(pool, history=SignalHistory()) as analyzer:
        result = await analyzer.analyze(load_chart_image("chart.png"))
"""

import asyncio
from typing import Awaitable, Callable, List, Optional

from utils.logger import get_logger

from src.api_pool import KeyPool, KeyStatusView, PoolError, RequestOrchestrator
from src.models.signal_types import AnalysisResult
from src.processors.chart_image import ChartImage, ImageValidationError
from src.processors.gemini_client import GeminiVisionClient
from src.signal_history import SignalHistory

logger = get_logger("CHART_ANALYZER")


class ChartAnalyzer:

    def __init__(
        self,
        pool: KeyPool,
        client: Optional[GeminiVisionClient] = None,
        history: Optional[SignalHistory] = None,
        max_attempts: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.pool = pool
        self.client = client or GeminiVisionClient()
        self.history = history
        self._sleep = sleep

        self.orchestrator = RequestOrchestrator(
            pool,
            self.client.analyze_chart,
            max_attempts=max_attempts,
            sleep=sleep,
        )

        self._active = 0

    @property
    def busy(self) -> bool:
        return self._active > 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self):
        await self.pool.start()

    async def close(self):
        await self.pool.stop()
        await self.client.close()

    async def __aenter__(self) -> "ChartAnalyzer":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # ------------------------------------------------------------------
    # API
    # ------------------------------------------------------------------

    async def analyze(self, image: ChartImage) -> AnalysisResult:
        """Analyze one chart image"""
        logger.info(f"Starting chart analysis: {image.name} ({image.size} bytes)")

        self._active += 1
        try:
            result = await self.orchestrator.execute(image)
        except PoolError as e:
            logger.error(f"Chart analysis failed [{type(e).__name__}]: {e}")
            raise
        finally:
            self._active -= 1

        if self.history is not None:
            self.history.add(result)

        logger.info(f"Analysis completed: {result.signal.value} ({result.confidence}%)")
        return result

    def pool_status(self) -> List[KeyStatusView]:
        return self.pool.snapshot()

    # ------------------------------------------------------------------
    # Auto mode
    # ------------------------------------------------------------------

    async def _auto_once(
        self,
        load_image: Callable[[], ChartImage],
        on_result: Optional[Callable[[AnalysisResult], None]],
    ):
        try:
            image = load_image()
            result = await self.analyze(image)
        except (PoolError, ImageValidationError) as e:
            logger.error(f"Auto analysis skipped: {e}")
            return

        if on_result is not None:
            on_result(result)

    async def run_auto(
        self,
        load_image: Callable[[], ChartImage],
        interval: float,
        max_runs: Optional[int] = None,
        on_result: Optional[Callable[[AnalysisResult], None]] = None,
    ) -> int:
        """
        Analyze a fresh image every `interval` seconds.

        A tick is skipped while a previous analysis is still running.
        Per-run failures are logged, never raised. Returns the number of
        analyses started.
        """
        ticks = 0
        started = 0
        task: Optional[asyncio.Task] = None

        logger.info(f"Auto mode on: every {interval}s")
        try:
            while max_runs is None or ticks < max_runs:
                ticks += 1

                if self.busy or (task is not None and not task.done()):
                    logger.info("Previous analysis still running, tick skipped")
                else:
                    task = asyncio.ensure_future(self._auto_tick(load_image, on_result))
                    started += 1

                await self._sleep(interval)

            if task is not None:
                await task
        finally:
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
            logger.info("Auto mode off")

        return started

    async def _auto_tick(self, load_image, on_result):
        self._active += 1
        try:
            await self._auto_once(load_image, on_result)
        except Exception as e:
            logger.error(f"Auto analysis failed [{type(e).__name__}]: {e}")
        finally:
            self._active -= 1
