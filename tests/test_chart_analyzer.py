"""
Caller-facing ChartAnalyzer: analyze, history recording, pool status, auto mode.

Run: python -m pytest tests/test_chart_analyzer.py -v
"""

import asyncio
from unittest.mock import MagicMock

import pytest


def _image():
    from src.processors.chart_image import ChartImage
    return ChartImage(data=b"\x89PNG", mime_type="image/png", name="chart.png")


def _result(signal="BUY", confidence=70):
    from src.models.signal_types import validate_analysis
    return validate_analysis({"signal": signal, "confidence": confidence, "analysis": "ok"})


class FakeClient:
    """Stands in for GeminiVisionClient"""

    def __init__(self, *script):
        self.script = list(script)
        self.keys = []
        self.closed = False

    async def analyze_chart(self, api_key, image):
        self.keys.append(api_key)
        outcome = self.script.pop(0) if self.script else _result()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def close(self):
        self.closed = True


def _pool(keys, clock, **cfg):
    from src.api_pool import KeyPool, PoolConfig
    return KeyPool(keys, PoolConfig(**cfg), clock=clock)


class TestChartAnalyzer:
    def test_analyze_records_history(self, clock, fake_sleep):
        from src.chart_analyzer import ChartAnalyzer
        history = MagicMock()
        analyzer = ChartAnalyzer(_pool(["key-a"], clock), client=FakeClient(_result("SELL", 40)),
                                 history=history, sleep=fake_sleep)

        result = asyncio.run(analyzer.analyze(_image()))

        assert result.signal.value == "SELL"
        history.add.assert_called_once_with(result)
        assert not analyzer.busy

    def test_failure_not_recorded(self, clock, fake_sleep):
        from src.chart_analyzer import ChartAnalyzer
        from src.api_pool import PoolExhausted
        history = MagicMock()
        analyzer = ChartAnalyzer(_pool([], clock), client=FakeClient(), history=history, sleep=fake_sleep)

        with pytest.raises(PoolExhausted):
            asyncio.run(analyzer.analyze(_image()))

        history.add.assert_not_called()
        assert not analyzer.busy

    def test_pool_status(self, clock, fake_sleep):
        from src.chart_analyzer import ChartAnalyzer
        from src.api_pool import RateLimited
        client = FakeClient(RateLimited("429"), _result())
        analyzer = ChartAnalyzer(_pool(["key-a", "key-b"], clock), client=client, sleep=fake_sleep)

        asyncio.run(analyzer.analyze(_image()))
        views = analyzer.pool_status()

        assert client.keys == ["key-a", "key-b"]
        assert [v.available for v in views] == [False, True]
        assert [v.request_count for v in views] == [1, 1]

    def test_context_manager_closes_client(self, clock):
        from src.chart_analyzer import ChartAnalyzer
        client = FakeClient()

        async def scenario():
            async with ChartAnalyzer(_pool(["key-a"], clock), client=client) as analyzer:
                assert analyzer.pool.monitor.running
            return analyzer

        analyzer = asyncio.run(scenario())
        assert client.closed
        assert not analyzer.pool.monitor.running


class TestAutoMode:
    def test_runs_each_tick(self, clock):
        from src.chart_analyzer import ChartAnalyzer
        results = []

        async def tick(seconds):
            await asyncio.sleep(0)

        analyzer = ChartAnalyzer(_pool(["key-a"], clock), client=FakeClient(), sleep=tick)
        started = asyncio.run(analyzer.run_auto(_image, interval=30, max_runs=3, on_result=results.append))

        assert started == 3
        assert len(results) == 3

    def test_skips_tick_while_busy(self, clock):
        from src.chart_analyzer import ChartAnalyzer
        results = []

        async def scenario():
            release = asyncio.Event()
            ticks = []

            class SlowClient(FakeClient):
                async def analyze_chart(self, api_key, image):
                    await release.wait()
                    return _result()

            async def tick(seconds):
                ticks.append(seconds)
                if len(ticks) == 3:
                    release.set()
                await asyncio.sleep(0)

            analyzer = ChartAnalyzer(_pool(["key-a"], clock), client=SlowClient(), sleep=tick)
            return await analyzer.run_auto(_image, interval=30, max_runs=3, on_result=results.append)

        started = asyncio.run(scenario())

        assert started == 1
        assert len(results) == 1

    def test_errors_are_logged_not_raised(self, clock):
        from src.chart_analyzer import ChartAnalyzer
        from src.api_pool import TransportError
        from src.processors.chart_image import ImageValidationError

        async def tick(seconds):
            await asyncio.sleep(0)

        calls = {"n": 0}

        def load_image():
            calls["n"] += 1
            if calls["n"] == 1:
                raise ImageValidationError("bad image")
            return _image()

        analyzer = ChartAnalyzer(_pool(["key-a"], clock), client=FakeClient(TransportError("down")), sleep=tick)
        started = asyncio.run(analyzer.run_auto(load_image, interval=1, max_runs=3))

        assert started == 3

    def test_unexpected_loader_error_is_logged_not_raised(self, clock):
        from src.chart_analyzer import ChartAnalyzer

        async def tick(seconds):
            await asyncio.sleep(0)

        def load_image():
            raise PermissionError("chart.png: permission denied")

        client = FakeClient()
        analyzer = ChartAnalyzer(_pool(["key-a"], clock), client=client, sleep=tick)
        started = asyncio.run(analyzer.run_auto(load_image, interval=1, max_runs=2))

        assert started == 2
        assert client.keys == []
        assert not analyzer.busy

    def test_failing_callback_does_not_stop_auto_mode(self, clock):
        from src.chart_analyzer import ChartAnalyzer
        history = MagicMock()

        async def tick(seconds):
            await asyncio.sleep(0)

        def on_result(result):
            raise RuntimeError("display closed")

        analyzer = ChartAnalyzer(_pool(["key-a"], clock), client=FakeClient(), history=history, sleep=tick)
        started = asyncio.run(analyzer.run_auto(_image, interval=1, max_runs=3, on_result=on_result))

        assert started == 3
        assert history.add.call_count == 3

    def test_cancel_stops_running_analysis(self, clock):
        from src.chart_analyzer import ChartAnalyzer

        async def scenario():
            entered = asyncio.Event()
            never = asyncio.Event()

            class HangingClient(FakeClient):
                async def analyze_chart(self, api_key, image):
                    entered.set()
                    await never.wait()

            async def tick(seconds):
                await asyncio.sleep(3600)

            analyzer = ChartAnalyzer(_pool(["key-a"], clock), client=HangingClient(), sleep=tick)
            auto = asyncio.ensure_future(analyzer.run_auto(_image, interval=30))
            await entered.wait()
            auto.cancel()
            with pytest.raises(asyncio.CancelledError):
                await auto
            return analyzer

        analyzer = asyncio.run(scenario())
        assert not analyzer.busy
