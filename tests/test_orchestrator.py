"""
Request Orchestrator: retry / cooldown / terminal error scenarios.

Run: python -m pytest tests/test_orchestrator.py -v
"""

import asyncio

import pytest


def _pool(keys, clock, **cfg):
    from src.api_pool import KeyPool, PoolConfig
    return KeyPool(keys, PoolConfig(**cfg), clock=clock)


class ScriptedCall:
    """Async remote call replaying a script of results / exceptions"""

    def __init__(self, *script):
        self.script = list(script)
        self.keys = []

    async def __call__(self, key, payload):
        self.keys.append(key)
        outcome = self.script.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _result(signal="BUY", confidence=70):
    from src.models.signal_types import validate_analysis
    return validate_analysis({"signal": signal, "confidence": confidence, "analysis": "ok"})


class TestRequestOrchestrator:
    def test_success_first_try(self, clock, fake_sleep):
        from src.api_pool import RequestOrchestrator
        pool = _pool(["key-a", "key-b"], clock)
        call = ScriptedCall(_result())

        result = asyncio.run(RequestOrchestrator(pool, call, sleep=fake_sleep).execute("img"))

        assert result.signal.value == "BUY"
        assert call.keys == ["key-a"]
        assert fake_sleep.calls == []

    def test_single_key_waits_out_cooldown(self, clock, fake_sleep):
        from src.api_pool import RequestOrchestrator, RateLimited
        pool = _pool(["key-a"], clock, cooldown_ms=60000, wait_margin_ms=1000)
        call = ScriptedCall(RateLimited("429"), _result())
        orchestrator = RequestOrchestrator(pool, call, max_attempts=3, sleep=fake_sleep)

        result = asyncio.run(orchestrator.execute("img"))

        record = pool.registry.records[0]
        assert result.signal.value == "BUY"
        assert call.keys == ["key-a", "key-a"]
        assert fake_sleep.calls == [pytest.approx(61.0)]
        assert record.is_eligible(clock.now)
        assert record.available and record.cooldown_until is None
        assert record.request_count == 2

    def test_second_key_used_without_waiting(self, clock, fake_sleep):
        from src.api_pool import RequestOrchestrator, KeyOutcome
        pool = _pool(["key-a", "key-b"], clock)
        a, b = pool.registry.records
        pool.mark(a, KeyOutcome.RATE_LIMITED)
        call = ScriptedCall(_result("SELL", 55))

        result = asyncio.run(RequestOrchestrator(pool, call, sleep=fake_sleep).execute("img"))

        assert result.signal.value == "SELL"
        assert call.keys == ["key-b"]
        assert fake_sleep.calls == []
        assert b.request_count == 1
        assert not a.available
        assert a.cooldown_until is not None

    def test_rate_limit_switches_key(self, clock, fake_sleep):
        from src.api_pool import RequestOrchestrator, QuotaExceeded
        pool = _pool(["key-a", "key-b"], clock)
        call = ScriptedCall(QuotaExceeded("quota"), _result())

        asyncio.run(RequestOrchestrator(pool, call, sleep=fake_sleep).execute("img"))

        a, b = pool.registry.records
        assert call.keys == ["key-a", "key-b"]
        assert not a.available
        assert b.available

    def test_malformed_response_not_retried(self, clock, fake_sleep):
        from src.api_pool import RequestOrchestrator, MalformedResponse
        from src.models.signal_types import parse_analysis
        pool = _pool(["key-a", "key-b"], clock)

        async def call(key, payload):
            call.keys.append(key)
            return parse_analysis('{"signal":"HOLD","confidence":50,"analysis":"x"}')
        call.keys = []

        with pytest.raises(MalformedResponse):
            asyncio.run(RequestOrchestrator(pool, call, sleep=fake_sleep).execute("img"))

        assert call.keys == ["key-a"]
        assert all(r.available and r.cooldown_until is None for r in pool.registry.records)

    def test_transport_error_propagates_without_cooldown(self, clock, fake_sleep):
        from src.api_pool import RequestOrchestrator, TransportError
        pool = _pool(["key-a", "key-b"], clock)
        call = ScriptedCall(TransportError("connection reset"))

        with pytest.raises(TransportError):
            asyncio.run(RequestOrchestrator(pool, call, sleep=fake_sleep).execute("img"))

        assert call.keys == ["key-a"]
        assert pool.registry.records[0].available

    def test_unexpected_error_propagates(self, clock, fake_sleep):
        from src.api_pool import RequestOrchestrator
        pool = _pool(["key-a"], clock)
        call = ScriptedCall(KeyError("boom"))

        with pytest.raises(KeyError):
            asyncio.run(RequestOrchestrator(pool, call, sleep=fake_sleep).execute("img"))
        assert pool.registry.records[0].available

    def test_no_keys_configured(self, clock, fake_sleep):
        from src.api_pool import RequestOrchestrator, PoolExhausted
        pool = _pool([], clock)
        call = ScriptedCall()

        with pytest.raises(PoolExhausted):
            asyncio.run(RequestOrchestrator(pool, call, sleep=fake_sleep).execute("img"))
        assert call.keys == []

    def test_attempts_exhausted_raises_last_error(self, clock, fake_sleep):
        from src.api_pool import RequestOrchestrator, RateLimited, QuotaExceeded
        pool = _pool(["key-a", "key-b", "key-c"], clock)
        last = QuotaExceeded("third")
        call = ScriptedCall(RateLimited("first"), RateLimited("second"), last)

        with pytest.raises(QuotaExceeded) as excinfo:
            asyncio.run(RequestOrchestrator(pool, call, max_attempts=3, sleep=fake_sleep).execute("img"))

        assert excinfo.value is last
        assert call.keys == ["key-a", "key-b", "key-c"]
        assert all(not r.available for r in pool.registry.records)

    def test_wait_does_not_consume_attempts(self, clock, fake_sleep):
        from src.api_pool import RequestOrchestrator, RateLimited
        pool = _pool(["key-a"], clock, cooldown_ms=10000, wait_margin_ms=500)
        call = ScriptedCall(RateLimited("1"), RateLimited("2"), _result())

        result = asyncio.run(RequestOrchestrator(pool, call, max_attempts=3, sleep=fake_sleep).execute("img"))

        assert result.signal.value == "BUY"
        assert len(call.keys) == 3
        assert fake_sleep.calls == [pytest.approx(10.5), pytest.approx(10.5)]

    def test_invalid_max_attempts(self, clock):
        from src.api_pool import RequestOrchestrator
        with pytest.raises(ValueError):
            RequestOrchestrator(_pool(["key-a"], clock), ScriptedCall(), max_attempts=0)
