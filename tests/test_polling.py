"""Unit tests for kbchat/core/polling.py."""

import asyncio

import pytest

from kbchat.core.polling import PollingPolicy, poll_until


def _counter_check(ready_on: int):
    calls = {"n": 0}

    async def check() -> int:
        calls["n"] += 1
        return calls["n"]

    return check, calls, (lambda n: n >= ready_on)


class TestPollingPolicy:
    def test_fixed_interval_by_default(self):
        policy = PollingPolicy(max_attempts=4, interval_seconds=2.0)
        assert list(policy.delays()) == [2.0, 2.0, 2.0]

    def test_backoff_is_capped(self):
        policy = PollingPolicy(
            max_attempts=5, interval_seconds=1.0, backoff_factor=2.0, max_interval_seconds=3.0,
        )
        assert list(policy.delays()) == [1.0, 2.0, 3.0, 3.0]

    def test_defaults_match_widget_contract(self):
        policy = PollingPolicy()
        assert policy.max_attempts == 120
        assert policy.interval_seconds == 2.0


class TestPollUntil:
    def test_stops_when_done(self):
        check, calls, is_done = _counter_check(ready_on=3)
        result = asyncio.run(poll_until(check, is_done, PollingPolicy(10, 0.0)))
        assert result.done is True
        assert result.attempts == 3
        assert calls["n"] == 3

    def test_gives_up_after_budget(self):
        check, calls, is_done = _counter_check(ready_on=100)
        result = asyncio.run(poll_until(check, is_done, PollingPolicy(4, 0.0)))
        assert result.done is False
        assert result.attempts == 4
        assert result.last == 4

    def test_zero_budget_never_calls(self):
        check, calls, is_done = _counter_check(ready_on=1)
        result = asyncio.run(poll_until(check, is_done, PollingPolicy(0, 0.0)))
        assert result.done is False
        assert calls["n"] == 0

    def test_check_errors_propagate(self):
        async def check():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            asyncio.run(poll_until(check, bool, PollingPolicy(3, 0.0)))

    def test_cancellation_stops_polling(self):
        check, calls, is_done = _counter_check(ready_on=10_000)

        async def run() -> None:
            task = asyncio.ensure_future(
                poll_until(check, is_done, PollingPolicy(10_000, 0.01))
            )
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(run())
        seen = calls["n"]
        assert 0 < seen < 10_000
