"""Tests for guarded upstream calls."""

import asyncio

import pytest
from tenacity import wait_none

from liftmatch.errors import UnknownDivisionError, UpstreamUnavailableError
from liftmatch.config import Settings
from liftmatch.services.upstream import UpstreamGuard, call_upstream


class Flaky:
    """Coroutine factory failing a set number of times before succeeding."""

    def __init__(self, failures: int, error: Exception):
        self.failures = failures
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return ["ok"]


@pytest.mark.asyncio
async def test_returns_result():
    flaky = Flaky(0, ConnectionError())

    assert await call_upstream("rankings.query", flaky) == ["ok"]
    assert flaky.calls == 1


@pytest.mark.asyncio
async def test_connection_errors_are_retried():
    flaky = Flaky(2, ConnectionError("reset by peer"))

    result = await call_upstream("rankings.query", flaky, max_attempts=3, wait=wait_none())

    assert result == ["ok"]
    assert flaky.calls == 3


@pytest.mark.asyncio
async def test_exhausted_retries_raise_unavailable():
    flaky = Flaky(5, ConnectionError("reset by peer"))

    with pytest.raises(UpstreamUnavailableError) as exc_info:
        await call_upstream("history.history", flaky, max_attempts=2, wait=wait_none())

    assert exc_info.value.operation == "history.history"
    assert exc_info.value.reason == "reset by peer"
    assert flaky.calls == 2


@pytest.mark.asyncio
async def test_timeout_is_not_retried():
    calls = 0

    async def slow():
        nonlocal calls
        calls += 1
        await asyncio.sleep(1)

    with pytest.raises(UpstreamUnavailableError) as exc_info:
        await call_upstream("history.history", slow, timeout=0.01, max_attempts=3, wait=wait_none())

    assert "timed out" in exc_info.value.reason
    assert calls == 1


@pytest.mark.asyncio
async def test_unexpected_error_fails_fast():
    flaky = Flaky(1, RuntimeError("page layout changed"))

    with pytest.raises(UpstreamUnavailableError) as exc_info:
        await call_upstream("rankings.query", flaky, max_attempts=3, wait=wait_none())

    assert exc_info.value.reason == "page layout changed"
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert flaky.calls == 1


@pytest.mark.asyncio
async def test_unknown_division_passes_through():
    flaky = Flaky(1, UnknownDivisionError("Open Women's", "64kg"))

    with pytest.raises(UnknownDivisionError):
        await call_upstream("rankings.query", flaky, max_attempts=3, wait=wait_none())

    assert flaky.calls == 1


@pytest.mark.asyncio
async def test_guard_uses_injected_timeout():
    guard = UpstreamGuard.from_settings(
        Settings(_env_file=None, upstream_timeout_seconds=0.05, upstream_max_attempts=1)
    )

    async def slow():
        await asyncio.sleep(0.5)
        return ["late"]

    with pytest.raises(UpstreamUnavailableError, match="timed out after 0.05s"):
        await guard.call("rankings.query", slow)


@pytest.mark.asyncio
async def test_guard_uses_injected_attempts():
    guard = UpstreamGuard(timeout=1.0, max_attempts=3, wait=wait_none())
    flaky = Flaky(2, ConnectionError("reset by peer"))

    assert await guard.call("history.history", flaky) == ["ok"]
    assert flaky.calls == 3
