from __future__ import annotations

import httpx
import pytest

from mcq_engine.core.event_bus import EventBus
from mcq_engine.core.llm_provider import OllamaLLMProvider
from mcq_engine.core.resilience import BreakerRegistry, is_transient, retry_with_backoff


def _status_error(code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://oracle.test/generate")
    return httpx.HTTPStatusError("boom", request=request, response=httpx.Response(code, request=request))


def test_transient_classification():
    assert is_transient(httpx.ConnectError("down"))
    assert is_transient(httpx.ReadTimeout("slow"))
    assert is_transient(_status_error(429))
    assert is_transient(_status_error(503))
    assert not is_transient(_status_error(401))
    assert not is_transient(ValueError("bad json"))


@pytest.mark.asyncio
async def test_retry_recovers_from_transport_errors():
    calls = []

    async def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise httpx.ConnectError("down")
        return "ok", {}

    assert await retry_with_backoff(flaky, max_retries=3, base_delay_seconds=0) == ("ok", {})
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    calls = []

    async def unauthorized():
        calls.append(1)
        raise _status_error(401)

    with pytest.raises(httpx.HTTPStatusError):
        await retry_with_backoff(unauthorized, max_retries=3, base_delay_seconds=0)
    assert len(calls) == 1


def test_breaker_opens_then_probes_once_after_cooldown():
    registry = BreakerRegistry(failure_threshold=2, cooldown_seconds=0)
    breaker = registry.for_provider("openai", "gpt-4o-mini", "mcq_engine")
    assert registry.for_provider("openai", "gpt-4o-mini", "mcq_engine") is breaker

    breaker.failed()
    assert breaker.allow()
    breaker.failed()
    assert registry.status()["openai:gpt-4o-mini:mcq_engine"]["state"] == "open"

    assert breaker.allow()
    assert not breaker.allow()
    breaker.succeeded()
    assert breaker.allow()
    assert breaker.snapshot()["consecutive_failures"] == 0


def test_open_breaker_blocks_during_cooldown():
    breaker = BreakerRegistry(failure_threshold=1, cooldown_seconds=60).for_provider("gemini", "m", "r")
    breaker.failed()
    assert not breaker.allow()
    assert breaker.snapshot()["retry_in_seconds"] > 0


@pytest.mark.asyncio
async def test_event_bus_replays_and_drops_oldest_for_slow_subscribers():
    bus = EventBus(history_size=5, queue_size=2)
    await bus.publish("batch.started", "statement-batch", {"current": 0})
    queue = await bus.subscribe(replay_last=1)
    await bus.publish("batch.progress", "statement-batch", {"current": 1})
    await bus.publish("batch.progress", "mass-em", {"processedMcqs": 1})

    received = [queue.get_nowait(), queue.get_nowait()]
    assert [e["seq"] for e in received] == [2, 3]
    assert [e["type"] for e in bus.history(source="statement-batch")] == ["batch.started", "batch.progress"]
    assert len(bus.history(limit=1)) == 1

    await bus.unsubscribe(queue)
    assert bus.subscriber_count == 0


@pytest.mark.asyncio
async def test_html_body_from_provider_reads_as_empty(monkeypatch):
    real_client = httpx.AsyncClient

    def gateway_page(request):
        return httpx.Response(200, text="<html>Bad Gateway</html>", headers={"content-type": "text/html"})

    def client_factory(**kwargs):
        return real_client(transport=httpx.MockTransport(gateway_page), **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", client_factory)
    provider = OllamaLLMProvider("qwen2.5:3b", breakers=BreakerRegistry(failure_threshold=1))

    text, meta = await provider.generate("hello")

    assert text is None
    assert meta["reason"] == "invalid_json_body"
    assert provider.breakers.for_provider("ollama", "qwen2.5:3b", "mcq_engine").allow()
