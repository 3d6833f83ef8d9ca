"""
Retry and circuit-breaking around oracle transport calls.

Only transport trouble is handled here. An oracle that answers with unusable text is
a contract problem and is retried by the agents, not by this module.
"""
import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock

import httpx

from mcq_engine.core.logging import DOMAIN_ORACLE, get_domain_logger
from mcq_engine.core.settings import settings

logger = get_domain_logger(__name__, DOMAIN_ORACLE)

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


def is_transient(exc: BaseException) -> bool:
    """Timeouts, dropped connections and throttling/5xx replies are worth another try."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(exc, (httpx.TransportError, TimeoutError, ConnectionError))


async def retry_with_backoff(
    call,
    *,
    max_retries: int | None = None,
    base_delay_seconds: float | None = None,
    should_retry=is_transient,
):
    retries = max(1, settings.oracle_transport_retries if max_retries is None else max_retries)
    delay = settings.oracle_backoff_seconds if base_delay_seconds is None else base_delay_seconds
    for attempt in range(1, retries + 1):
        try:
            return await call()
        except Exception as exc:  # noqa: BLE001
            if attempt == retries or not should_retry(exc):
                raise
            wait = delay * (2 ** (attempt - 1))
            logger.warning("Oracle transport error (attempt %d/%d), retrying in %.2fs: %s", attempt, retries, wait, exc)
            await asyncio.sleep(wait)


class BreakerState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class OracleBreaker:
    """Stops hammering a provider that keeps failing; one probe call is let through after the cool-down."""

    name: str
    failure_threshold: int = 4
    cooldown_seconds: float = 30.0
    state: BreakerState = BreakerState.CLOSED
    consecutive_failures: int = 0
    opened_at: float = 0.0
    probing: bool = False
    _lock: Lock = field(default_factory=Lock, repr=False)

    def allow(self) -> bool:
        with self._lock:
            if self.state is BreakerState.CLOSED:
                return True
            if self.state is BreakerState.OPEN:
                if time.monotonic() - self.opened_at < self.cooldown_seconds:
                    return False
                self.state = BreakerState.HALF_OPEN
                self.probing = False
            if self.probing:
                return False
            self.probing = True
            return True

    def succeeded(self) -> None:
        with self._lock:
            if self.state is not BreakerState.CLOSED:
                logger.info("Oracle breaker %s closed again", self.name)
            self.state = BreakerState.CLOSED
            self.consecutive_failures = 0
            self.probing = False

    def failed(self) -> None:
        with self._lock:
            self.consecutive_failures += 1
            if self.state is BreakerState.HALF_OPEN or self.consecutive_failures >= self.failure_threshold:
                if self.state is not BreakerState.OPEN:
                    logger.error("Oracle breaker %s opened after %d failures", self.name, self.consecutive_failures)
                self.state = BreakerState.OPEN
                self.opened_at = time.monotonic()
                self.probing = False

    def snapshot(self) -> dict:
        with self._lock:
            retry_in = 0.0
            if self.state is BreakerState.OPEN:
                retry_in = max(0.0, self.cooldown_seconds - (time.monotonic() - self.opened_at))
            return {
                "state": self.state.value,
                "consecutive_failures": self.consecutive_failures,
                "retry_in_seconds": round(retry_in, 1),
            }


class BreakerRegistry:
    """One breaker per provider/model/role, shared by every oracle thread of the process."""

    def __init__(self, failure_threshold: int | None = None, cooldown_seconds: float | None = None):
        self.failure_threshold = settings.oracle_breaker_threshold if failure_threshold is None else failure_threshold
        self.cooldown_seconds = settings.oracle_breaker_cooldown_seconds if cooldown_seconds is None else cooldown_seconds
        self._breakers: dict[str, OracleBreaker] = {}
        self._lock = Lock()

    def for_provider(self, provider: str, model: str, role: str) -> OracleBreaker:
        key = f"{provider}:{model}:{role}"
        with self._lock:
            breaker = self._breakers.get(key)
            if breaker is None:
                breaker = OracleBreaker(key, self.failure_threshold, self.cooldown_seconds)
                self._breakers[key] = breaker
            return breaker

    def status(self) -> dict[str, dict]:
        with self._lock:
            breakers = list(self._breakers.values())
        return {b.name: b.snapshot() for b in breakers}
