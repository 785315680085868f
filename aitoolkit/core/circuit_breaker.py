"""
Circuit breaker guarding calls to LLM providers.

Defaults:
- Open when at least half of the requests in the last minute failed
  (and at least min_requests_for_threshold requests were made)
- Stay open for 30 seconds
- Half-open: let probe requests through; close after enough successes,
  reopen on too many failures
"""
import time
from collections import deque
from enum import Enum
from threading import Lock
from typing import Any, Awaitable, Callable, Deque, Optional, Tuple

from aitoolkit.core.logging import get_logger

logger = get_logger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpenError(Exception):
    """Raised when the circuit is open and the request is rejected."""

    def __init__(self, name: str, state: CircuitState):
        super().__init__(f"Circuit breaker {name} is {state.value.upper()}. Provider unavailable.")
        self.name = name
        self.state = state


class CircuitBreaker:
    """
    Failure-rate circuit breaker for a single provider.

    Only async calls are supported; the toolkit never calls providers
    synchronously.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: float = 0.5,
        time_window_seconds: int = 60,
        open_duration_seconds: int = 30,
        min_requests_for_threshold: int = 10,
        half_open_max_probes: int = 3,
        half_open_successes_to_close: int = 2,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.time_window_seconds = time_window_seconds
        self.open_duration_seconds = open_duration_seconds
        self.min_requests_for_threshold = min_requests_for_threshold
        self.half_open_max_probes = half_open_max_probes
        self.half_open_successes_to_close = half_open_successes_to_close

        self._state = CircuitState.CLOSED
        self._lock = Lock()
        self._history: Deque[Tuple[float, bool]] = deque()  # (timestamp, success)
        self._opened_at: Optional[float] = None
        self._probes_in_flight = 0
        self._probe_successes = 0

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._refresh(time.monotonic())
            return self._state

    def _refresh(self, now: float) -> None:
        cutoff = now - self.time_window_seconds
        while self._history and self._history[0][0] < cutoff:
            self._history.popleft()

        if self._state == CircuitState.OPEN and self._opened_at is not None:
            if now - self._opened_at >= self.open_duration_seconds:
                self._state = CircuitState.HALF_OPEN
                self._probes_in_flight = 0
                self._probe_successes = 0
                logger.info("circuit_breaker_half_open", circuit_breaker=self.name)

    def _error_rate(self) -> float:
        total = len(self._history)
        if total == 0:
            return 0.0
        failures = sum(1 for _, ok in self._history if not ok)
        return failures / total

    def _trip(self, now: float, reason: str) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = now
        logger.warning(
            "circuit_breaker_opened",
            circuit_breaker=self.name,
            reason=reason,
            error_rate=self._error_rate(),
            requests=len(self._history),
        )

    def _acquire(self) -> None:
        with self._lock:
            self._refresh(time.monotonic())
            if self._state == CircuitState.OPEN:
                raise CircuitBreakerOpenError(self.name, self._state)
            if self._state == CircuitState.HALF_OPEN:
                if self._probes_in_flight >= self.half_open_max_probes:
                    raise CircuitBreakerOpenError(self.name, self._state)
                self._probes_in_flight += 1

    def _release(self) -> None:
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._probes_in_flight = max(0, self._probes_in_flight - 1)

    def _record(self, success: bool) -> None:
        now = time.monotonic()
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._probes_in_flight = max(0, self._probes_in_flight - 1)
                if not success:
                    self._trip(now, "half_open_probe_failed")
                    return
                self._probe_successes += 1
                if self._probe_successes >= self.half_open_successes_to_close:
                    self._state = CircuitState.CLOSED
                    self._opened_at = None
                    self._history.clear()
                    logger.info("circuit_breaker_closed", circuit_breaker=self.name)
                return

            self._history.append((now, success))
            self._refresh(now)
            if (
                self._state == CircuitState.CLOSED
                and len(self._history) >= self.min_requests_for_threshold
                and self._error_rate() >= self.failure_threshold
            ):
                self._trip(now, "failure_threshold_exceeded")

    async def call_async(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """
        Await func(*args, **kwargs) under circuit breaker protection.

        Raises:
            CircuitBreakerOpenError if the circuit rejects the request.
        """
        self._acquire()
        try:
            result = await func(*args, **kwargs)
        except Exception:
            self._record(False)
            raise
        except BaseException:
            # Cancelled: give the probe slot back without counting a failure
            self._release()
            raise
        self._record(True)
        return result

    def reset(self) -> None:
        with self._lock:
            self._state = CircuitState.CLOSED
            self._opened_at = None
            self._history.clear()
            self._probes_in_flight = 0
            self._probe_successes = 0

    def get_metrics(self) -> dict:
        """Snapshot of breaker state for diagnostics."""
        with self._lock:
            self._refresh(time.monotonic())
            failures = sum(1 for _, ok in self._history if not ok)
            return {
                "name": self.name,
                "state": self._state.value,
                "recent_requests": len(self._history),
                "recent_failures": failures,
                "error_rate": self._error_rate(),
                "opened_at": self._opened_at,
                "half_open_probe_successes": self._probe_successes,
            }
