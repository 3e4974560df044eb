"""
Circuit breaker for the generation service.

Every automation attempt ends in a model call. When the provider is down, a
pass would otherwise spend rules x events timeouts before finishing. The
breaker counts consecutive provider failures and, once the threshold is hit,
rejects calls immediately with GenerationUnavailableError; those attempts are
recorded as failed executions and retried on a later tick.

    closed --(threshold failures)--> open --(timeout)--> half_open
    half_open --(probe succeeds)--> closed
    half_open --(probe fails)--> open
    half_open --(call cancelled)--> half_open, slot released

GenerationService.invoke() drives it:

    if breaker.is_open():
        raise GenerationUnavailableError(...)
    breaker.record_attempt()
    try:
        payload = await self._complete(...)
    except Exception:
        breaker.record_failure()
        raise
    except BaseException:
        breaker.release_attempt()
        raise
    breaker.record_success()
"""

import time
import threading
import logging
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class CircuitBreakerState:
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Consecutive-failure breaker with a half-open probe budget.

    Safe to share between threads (API threadpool, Celery worker).
    """

    def __init__(
        self,
        name: str = "generation",
        failure_threshold: int = 5,
        timeout: float = 300,
        half_open_max_calls: int = 1,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            name: Label used in logs and status output
            failure_threshold: Consecutive failures that open the circuit
            timeout: Seconds the circuit stays open before a probe is allowed
            half_open_max_calls: Probes allowed while half-open
            clock: Monotonic time source in seconds
        """
        if failure_threshold < 1:
            raise ValueError(f"failure_threshold must be >= 1, got {failure_threshold}")

        self.name = name
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.half_open_max_calls = half_open_max_calls
        self._clock = clock

        self._lock = threading.Lock()
        self._state = CircuitBreakerState.CLOSED
        self._failure_count = 0
        self._opened_at: Optional[float] = None
        self._probes = 0

    # ------------------------------------------------------------------
    # Internal helpers (caller holds the lock)
    # ------------------------------------------------------------------

    def _move_to(self, state: str, reason: str) -> None:
        if state == self._state:
            return
        log = logger.error if state == CircuitBreakerState.OPEN else logger.info
        log(f"CircuitBreaker '{self.name}': {self._state} -> {state} ({reason})")

        self._state = state
        self._probes = 0
        self._opened_at = self._clock() if state == CircuitBreakerState.OPEN else None

    def _refresh(self) -> None:
        """Promote OPEN to HALF_OPEN once the timeout has elapsed"""
        if self._state == CircuitBreakerState.OPEN and self._seconds_until_probe() == 0:
            self._move_to(CircuitBreakerState.HALF_OPEN, "timeout elapsed")

    def _seconds_until_probe(self) -> float:
        if self._state != CircuitBreakerState.OPEN or self._opened_at is None:
            return 0.0
        return max(0.0, self.timeout - (self._clock() - self._opened_at))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def state(self) -> str:
        with self._lock:
            self._refresh()
            return self._state

    def is_open(self) -> bool:
        """True if the next call must be rejected without reaching the provider"""
        with self._lock:
            self._refresh()
            if self._state == CircuitBreakerState.OPEN:
                return True
            if self._state == CircuitBreakerState.HALF_OPEN:
                return self._probes >= self.half_open_max_calls
            return False

    def is_closed(self) -> bool:
        return self.state == CircuitBreakerState.CLOSED

    def is_half_open(self) -> bool:
        return self.state == CircuitBreakerState.HALF_OPEN

    # ------------------------------------------------------------------
    # Outcomes
    # ------------------------------------------------------------------

    def record_attempt(self) -> None:
        """Count a call let through while half-open; no-op otherwise"""
        with self._lock:
            if self._state == CircuitBreakerState.HALF_OPEN:
                self._probes += 1

    def release_attempt(self) -> None:
        """
        Give back a half-open slot whose call ended without an outcome
        (the awaiting task was cancelled). No-op in other states.
        """
        with self._lock:
            if self._state == CircuitBreakerState.HALF_OPEN and self._probes > 0:
                self._probes -= 1
                logger.info(f"CircuitBreaker '{self.name}': half-open call abandoned, slot released")

    def record_success(self) -> None:
        with self._lock:
            self._failure_count = 0
            self._move_to(CircuitBreakerState.CLOSED, "call succeeded")

    def record_failure(self) -> None:
        with self._lock:
            self._failure_count += 1

            if self._state == CircuitBreakerState.HALF_OPEN:
                self._move_to(CircuitBreakerState.OPEN, f"probe failed, next probe in {self.timeout}s")
            elif self._state == CircuitBreakerState.CLOSED and self._failure_count >= self.failure_threshold:
                self._move_to(
                    CircuitBreakerState.OPEN,
                    f"{self._failure_count} consecutive failures, next probe in {self.timeout}s"
                )
            else:
                logger.warning(
                    f"CircuitBreaker '{self.name}': failure "
                    f"{self._failure_count}/{self.failure_threshold} ({self._state})"
                )

    def reset(self) -> None:
        with self._lock:
            self._failure_count = 0
            self._move_to(CircuitBreakerState.CLOSED, "manual reset")
            self._probes = 0

    def get_status(self) -> Dict[str, Any]:
        """Snapshot for /metrics and health checks"""
        with self._lock:
            self._refresh()
            half_open = self._state == CircuitBreakerState.HALF_OPEN
            return {
                "name": self.name,
                "state": self._state,
                "failure_count": self._failure_count,
                "failure_threshold": self.failure_threshold,
                "timeout_seconds": self.timeout,
                "retry_in_seconds": round(self._seconds_until_probe(), 1),
                "is_healthy": self._state == CircuitBreakerState.CLOSED,
                "half_open_calls": self._probes if half_open else None,
            }


# Process-wide breaker shared by every GenerationService instance:
# opens after 5 consecutive failures, probes again after 5 minutes.
generation_circuit_breaker = CircuitBreaker(
    name="generation",
    failure_threshold=5,
    timeout=300,
    half_open_max_calls=1
)
