"""
Reliability utilities.

Circuit breaker guarding calls to the external payment collaborator.
"""

import time
import logging
from typing import Callable, Any

from backend.app.core.config import settings

logger = logging.getLogger("nemt_dispatch.reliability")


class CircuitOpenError(Exception):
    pass


class CircuitBreaker:
    """
    Simple Circuit Breaker implementation.

    After ``failure_threshold`` consecutive failures the circuit opens and
    rejects calls for ``reset_timeout`` seconds. The next call after that runs
    as a trial (HALF_OPEN): success closes the circuit, failure reopens it.
    """
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"

    def __init__(self, name: str, failure_threshold: int = 3, reset_timeout: float = 30):
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.failures = 0
        self.opened_at = 0.0
        self.state = self.CLOSED

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        if self.state == self.OPEN:
            if time.monotonic() - self.opened_at >= self.reset_timeout:
                self.state = self.HALF_OPEN
            else:
                raise CircuitOpenError(f"{self.name} circuit is open")

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise
        self.reset_state()
        return result

    def record_failure(self):
        self.failures += 1
        if self.state == self.HALF_OPEN or self.failures >= self.failure_threshold:
            if self.state != self.OPEN:
                logger.warning("Opening %s circuit after %d failures", self.name, self.failures)
            self.state = self.OPEN
            self.opened_at = time.monotonic()

    def reset_state(self):
        if self.state != self.CLOSED:
            logger.info("Closing %s circuit", self.name)
        self.failures = 0
        self.state = self.CLOSED


# Shared by every request charging cards at approval
payment_circuit_breaker = CircuitBreaker(
    "payment",
    failure_threshold=settings.payment_failure_threshold,
    reset_timeout=settings.payment_reset_timeout_seconds,
)
