import inspect
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional, Tuple, Type
from sqlalchemy.exc import SQLAlchemyError
import structlog

from campaign_hub.core.config import get_settings
from campaign_hub.middleware.metrics import circuit_breaker_state

logger = structlog.get_logger(__name__)
settings = get_settings()


class CircuitState(Enum):
    CLOSED = "closed"
    HALF_OPEN = "half_open"
    OPEN = "open"


_STATE_GAUGE_VALUES = {
    CircuitState.CLOSED: 0,
    CircuitState.HALF_OPEN: 1,
    CircuitState.OPEN: 2,
}


class CircuitBreakerError(Exception):
    """Raised instead of calling through while the breaker is open"""

    def __init__(self, message: str, retry_after: float = 0.0):
        super().__init__(message)
        self.retry_after = retry_after


class CircuitBreaker:
    """
    Fails fast once persistence keeps erroring.

    ``failure_threshold`` consecutive failures open the breaker. After
    ``recovery_timeout`` seconds it goes half-open and lets calls through
    again: the first success closes it, a failure reopens it at once.
    Only ``counted_exceptions`` count as failures, so domain errors raised
    inside a guarded call pass through without tripping anything.
    """

    def __init__(self,
                 name: str,
                 failure_threshold: int = 5,
                 recovery_timeout: float = 30.0,
                 counted_exceptions: Tuple[Type[BaseException], ...] = (SQLAlchemyError,),
                 clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.counted_exceptions = counted_exceptions
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at: Optional[float] = None
        self._last_failure_at: Optional[datetime] = None
        circuit_breaker_state.labels(breaker=name).set(_STATE_GAUGE_VALUES[self._state])

    @property
    def state(self) -> CircuitState:
        if self._state is CircuitState.OPEN and self._remaining_cooldown() <= 0:
            self._transition(CircuitState.HALF_OPEN)
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failures

    def _remaining_cooldown(self) -> float:
        if self._opened_at is None:
            return 0.0
        return max(0.0, self.recovery_timeout - (self._clock() - self._opened_at))

    def _transition(self, new_state: CircuitState, **context):
        if new_state is self._state:
            return
        log = logger.warning if new_state is CircuitState.OPEN else logger.info
        log("Circuit breaker state changed",
            breaker=self.name,
            previous=self._state.value,
            state=new_state.value,
            **context)
        self._state = new_state
        self._opened_at = self._clock() if new_state is CircuitState.OPEN else None
        circuit_breaker_state.labels(breaker=self.name).set(_STATE_GAUGE_VALUES[new_state])

    def _record_success(self):
        self._failures = 0
        self._transition(CircuitState.CLOSED)

    def _record_failure(self, exception: BaseException):
        self._failures += 1
        self._last_failure_at = datetime.now(timezone.utc)
        if self._state is CircuitState.HALF_OPEN or self._failures >= self.failure_threshold:
            self._transition(CircuitState.OPEN, failure_count=self._failures, error=str(exception))

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        """Run ``func`` (sync or async) unless the breaker is open"""
        if self.state is CircuitState.OPEN:
            raise CircuitBreakerError(
                f"Circuit breaker '{self.name}' is open",
                retry_after=self._remaining_cooldown(),
            )

        try:
            result = func(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
        except self.counted_exceptions as e:
            self._record_failure(e)
            raise

        self._record_success()
        return result

    def reset(self):
        self._failures = 0
        self._last_failure_at = None
        self._transition(CircuitState.CLOSED)

    def get_state(self) -> dict:
        state = self.state
        return {
            "name": self.name,
            "state": state.value,
            "failure_count": self._failures,
            "failure_threshold": self.failure_threshold,
            "last_failure_time": self._last_failure_at.isoformat() if self._last_failure_at else None,
            "recovery_timeout_seconds": self.recovery_timeout,
            "retry_after_seconds": round(self._remaining_cooldown(), 3) if state is CircuitState.OPEN else 0.0,
        }


db_circuit_breaker = CircuitBreaker(
    "database",
    failure_threshold=settings.db_failure_threshold,
    recovery_timeout=float(settings.db_recovery_timeout),
)
