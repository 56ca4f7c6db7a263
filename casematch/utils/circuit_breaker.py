"""Circuit breaker for the external services used by case comparison.

Repeated failures of the LLM or the image host open the breaker so further
comparisons fail fast (and score 0) instead of waiting on a dead service.
"""

import asyncio
import time
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Type, Union
from dataclasses import dataclass, field

from casematch.utils.logger import log_info, log_warning, log_debug


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, rejecting calls
    HALF_OPEN = "half_open"  # Testing if service recovered


@dataclass
class CircuitBreakerStats:
    """Circuit breaker statistics."""

    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    state_changes: List[str] = field(default_factory=list)
    last_failure_time: Optional[datetime] = None

    @property
    def failure_rate(self) -> float:
        """Failure rate percentage over attempted calls."""
        total = self.successful_calls + self.failed_calls
        return (self.failed_calls / total * 100) if total > 0 else 0.0


class CircuitBreakerOpenError(Exception):
    """Raised when a call is rejected because the circuit is open."""

    def __init__(self, message: str = "Circuit breaker is open"):
        self.message = message
        super().__init__(self.message)


@dataclass
class CircuitBreakerConfig:
    """Breaker thresholds.

    ``expected_exception`` may be a single class or a tuple; anything else the
    protected call raises passes through without counting as a failure.
    """

    failure_threshold: int = 5
    timeout_seconds: int = 60
    half_open_max_calls: int = 2
    expected_exception: Union[Type[BaseException], Tuple[Type[BaseException], ...]] = Exception
    name: str = "circuit_breaker"


class CircuitBreaker:
    """Async circuit breaker.

    The lock only guards state bookkeeping; the protected call itself runs
    outside it so concurrent comparisons are not serialized.
    """

    def __init__(self, config: CircuitBreakerConfig):
        self.config = config
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.half_open_calls = 0
        self.last_failure_time: Optional[float] = None
        self.stats = CircuitBreakerStats()
        self._lock = asyncio.Lock()

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Await ``func(*args, **kwargs)`` with circuit breaker protection."""
        async with self._lock:
            self.stats.total_calls += 1
            if not self._should_attempt_call():
                self.stats.rejected_calls += 1
                log_warning(
                    "Circuit breaker rejected call",
                    circuit_name=self.config.name,
                    state=self.state.value,
                )
                raise CircuitBreakerOpenError(
                    f"Circuit breaker '{self.config.name}' is open"
                )
            trial = self.state == CircuitState.HALF_OPEN
            if trial:
                self.half_open_calls += 1

        try:
            result = await func(*args, **kwargs)
        except self.config.expected_exception as e:
            async with self._lock:
                self._on_failure(e)
            raise
        except BaseException:
            # Not a service failure: give the half-open trial slot back
            if trial:
                async with self._lock:
                    self._release_trial()
            raise

        async with self._lock:
            self._on_success()
        return result

    def _should_attempt_call(self) -> bool:
        if self.state == CircuitState.CLOSED:
            return True
        if self.state == CircuitState.OPEN:
            if (
                self.last_failure_time is not None
                and time.time() - self.last_failure_time >= self.config.timeout_seconds
            ):
                self._transition(CircuitState.HALF_OPEN)
                return True
            return False
        return self.half_open_calls < self.config.half_open_max_calls

    def _on_success(self) -> None:
        self.stats.successful_calls += 1
        if self.state == CircuitState.HALF_OPEN:
            if self.half_open_calls >= self.config.half_open_max_calls:
                self._transition(CircuitState.CLOSED)
        else:
            self.failure_count = 0
        log_debug("Circuit breaker call succeeded", circuit_name=self.config.name)

    def _release_trial(self) -> None:
        if self.state == CircuitState.HALF_OPEN and self.half_open_calls > 0:
            self.half_open_calls -= 1

    def _on_failure(self, exception: Exception) -> None:
        self.stats.failed_calls += 1
        self.stats.last_failure_time = datetime.now()
        self.last_failure_time = time.time()

        if self.state == CircuitState.HALF_OPEN:
            self._transition(CircuitState.OPEN)
        elif self.state == CircuitState.CLOSED:
            self.failure_count += 1
            if self.failure_count >= self.config.failure_threshold:
                self._transition(CircuitState.OPEN)

        log_warning(
            "Circuit breaker call failed",
            circuit_name=self.config.name,
            state=self.state.value,
            failure_count=self.failure_count,
            error=str(exception),
        )

    def _transition(self, new_state: CircuitState) -> None:
        old_state = self.state
        self.state = new_state
        self.half_open_calls = 0
        if new_state == CircuitState.CLOSED:
            self.failure_count = 0
        self.stats.state_changes.append(f"{old_state.value} -> {new_state.value}")
        log_info(
            "Circuit breaker state changed",
            circuit_name=self.config.name,
            old_state=old_state.value,
            new_state=new_state.value,
        )

    def get_stats(self) -> Dict[str, Any]:
        """Get circuit breaker statistics."""
        return {
            "name": self.config.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "total_calls": self.stats.total_calls,
            "successful_calls": self.stats.successful_calls,
            "failed_calls": self.stats.failed_calls,
            "rejected_calls": self.stats.rejected_calls,
            "failure_rate_percent": round(self.stats.failure_rate, 2),
            "state_changes": self.stats.state_changes[-10:],
        }

    async def reset(self) -> None:
        """Reset circuit breaker to closed state."""
        async with self._lock:
            self._transition(CircuitState.CLOSED)
            self.last_failure_time = None


class CircuitBreakerRegistry:
    """Registry of named circuit breakers shared across comparisons."""

    def __init__(self):
        self._breakers: Dict[str, CircuitBreaker] = {}

    def register(self, name: str, config: CircuitBreakerConfig) -> CircuitBreaker:
        config.name = name
        breaker = CircuitBreaker(config)
        self._breakers[name] = breaker
        log_info(
            "Circuit breaker registered",
            name=name,
            failure_threshold=config.failure_threshold,
            timeout_seconds=config.timeout_seconds,
        )
        return breaker

    def get(self, name: str) -> Optional[CircuitBreaker]:
        return self._breakers.get(name)

    def get_or_register(self, name: str, config: CircuitBreakerConfig) -> CircuitBreaker:
        return self._breakers.get(name) or self.register(name, config)

    def get_all_stats(self) -> Dict[str, Dict[str, Any]]:
        return {name: breaker.get_stats() for name, breaker in self._breakers.items()}

    def clear(self) -> None:
        self._breakers.clear()


# Global registry instance
_registry = CircuitBreakerRegistry()


def get_circuit_breaker_registry() -> CircuitBreakerRegistry:
    """Get the global circuit breaker registry."""
    return _registry
