"""Keyed circuit breaker state.

A registry instance owns the state for every key and is shared by
reference. Two handlers built on separate registries never see each other's
failures.
"""

import logging
import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, List, Optional

from jobwatch.logging import get_logger

from .exceptions import CircuitOpenError

logger = get_logger(__name__, component="retry")


class CircuitStatus(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitState:
    """Breaker state for one operation key.

    Timestamps are values of the registry clock (monotonic seconds).
    """

    key: str
    status: CircuitStatus = CircuitStatus.CLOSED
    consecutive_failures: int = 0
    last_failure_at: Optional[float] = None
    opened_at: Optional[float] = None
    trial_in_flight: bool = False


class CircuitBreakerRegistry:
    """Thread-safe map of operation key to CircuitState.

    State is created lazily on the first failure for a key.
    """

    def __init__(
        self,
        threshold: int = 5,
        cooldown_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        logger_instance: Optional[logging.Logger] = None,
    ):
        """Initialize the registry.

        Args:
            threshold: Consecutive failures that open a circuit
            cooldown_seconds: Time an open circuit waits before allowing a trial
            clock: Monotonic time source
            logger_instance: Logger override
        """
        self.threshold = threshold
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock
        self.logger = logger_instance or logger
        self._states: Dict[str, CircuitState] = {}
        self._lock = threading.Lock()

    def acquire(self, key: str) -> bool:
        """Ask permission to call the operation for ``key``.

        Returns:
            True if the call is the single half-open trial, False for a normal call

        Raises:
            CircuitOpenError: While the circuit is open and cooling down, or
                while another caller holds the half-open trial
        """
        with self._lock:
            state = self._states.get(key)
            if state is None or state.status == CircuitStatus.CLOSED:
                return False

            if state.status == CircuitStatus.OPEN:
                elapsed = self.clock() - (state.opened_at or 0.0)
                if elapsed < self.cooldown_seconds:
                    raise CircuitOpenError(key, self.cooldown_seconds - elapsed)
                state.status = CircuitStatus.HALF_OPEN
                state.trial_in_flight = True
                self.logger.info(
                    "Circuit half-open, allowing one trial call",
                    extra={"event": "circuit.half_opened", "operation_key": key},
                )
                return True

            if state.trial_in_flight:
                raise CircuitOpenError(key, 0.0)
            state.trial_in_flight = True
            return True

    def record_success(self, key: str) -> None:
        """Close the circuit for ``key`` and clear its failure count."""
        with self._lock:
            state = self._states.get(key)
            if state is None:
                return
            was_open = state.status != CircuitStatus.CLOSED
            state.status = CircuitStatus.CLOSED
            state.consecutive_failures = 0
            state.opened_at = None
            state.trial_in_flight = False
        if was_open:
            self.logger.info(
                "Circuit closed after successful trial",
                extra={"event": "circuit.closed", "operation_key": key},
            )

    def record_failure(self, key: str) -> CircuitState:
        """Count a failure; open the circuit at the threshold or after a failed trial.

        Returns:
            Copy of the updated state
        """
        with self._lock:
            state = self._states.setdefault(key, CircuitState(key=key))
            now = self.clock()
            state.consecutive_failures += 1
            state.last_failure_at = now

            opened = False
            if state.status == CircuitStatus.HALF_OPEN:
                opened = True
            elif (
                state.status == CircuitStatus.CLOSED
                and state.consecutive_failures >= self.threshold
            ):
                opened = True

            if opened:
                state.status = CircuitStatus.OPEN
                state.opened_at = now
                state.trial_in_flight = False
            snapshot = replace(state)

        if opened:
            self.logger.warning(
                "Circuit opened",
                extra={
                    "event": "circuit.opened",
                    "operation_key": key,
                    "consecutive_failures": snapshot.consecutive_failures,
                    "cooldown_seconds": self.cooldown_seconds,
                },
            )
        return snapshot

    def abandon_trial(self, key: str) -> None:
        """Re-open a half-open circuit whose trial never reported back."""
        with self._lock:
            state = self._states.get(key)
            if state is not None and state.trial_in_flight:
                state.status = CircuitStatus.OPEN
                state.opened_at = self.clock()
                state.trial_in_flight = False

    def is_open(self, key: str) -> bool:
        with self._lock:
            state = self._states.get(key)
            return state is not None and state.status == CircuitStatus.OPEN

    def get_state(self, key: str) -> Optional[CircuitState]:
        """Copy of the state for ``key``, or None if it never failed."""
        with self._lock:
            state = self._states.get(key)
            return replace(state) if state is not None else None

    def snapshot(self) -> Dict[str, CircuitState]:
        with self._lock:
            return {key: replace(state) for key, state in self._states.items()}

    def open_keys(self) -> List[str]:
        """Keys whose circuit is open or half-open."""
        with self._lock:
            return sorted(
                key for key, state in self._states.items() if state.status != CircuitStatus.CLOSED
            )

    def reset(self, key: Optional[str] = None) -> None:
        """Forget the state of one key, or of every key."""
        with self._lock:
            if key is None:
                self._states.clear()
            else:
                self._states.pop(key, None)
