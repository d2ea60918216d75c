"""Retry and one-time-recovery wrapper used around every remote call."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from tenacity import RetryCallState, RetryError, Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from terracli.adapters.http import ApiError
from terracli.domain.errors import RemoteUnavailableError, TerraCliError
from terracli.settings import CliConfig, RuntimeSettings
from terracli.utils.telemetry import record_structured_event

T = TypeVar("T")

TRANSIENT_STATUS_CODES = frozenset({500, 503})


def is_transient(error: BaseException) -> bool:
    return isinstance(error, ApiError) and error.status_code in TRANSIENT_STATUS_CODES


@dataclass(frozen=True)
class CallResult(Generic[T]):
    """Outcome of :meth:`RetryingClient.call_with_recovery`.

    ``error`` is the error of the last step that ran (the operation, or the
    recovery if that failed); ``first_error`` is the error that triggered the
    recovery, when one ran.
    """

    value: T | None = None
    error: Exception | None = None
    recovered: bool = False
    first_error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T | None:
        if self.error is not None:
            raise self.error
        return self.value


class RetryingClient:
    def __init__(
        self,
        *,
        attempts: int = 5,
        initial_wait: float = 1.0,
        max_wait: float = 10.0,
        release: Callable[[], None] | None = None,
        settings: RuntimeSettings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._attempts = attempts
        self._initial_wait = initial_wait
        self._max_wait = max_wait
        self._release = release
        self._settings = settings
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        config: CliConfig,
        settings: RuntimeSettings | None = None,
        release: Callable[[], None] | None = None,
    ) -> "RetryingClient":
        return cls(
            attempts=config.retry_attempts,
            initial_wait=config.retry_initial_wait,
            max_wait=config.retry_max_wait,
            release=release,
            settings=settings,
        )

    def bind(self, release: Callable[[], None]) -> "RetryingClient":
        """Same policy, releasing the given connection pool after each call."""

        return RetryingClient(
            attempts=self._attempts,
            initial_wait=self._initial_wait,
            max_wait=self._max_wait,
            release=release,
            settings=self._settings,
            sleep=self._sleep,
        )

    def call(self, operation: Callable[[], T]) -> T:
        """Run ``operation``, retrying transient server errors.

        Non-transient errors propagate unchanged on the first failure.
        """

        retrying = Retrying(
            stop=stop_after_attempt(self._attempts),
            wait=wait_exponential(multiplier=self._initial_wait, min=self._initial_wait, max=self._max_wait),
            retry=retry_if_exception(is_transient),
            before_sleep=self._log_retry,
            sleep=self._sleep,
        )
        try:
            return retrying(operation)
        except RetryError as exc:
            last = exc.last_attempt.exception()
            self._record(
                "remote.retries_exhausted",
                {"attempts": self._attempts, "error": str(last)},
                level="error",
            )
            raise RemoteUnavailableError(
                f"Remote service still unavailable after {self._attempts} attempts: {last}"
            ) from last
        finally:
            if self._release is not None:
                self._release()

    def call_with_recovery(
        self,
        operation: Callable[[], T],
        is_recoverable: Callable[[Exception], bool],
        recover: Callable[[], Any],
    ) -> CallResult[T]:
        first = self._attempt(operation)
        if first.ok or not is_recoverable(first.error):
            return first
        self._record("remote.recovery", {"error": type(first.error).__name__})
        recovery = self._attempt(recover)
        if not recovery.ok:
            return CallResult(error=recovery.error, first_error=first.error)
        second = self._attempt(operation)
        return CallResult(value=second.value, error=second.error, recovered=True, first_error=first.error)

    def _attempt(self, operation: Callable[[], T]) -> CallResult[T]:
        try:
            return CallResult(value=self.call(operation))
        except (ApiError, TerraCliError) as exc:
            return CallResult(error=exc)

    def _log_retry(self, state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        self._record(
            "remote.retry",
            {
                "attempt": state.attempt_number,
                "status": getattr(error, "status_code", None),
                "wait": state.next_action.sleep if state.next_action else None,
            },
            level="warn",
        )

    def _record(self, event: str, payload: dict[str, Any], level: str = "info") -> None:
        if self._settings is not None:
            record_structured_event(self._settings, event, payload=payload, level=level, component="retrying")


__all__ = ["CallResult", "RetryingClient", "TRANSIENT_STATUS_CODES", "is_transient"]
