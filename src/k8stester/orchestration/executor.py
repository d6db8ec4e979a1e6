"""
Interruptible step execution.

Every saga phase goes through StepExecutor.run(), which races the step
against a StopSignal. The race only decides what the caller sees next:
a step that has already started keeps running in its worker thread until
it finishes on its own, and its side effects (an in-flight create call,
for example) are not rolled back. Cancellation is a checkpoint between
steps, not preemption.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

import structlog

from k8stester.core.errors import K8sTesterError, ProvisioningError, StepInterrupted
from k8stester.orchestration.stop import StopSignal

WaitFn = Callable[[str, float], bool]


@dataclass(frozen=True)
class StepOutcome:
    """What the caller observes after running one step."""

    name: str
    value: Any = None
    error: Exception | None = None
    interrupted: bool = False
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None and not self.interrupted


class StepExecutor:
    """Runs blocking steps and interruptible waits against one StopSignal."""

    def __init__(
        self,
        stop: StopSignal,
        logger: Any = None,
        wait_fn: WaitFn | None = None,
    ) -> None:
        self._stop = stop
        self._log = logger or structlog.get_logger()
        self._wait_fn = wait_fn

    @property
    def stop_signal(self) -> StopSignal:
        return self._stop

    def run(self, name: str, fn: Callable[[], Any]) -> StepOutcome:
        """Run fn unless stopped; return early with interrupted=True if the stop fires first."""
        if self._stop.fired:
            self._log.warning("step_skipped_stopped", step=name, reason=self._stop.reason)
            return StepOutcome(name=name, interrupted=True)

        start = time.monotonic()
        wake = threading.Event()
        done = threading.Event()
        box: dict[str, Any] = {}

        def worker() -> None:
            try:
                box["value"] = fn()
            except Exception as exc:
                box["error"] = exc
            finally:
                done.set()
                wake.set()

        self._log.info("step_started", step=name)
        unsubscribe = self._stop.subscribe(wake.set)
        thread = threading.Thread(target=worker, name=f"step-{name}", daemon=True)
        thread.start()
        try:
            wake.wait()
        finally:
            unsubscribe()
        duration = time.monotonic() - start

        # A step that finished in the same instant the stop fired still reports its result.
        if done.is_set():
            error = box.get("error")
            if error is not None:
                self._log.warning("step_failed", step=name, error=str(error), duration=duration)
            else:
                self._log.info("step_finished", step=name, duration=round(duration, 3))
            return StepOutcome(
                name=name,
                value=box.get("value"),
                error=error,
                duration_seconds=duration,
            )

        self._log.warning(
            "step_interrupted",
            step=name,
            reason=self._stop.reason,
            note="step keeps running in the background",
        )
        return StepOutcome(name=name, interrupted=True, duration_seconds=duration)

    def run_or_raise(self, name: str, fn: Callable[[], Any]) -> Any:
        """Run a fatal step: return its value or raise StepInterrupted/ProvisioningError."""
        outcome = self.run(name, fn)
        if outcome.interrupted:
            raise StepInterrupted(
                f"{name} interrupted ({self._stop.reason or 'stop requested'})", step=name
            )
        if outcome.error is not None:
            if isinstance(outcome.error, K8sTesterError):
                raise outcome.error
            raise ProvisioningError(f"{name} failed: {outcome.error}", step=name) from outcome.error
        return outcome.value

    def wait(self, hazard: str, seconds: float) -> bool:
        """
        Wait out a named settle delay.

        Returns True if the stop signal cut the wait short.
        """
        if seconds <= 0:
            return self._stop.fired
        self._log.info("settle_wait", hazard=hazard, seconds=seconds)
        if self._wait_fn is not None:
            return self._wait_fn(hazard, seconds)
        interrupted = self._stop.wait(seconds)
        if interrupted:
            self._log.info("settle_wait_aborted", hazard=hazard, reason=self._stop.reason)
        return interrupted
