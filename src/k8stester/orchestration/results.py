"""Result types for the provisioning and teardown sagas."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass
class SagaResult:
    """Summary of one Up or Down run."""

    saga: str
    environment: str
    completed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        """Whether the saga finished without errors."""
        return len(self.errors) == 0


class StepCollector:
    """Aggregates step outcomes while a saga runs."""

    def __init__(self, saga: str, environment: str) -> None:
        self._result = SagaResult(saga=saga, environment=environment)

    @property
    def errors(self) -> List[str]:
        return list(self._result.errors)

    def record(self, step: str) -> None:
        """Record a step that completed."""
        self._result.completed.append(step)

    def record_skip(self, step: str) -> None:
        self._result.skipped.append(step)

    def record_error(self, step: str, error: Exception | str) -> None:
        """Record a failed or interrupted step."""
        self._result.errors.append(f"{step} failed: {error}")

    def finalize(self, duration: float) -> SagaResult:
        """Return the final result with duration set."""
        self._result.duration_seconds = duration
        return self._result
