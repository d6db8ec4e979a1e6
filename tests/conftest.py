"""Root test configuration."""

import logging

import pytest
import structlog

from k8stester.config.environment import (
    EnvironmentConfig,
    NodeGroupsConfig,
    NodeGroupSpec,
)
from k8stester.providers.memory import CallRecorder, memory_provider


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


class RecordingWaiter:
    """Stands in for real settle delays: records each wait and returns at once."""

    def __init__(self, recorder: CallRecorder | None = None) -> None:
        self.waits: list[tuple[str, float]] = []
        self._recorder = recorder

    def __call__(self, hazard: str, seconds: float) -> bool:
        self.waits.append((hazard, seconds))
        if self._recorder is not None:
            self._recorder.calls.append(f"wait:{hazard}")
        return False

    def hazards(self) -> list[str]:
        return [hazard for hazard, _ in self.waits]


@pytest.fixture
def recorder():
    return CallRecorder()


@pytest.fixture
def waiter(recorder):
    return RecordingWaiter(recorder)


@pytest.fixture
def env_config(tmp_path):
    """Node groups enabled, every add-on disabled, no compensation."""
    config = EnvironmentConfig(
        name="test-env",
        config_path=tmp_path / "config.yaml",
        on_failure_delete=False,
        node_groups=NodeGroupsConfig(enabled=True, groups=[NodeGroupSpec(name="ng-1")]),
    )
    config.validate_and_set_defaults()
    return config


@pytest.fixture
def bundle(env_config, recorder):
    return memory_provider(config=env_config, recorder=recorder)
