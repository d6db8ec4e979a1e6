"""
Health checkpoints.

The sagas call HealthGate.check() between phases; a failed check is fatal
for Up. HttpHealthChecker is the default checker: it asks the Kubernetes
API server's /healthz endpoint whether the control plane is serving.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from k8stester.config.environment import EnvironmentConfig
from k8stester.core.errors import HealthCheckError
from k8stester.orchestration.executor import StepExecutor
from k8stester.providers.base import HealthChecker

logger = structlog.get_logger()


class HttpHealthChecker:
    """Checks GET {cluster_endpoint}/healthz returns 200 "ok"."""

    def __init__(
        self,
        config: EnvironmentConfig,
        timeout: float = 15.0,
        verify: bool = True,
        log: Any = None,
    ) -> None:
        self._config = config
        self.timeout = timeout
        self.verify = verify
        self._log = log or logger

    def check(self) -> None:
        endpoint = self._config.status.cluster_endpoint
        if not endpoint:
            raise HealthCheckError("cluster endpoint is unknown", step="check_health")

        url = f"{endpoint.rstrip('/')}/healthz"
        try:
            with httpx.Client(timeout=self.timeout, verify=self.verify) as client:
                response = client.get(url)
        except httpx.TimeoutException as e:
            raise HealthCheckError(f"timeout checking {url}", step="check_health") from e
        except httpx.HTTPError as e:
            raise HealthCheckError(f"cannot reach {url}: {e}", step="check_health") from e

        body = response.text.strip()
        if response.status_code != 200 or body != "ok":
            raise HealthCheckError(
                f"{url} returned {response.status_code}",
                step="check_health",
                details={"body": body[:200]},
            )
        self._log.debug("health_ok", url=url)


class HealthGate:
    """Runs a health check as an interruptible, fatal saga step."""

    def __init__(self, checker: HealthChecker, executor: StepExecutor, log: Any = None) -> None:
        self._checker = checker
        self._executor = executor
        self._log = log or logger

    def check(self, checkpoint: str) -> None:
        self._executor.run_or_raise(f"check_health:{checkpoint}", self._checker.check)
        self._log.info("health_gate_passed", checkpoint=checkpoint)

    def probe(self) -> None:
        """One-shot check outside any saga."""
        self._checker.check()
