"""
Tester facade.

Wires one environment config and one provider bundle into the provisioning
and teardown sagas:

- up() runs the provisioning saga; on failure it optionally waits out a
  cool-down and runs down() as compensation, then re-raises the original
  error
- down() runs the teardown saga under a lock, with its own stop signal so
  the interrupt that aborted up() does not also cut the compensation short
- stop() fires the creation stop signal; process termination signals reach
  the same signal through an attached SignalSource
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, List

from k8stester.config.environment import MANAGED_NODE_GROUPS, NODE_GROUPS, EnvironmentConfig
from k8stester.config.settings import Settings
from k8stester.core.errors import InternalConsistencyError, K8sTesterError
from k8stester.logging import new_run_logger
from k8stester.orchestration.executor import StepExecutor, WaitFn
from k8stester.orchestration.health import HealthGate, HttpHealthChecker
from k8stester.orchestration.provisioning import ProvisioningSaga
from k8stester.orchestration.registry import CapabilityRegistry, build_registry
from k8stester.orchestration.results import SagaResult
from k8stester.orchestration.stop import SignalSource, StopSignal
from k8stester.orchestration.teardown import TeardownSaga
from k8stester.providers.base import HealthChecker, ProviderBundle


class Tester:
    """Provisions and tears down one test environment."""

    def __init__(
        self,
        config: EnvironmentConfig,
        bundle: ProviderBundle,
        *,
        logger: Any = None,
        settings: Settings | None = None,
        signal_source: SignalSource | None = None,
        wait_fn: WaitFn | None = None,
    ) -> None:
        self.config = config
        self._bundle = bundle
        self._log = logger or new_run_logger(config.name)
        self._signals = signal_source
        self._wait_fn = wait_fn
        self._down_lock = threading.Lock()

        self._stop = StopSignal("create")
        if signal_source is not None:
            signal_source.attach(self._stop)
        self._executor = StepExecutor(self._stop, self._log, wait_fn)

        self.registry: CapabilityRegistry = build_registry(
            config, bundle.add_on_factories, logger=self._log
        )
        self._health = bundle.health or self._http_checker(settings)

    def _http_checker(self, settings: Settings | None) -> HealthChecker:
        settings = settings or Settings()
        return HttpHealthChecker(
            self.config,
            timeout=settings.health_timeout,
            verify=settings.health_verify_tls,
            log=self._log,
        )

    @property
    def stop_signal(self) -> StopSignal:
        return self._stop

    @property
    def signal_source(self) -> SignalSource | None:
        return self._signals

    def stop(self, reason: str = "stop requested") -> None:
        """Ask a running up() to stop at the next step boundary."""
        if self._stop.fire(reason):
            self._log.warning("stop_requested", reason=reason)

    def should_up(self) -> bool:
        return not self.config.status.up

    def should_down(self) -> bool:
        """True when anything recorded as created is still around."""
        status = self.config.status
        if status.up or any(r.created for r in status.resources.values()):
            return True
        return any(self.config.is_created(name) for name in self.registry.names())

    def kubeconfig(self) -> str:
        return self.config.kubeconfig_path

    def artifacts_dir(self) -> str:
        if self.config.config_path is not None:
            return str(self.config.config_path.parent)
        return str(Path.cwd())

    def up(self) -> SagaResult:
        """
        Provision the environment.

        Raises the first fatal error. With on_failure_delete set, down() has
        already run as compensation by the time the error reaches the caller;
        its own outcome is logged only.
        """
        gate = HealthGate(self._health, self._executor, self._log)
        saga = ProvisioningSaga(
            self.config,
            self._bundle.infrastructure,
            self.registry,
            self._executor,
            gate,
            gpu=self._bundle.gpu,
            log=self._log,
        )
        try:
            result = saga.run()
        except Exception as err:
            self._log.error(
                "up_failed",
                error=str(err),
                error_type=type(err).__name__,
                step=getattr(err, "step", None),
            )
            # The bucket is still there; compensation may delete it.
            self._upload_artifacts()
            self._compensate()
            raise
        self._upload_artifacts()
        return result

    def _compensate(self) -> None:
        if not self.config.on_failure_delete:
            self._log.warning("compensation_disabled")
            return

        wait = self.config.on_failure_delete_wait_seconds
        if self._executor.wait("before_compensation", wait):
            self._log.warning("compensation_wait_cut_short", reason=self._stop.reason)

        self._log.warning("compensation_started")
        try:
            self.down()
        except Exception as down_err:
            self._log.error("compensation_failed", error=str(down_err))
        else:
            self._log.info("compensation_finished")

    def down(self) -> SagaResult:
        """Tear the environment down; raises TeardownError listing every failed step."""
        with self._down_lock:
            teardown_stop = StopSignal("teardown")
            if self._signals is not None:
                self._signals.attach(teardown_stop)
            try:
                self._upload_artifacts()
                executor = StepExecutor(teardown_stop, self._log, self._wait_fn)
                saga = TeardownSaga(
                    self.config,
                    self._bundle.infrastructure,
                    self.registry,
                    executor,
                    log=self._log,
                )
                return saga.run()
            finally:
                if self._signals is not None:
                    self._signals.detach(teardown_stop)

    def is_up(self) -> bool:
        """
        False if the environment was never brought up.

        Otherwise probes the control plane and raises HealthCheckError if it
        does not answer.
        """
        if not self.config.status.up:
            return False
        HealthGate(self._health, self._executor, self._log).probe()
        return True

    def dump_cluster_logs(self) -> None:
        """Fetch logs from every enabled node group; stops at the first failure."""
        for name in (NODE_GROUPS, MANAGED_NODE_GROUPS):
            if not self.config.is_enabled(name):
                continue
            handle = self.registry.require(name)
            descriptor = self.registry.get(name)
            if descriptor is None or not descriptor.can_fetch_logs:
                raise InternalConsistencyError(f"{name} handle cannot fetch logs")
            self._executor.run_or_raise(f"fetch_logs:{name}", handle.fetch_logs)

    def artifact_paths(self) -> List[str]:
        paths = []
        if self.config.config_path is not None:
            paths.append(str(self.config.config_path))
        for hook in (self.config.command_after_create_cluster, self.config.command_after_create_addons):
            if hook.enabled and hook.output_path:
                paths.append(hook.output_path)
        for ng in (self.config.node_groups, self.config.managed_node_groups):
            if ng.enabled and ng.logs_dir:
                paths.append(ng.logs_dir)
        return paths

    def _upload_artifacts(self) -> None:
        uploader = self._bundle.uploader
        if uploader is None:
            return
        try:
            uploader.upload(self.artifact_paths())
        except K8sTesterError as exc:
            self._log.warning("artifact_upload_failed", error=exc.message)
