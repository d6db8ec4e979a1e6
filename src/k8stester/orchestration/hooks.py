"""
Operator-supplied command hooks.

A hook's own failure never aborts provisioning: the command, its output
and its error (if any) are recorded in a result file for the operator.
Only a failure to write that file is raised.
"""

from __future__ import annotations

import os
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from k8stester.config.environment import EnvironmentConfig, HookConfig
from k8stester.core.errors import ProvisioningError

logger = structlog.get_logger()


class _Refs(dict):
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


@dataclass(frozen=True)
class HookResult:
    command: str
    output: str
    error: str | None
    output_path: str

    @property
    def success(self) -> bool:
        return self.error is None


class CommandHook:
    """Runs one HookConfig with {placeholder} references expanded."""

    def __init__(self, name: str, hook: HookConfig, config: EnvironmentConfig, log: Any = None):
        self.name = name
        self._hook = hook
        self._config = config
        self._log = log or logger

    @property
    def enabled(self) -> bool:
        return self._hook.enabled

    def expand(self) -> str:
        """
        Substitute {cluster_name}, {region}, {kubeconfig}, {kubectl} and
        {cluster_endpoint}; unknown or malformed references are left as written.
        """
        refs = _Refs(
            cluster_name=self._config.name,
            region=self._config.region,
            kubeconfig=self._config.kubeconfig_path,
            kubectl=self._config.kubectl_command(),
            cluster_endpoint=self._config.status.cluster_endpoint,
        )
        try:
            return self._hook.command.format_map(refs)
        except (ValueError, IndexError, AttributeError):
            return self._hook.command

    def run(self) -> HookResult:
        command = self.expand()
        self._log.info("hook_started", hook=self.name, command=command)

        error: str | None = None
        try:
            proc = subprocess.run(
                shlex.split(command),
                capture_output=True,
                text=True,
                timeout=self._hook.timeout_seconds,
            )
            output = proc.stdout + proc.stderr
            if proc.returncode != 0:
                error = f"exit status {proc.returncode}"
        except subprocess.TimeoutExpired as e:
            output = _as_text(e.stdout) + _as_text(e.stderr)
            error = f"timed out after {self._hook.timeout_seconds}s"
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            output = ""
            error = str(e)

        content = f"{command}\n\n# output\n{output}"
        if error is not None:
            content += f"\n\n# error\n{error}"
        self._write(content)

        if error is not None:
            self._log.warning("hook_failed", hook=self.name, error=error, output_path=self._hook.output_path)
        else:
            self._log.info("hook_finished", hook=self.name, output_path=self._hook.output_path)
        return HookResult(command=command, output=output, error=error, output_path=self._hook.output_path)

    def _write(self, content: str) -> None:
        path = Path(self._hook.output_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w") as f:
                f.write(content)
        except OSError as e:
            raise ProvisioningError(
                f"failed to write file {str(path)!r} ({e})", step=f"hook:{self.name}"
            ) from e


def _as_text(data: Any) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode(errors="replace")
    return str(data)
