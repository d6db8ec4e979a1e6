"""Tests for operator command hooks."""

import os
import stat

import pytest

from k8stester.config.environment import EnvironmentConfig, HookConfig
from k8stester.core.errors import ProvisioningError
from k8stester.orchestration.hooks import CommandHook


@pytest.fixture
def config(tmp_path):
    config = EnvironmentConfig(name="hook-env", region="eu-west-1", config_path=tmp_path / "config.yaml")
    config.status.cluster_endpoint = "https://hook-env.example"
    config.validate_and_set_defaults()
    return config


def make_hook(tmp_path, command, timeout=30):
    return HookConfig(command=command, timeout_seconds=timeout, output_path=str(tmp_path / "hook.out"))


class TestExpand:
    def test_placeholders(self, tmp_path, config):
        hook = make_hook(tmp_path, "deploy {cluster_name} {region} {cluster_endpoint} {kubeconfig}")

        expanded = CommandHook("post-create", hook, config).expand()

        assert expanded == (
            f"deploy hook-env eu-west-1 https://hook-env.example {config.kubeconfig_path}"
        )

    def test_unknown_placeholder_left_alone(self, tmp_path, config):
        hook = make_hook(tmp_path, "echo {unknown} ${HOME}")

        assert CommandHook("h", hook, config).expand() == "echo {unknown} ${HOME}"

    def test_malformed_template_left_alone(self, tmp_path, config):
        hook = make_hook(tmp_path, "awk '{print $1}' {")

        assert CommandHook("h", hook, config).expand() == "awk '{print $1}' {"


class TestRun:
    def test_success_writes_output(self, tmp_path, config):
        hook = make_hook(tmp_path, "echo {cluster_name}")

        result = CommandHook("post-create", hook, config).run()

        assert result.success
        content = (tmp_path / "hook.out").read_text()
        assert content == "echo hook-env\n\n# output\nhook-env\n"

    def test_output_file_is_private(self, tmp_path, config):
        hook = make_hook(tmp_path, "echo hi")

        CommandHook("post-create", hook, config).run()

        mode = stat.S_IMODE(os.stat(tmp_path / "hook.out").st_mode)
        assert mode == 0o600

    def test_failing_command_does_not_raise(self, tmp_path, config):
        hook = make_hook(tmp_path, "false")

        result = CommandHook("post-create", hook, config).run()

        assert not result.success
        content = (tmp_path / "hook.out").read_text()
        assert content.endswith("\n\n# error\nexit status 1")

    def test_missing_binary_recorded(self, tmp_path, config):
        hook = make_hook(tmp_path, "definitely-not-a-real-binary-k8s-tester")

        result = CommandHook("post-create", hook, config).run()

        assert not result.success
        assert "# error" in (tmp_path / "hook.out").read_text()

    def test_timeout_recorded(self, tmp_path, config):
        hook = make_hook(tmp_path, "sleep 5", timeout=1)

        result = CommandHook("post-create", hook, config).run()

        assert result.error == "timed out after 1s"

    def test_unwritable_output_raises(self, tmp_path, config):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        hook = HookConfig(command="echo hi", output_path=str(blocker / "hook.out"))

        with pytest.raises(ProvisioningError, match="failed to write file") as exc_info:
            CommandHook("post-create", hook, config).run()

        assert exc_info.value.step == "hook:post-create"
