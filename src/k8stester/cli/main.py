"""
k8s-tester command line.

Commands:
    up         provision the environment (resumes a partial run)
    down       tear the environment down
    is-up      exit 0 if the environment is up and healthy
    dump-logs  fetch node group logs
    status     show the persisted state of the environment
"""

from __future__ import annotations

import argparse
import sys
from typing import Sequence

from k8stester.artifacts import S3ArtifactUploader
from k8stester.cli import ux
from k8stester.config.loader import load_environment
from k8stester.config.settings import Settings, get_settings
from k8stester.core.errors import ConfigurationError, ExitCode, main_with_error_handling
from k8stester.logging import configure_logging, new_run_logger
from k8stester.orchestration.stop import SignalSource
from k8stester.orchestrator import Tester
from k8stester.providers import create_provider, list_providers


def _build_tester(path: str | None, provider: str | None, settings: Settings) -> Tester:
    config = load_environment(path or settings.config_path)
    log = new_run_logger(config.name)

    provider_name = provider or settings.provider
    try:
        bundle = create_provider(provider_name, config=config, settings=settings, log=log)
    except KeyError as exc:
        known = ", ".join(p.name for p in list_providers())
        raise ConfigurationError(
            f"unknown provider {provider_name!r} (known: {known})"
        ) from exc

    if settings.upload_artifacts and bundle.uploader is None:
        bundle.uploader = S3ArtifactUploader(
            config,
            region=config.region or settings.aws_region,
            prefix=settings.artifacts_prefix,
            log=log,
        )

    signals = SignalSource(log=log)
    tester = Tester(config, bundle, logger=log, settings=settings, signal_source=signals)
    signals.install()
    return tester


def _release(tester: Tester) -> None:
    signals = tester.signal_source
    if signals is not None:
        signals.restore()


@main_with_error_handling()
def up_command(path: str | None = None, provider: str | None = None) -> int:
    settings = get_settings()
    tester = _build_tester(path, provider, settings)
    try:
        if not tester.should_up():
            ux.info(f"{tester.config.name} is already up")
            return ExitCode.SUCCESS
        ux.header(f"Provisioning {tester.config.name}")
        result = tester.up()
    finally:
        _release(tester)

    ux.success(
        f"{result.environment} is up: {len(result.completed)} steps in "
        f"{result.duration_seconds:.1f}s ({len(result.skipped)} already done)"
    )
    ux.print_key_value({"kubeconfig": tester.kubeconfig(), "artifacts": tester.artifacts_dir()})
    return ExitCode.SUCCESS


@main_with_error_handling()
def down_command(path: str | None = None, provider: str | None = None) -> int:
    settings = get_settings()
    tester = _build_tester(path, provider, settings)
    try:
        if not tester.should_down():
            ux.info(f"nothing to delete for {tester.config.name}")
            return ExitCode.SUCCESS
        ux.header(f"Tearing down {tester.config.name}")
        result = tester.down()
    finally:
        _release(tester)

    ux.success(f"{result.environment} deleted in {result.duration_seconds:.1f}s")
    return ExitCode.SUCCESS


@main_with_error_handling()
def is_up_command(path: str | None = None, provider: str | None = None) -> int:
    settings = get_settings()
    tester = _build_tester(path, provider, settings)
    try:
        up = tester.is_up()
    finally:
        _release(tester)

    if up:
        ux.success(f"{tester.config.name} is up")
        return ExitCode.SUCCESS
    ux.warning(f"{tester.config.name} is not up")
    return 1


@main_with_error_handling()
def dump_logs_command(path: str | None = None, provider: str | None = None) -> int:
    settings = get_settings()
    tester = _build_tester(path, provider, settings)
    try:
        tester.dump_cluster_logs()
    finally:
        _release(tester)

    dirs = [
        ng.logs_dir
        for ng in (tester.config.node_groups, tester.config.managed_node_groups)
        if ng.enabled and ng.logs_dir
    ]
    ux.success("logs fetched" + (f" to {', '.join(dirs)}" if dirs else ""))
    return ExitCode.SUCCESS


@main_with_error_handling()
def status_command(path: str | None = None) -> int:
    settings = get_settings()
    config = load_environment(path or settings.config_path)
    status = config.status

    ux.header(f"Environment {config.name}")
    ux.print_key_value(
        {
            "region": config.region,
            "up": str(status.up),
            "created_at": status.created_at or "-",
            "deleted_at": status.deleted_at or "-",
            "cluster_endpoint": status.cluster_endpoint or "-",
            "kubeconfig": config.kubeconfig_path,
        }
    )

    rows = [[name, state.id or "-", "yes" if state.created else "no"] for name, state in status.resources.items()]
    if rows:
        ux.print_table("Resources", ["Resource", "ID", "Created"], rows)

    add_ons = [
        ("node-groups", config.node_groups),
        ("managed-node-groups", config.managed_node_groups),
        *sorted(config.add_ons.items()),
    ]
    rows = [
        [name, "yes" if state.enabled else "no", "yes" if state.created else "no"]
        for name, state in add_ons
        if state.enabled or state.created
    ]
    if rows:
        ux.print_table("Add-ons", ["Add-on", "Enabled", "Created"], rows)
    return ExitCode.SUCCESS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="k8s-tester", description="Provision and tear down Kubernetes test environments"
    )
    subparsers = parser.add_subparsers(dest="command")

    for name, help_text in (
        ("up", "Provision the environment"),
        ("down", "Tear the environment down"),
        ("is-up", "Check whether the environment is up and healthy"),
        ("dump-logs", "Fetch node group logs"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--path", help="Path to the environment config (YAML)")
        sub.add_argument("--provider", help="Collaborator set to use (default: memory)")

    status_parser = subparsers.add_parser("status", help="Show the persisted environment state")
    status_parser.add_argument("--path", help="Path to the environment config (YAML)")

    return parser


COMMANDS = {
    "up": up_command,
    "down": down_command,
    "is-up": is_up_command,
    "dump-logs": dump_logs_command,
}


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(ExitCode.SUCCESS)

    settings = get_settings()
    configure_logging(settings.log_level, json_output=settings.log_json)

    if args.command == "status":
        sys.exit(status_command(path=args.path))

    sys.exit(COMMANDS[args.command](path=args.path, provider=args.provider))


if __name__ == "__main__":
    main()
