"""
CLI commands for k8s-tester.
"""

from k8stester.cli.main import (
    down_command,
    dump_logs_command,
    is_up_command,
    status_command,
    up_command,
)

__all__ = [
    "down_command",
    "dump_logs_command",
    "is_up_command",
    "status_command",
    "up_command",
]
