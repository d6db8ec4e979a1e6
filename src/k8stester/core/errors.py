"""
Unified error handling for k8s-tester.

Two error classes drive the sagas:

- Fatal errors (ProvisioningError and subclasses) abort Up at the first
  failing step and are returned to the caller verbatim.
- Aggregated errors (TeardownError) collect every step failure seen during
  Down; teardown always runs to the end before raising.

Exit Codes:
- 0: Success
- 10: Configuration error
- 11: Provisioning or teardown failure (external collaborator failure)
- 127: Internal consistency error / unknown error
- 130: Interrupted (SIGINT, SIGTERM, explicit stop)
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    CONFIG_ERROR = 10
    PROVIDER_ERROR = 11
    UNKNOWN_ERROR = 127
    INTERRUPTED = 130


class K8sTesterError(Exception):
    """Base exception for k8s-tester errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(K8sTesterError):
    """Raised for invalid or unreadable environment configuration."""

    exit_code = ExitCode.CONFIG_ERROR


class ProvisioningError(K8sTesterError):
    """Raised when a provisioning step fails; fatal for Up."""

    exit_code = ExitCode.PROVIDER_ERROR

    def __init__(
        self,
        message: str,
        step: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.step = step


class StepInterrupted(ProvisioningError):
    """Raised when the stop signal fires before a step reports back."""

    exit_code = ExitCode.INTERRUPTED


class HealthCheckError(ProvisioningError):
    """Raised when the control plane fails a health check."""


class InternalConsistencyError(K8sTesterError):
    """
    Raised when an add-on is enabled but its handle was never built.

    This points at a construction bug rather than an environmental failure
    and is never retried.
    """

    exit_code = ExitCode.UNKNOWN_ERROR
    show_traceback = True


class TeardownError(K8sTesterError):
    """Raised at the end of Down when one or more steps failed."""

    exit_code = ExitCode.PROVIDER_ERROR

    def __init__(self, errors: list[str]):
        super().__init__(", ".join(errors), {"failed_steps": len(errors)})
        self.errors = list(errors)


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI main functions that provides unified error handling.

    Exit codes:
        - K8sTesterError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except K8sTesterError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=int(e.exit_code),
                        **e.details,
                    )
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return ExitCode.INTERRUPTED
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=int(ExitCode.UNKNOWN_ERROR),
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: K8sTesterError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg
