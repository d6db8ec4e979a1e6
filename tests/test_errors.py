"""Tests for the error hierarchy and CLI error handling."""

from k8stester.core.errors import (
    ConfigurationError,
    ExitCode,
    HealthCheckError,
    InternalConsistencyError,
    K8sTesterError,
    ProvisioningError,
    StepInterrupted,
    TeardownError,
    format_error_message,
    main_with_error_handling,
)


class TestExitCodes:
    def test_exit_codes(self):
        assert ConfigurationError("x").exit_code == ExitCode.CONFIG_ERROR
        assert ProvisioningError("x").exit_code == ExitCode.PROVIDER_ERROR
        assert StepInterrupted("x").exit_code == ExitCode.INTERRUPTED
        assert TeardownError(["x"]).exit_code == ExitCode.PROVIDER_ERROR
        assert InternalConsistencyError("x").exit_code == ExitCode.UNKNOWN_ERROR

    def test_hierarchy(self):
        assert issubclass(StepInterrupted, ProvisioningError)
        assert issubclass(HealthCheckError, ProvisioningError)
        assert issubclass(TeardownError, K8sTesterError)


class TestTeardownError:
    def test_joins_all_messages(self):
        error = TeardownError(["delete_vpc failed: a", "delete_bucket failed: b"])

        assert str(error) == "delete_vpc failed: a, delete_bucket failed: b"
        assert error.errors == ["delete_vpc failed: a", "delete_bucket failed: b"]
        assert error.details == {"failed_steps": 2}


class TestFormatErrorMessage:
    def test_with_details(self):
        error = ConfigurationError("bad value", {"field": "region"})

        assert format_error_message(error) == "bad value (field=region)"

    def test_without_details(self):
        assert format_error_message(ProvisioningError("failed")) == "failed"


class TestMainWithErrorHandling:
    def test_success_passthrough(self):
        @main_with_error_handling()
        def cmd():
            return 0

        assert cmd() == 0

    def test_tester_error_exit_code(self):
        @main_with_error_handling(log_errors=False)
        def cmd():
            raise ConfigurationError("bad")

        assert cmd() == ExitCode.CONFIG_ERROR

    def test_keyboard_interrupt(self):
        @main_with_error_handling(log_errors=False)
        def cmd():
            raise KeyboardInterrupt

        assert cmd() == ExitCode.INTERRUPTED

    def test_unknown_error(self):
        @main_with_error_handling(log_errors=False)
        def cmd():
            raise RuntimeError("boom")

        assert cmd() == ExitCode.UNKNOWN_ERROR

    def test_consistency_error_prints_traceback(self, capsys):
        @main_with_error_handling(log_errors=False)
        def cmd():
            raise InternalConsistencyError("jobs-echo handle is missing")

        assert cmd() == ExitCode.UNKNOWN_ERROR
        assert "InternalConsistencyError" in capsys.readouterr().err
