"""Tests for interruptible step execution."""

import threading

import pytest

from k8stester.core.errors import ConfigurationError, ProvisioningError, StepInterrupted
from k8stester.orchestration.executor import StepExecutor
from k8stester.orchestration.stop import StopSignal


class TestRun:
    def test_returns_value(self):
        executor = StepExecutor(StopSignal())

        outcome = executor.run("create_vpc", lambda: "vpc-123")

        assert outcome.ok
        assert outcome.value == "vpc-123"
        assert outcome.name == "create_vpc"

    def test_captures_error(self):
        def boom():
            raise RuntimeError("access denied")

        outcome = StepExecutor(StopSignal()).run("create_vpc", boom)

        assert not outcome.ok
        assert not outcome.interrupted
        assert str(outcome.error) == "access denied"

    def test_not_started_when_already_stopped(self):
        stop = StopSignal()
        stop.fire("operator")
        called = []

        outcome = StepExecutor(stop).run("create_vpc", lambda: called.append(1))

        assert outcome.interrupted
        assert called == []

    def test_stop_during_step_surfaces_interruption(self):
        """The stop wins the race, but the step keeps running to completion."""
        stop = StopSignal()
        started = threading.Event()
        release = threading.Event()
        finished = threading.Event()

        def slow_step():
            started.set()
            release.wait(5)
            finished.set()
            return "done"

        def interrupt():
            started.wait(5)
            stop.fire("operator")

        threading.Thread(target=interrupt).start()
        outcome = StepExecutor(stop).run("create_cluster", slow_step)

        assert outcome.interrupted
        assert outcome.value is None
        assert not finished.is_set()

        release.set()
        assert finished.wait(5)


class TestRunOrRaise:
    def test_wraps_foreign_errors(self):
        def boom():
            raise RuntimeError("quota exceeded")

        with pytest.raises(ProvisioningError) as exc_info:
            StepExecutor(StopSignal()).run_or_raise("create_vpc", boom)

        assert exc_info.value.step == "create_vpc"
        assert "quota exceeded" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_reraises_tester_errors_unchanged(self):
        error = ConfigurationError("bad")

        def boom():
            raise error

        with pytest.raises(ConfigurationError) as exc_info:
            StepExecutor(StopSignal()).run_or_raise("step", boom)

        assert exc_info.value is error

    def test_interrupted_raises(self):
        stop = StopSignal()
        stop.fire("received SIGINT")

        with pytest.raises(StepInterrupted) as exc_info:
            StepExecutor(stop).run_or_raise("create_vpc", lambda: None)

        assert exc_info.value.step == "create_vpc"
        assert "received SIGINT" in str(exc_info.value)


class TestWait:
    def test_zero_seconds_does_not_block(self):
        calls = []
        executor = StepExecutor(StopSignal(), wait_fn=lambda h, s: calls.append(h) or False)

        assert executor.wait("before_vpc_delete", 0) is False
        assert calls == []

    def test_uses_injected_wait_fn(self):
        calls = []
        executor = StepExecutor(StopSignal(), wait_fn=lambda h, s: calls.append((h, s)) or False)

        assert executor.wait("before_vpc_delete", 30) is False
        assert calls == [("before_vpc_delete", 30)]

    def test_wait_cut_short_by_stop(self):
        stop = StopSignal()
        threading.Timer(0.05, stop.fire).start()

        assert StepExecutor(stop).wait("load_balancer_release", 10) is True

    def test_wait_runs_out(self):
        assert StepExecutor(StopSignal()).wait("settle", 0.01) is False
