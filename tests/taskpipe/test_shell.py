"""
Tests for the one-call runners: run, capture, their bash forms, and
exec_replace error handling.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from taskpipe import (
    CaptureError,
    CaptureResult,
    ExecutableNotFound,
    RunError,
    SpawnFailure,
    capture,
    capture_bash,
    exec_replace,
    run,
    run_bash,
)
from tests.taskpipe.helpers import require_binaries, requires_posix

pytestmark = requires_posix


class TestCaptureResult:
    """Exactly one trailing newline is stripped."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            (b"taskpipe-demo\n", "taskpipe-demo"),
            (b"two\nlines\n", "two\nlines"),
            (b"blank\n\n", "blank\n"),
            (b"none", "none"),
            (b"crlf\r\n", "crlf"),
            (b"", ""),
        ],
    )
    def test_stdout_strip(self, raw, expected):
        assert CaptureResult(raw_stdout=raw, raw_stderr=b"").stdout == expected

    def test_raw_bytes_kept(self):
        result = CaptureResult(raw_stdout=b"a\n", raw_stderr=b"b\n")
        assert result.raw_stdout == b"a\n"
        assert result.stderr == "b"


@require_binaries("ls", "bash", "touch")
class TestRunners:
    """run / run_bash / capture / capture_bash against real programs."""

    def test_run_success(self, tmp_path):
        target = tmp_path / "file.txt"
        run("touch", str(target))
        assert target.exists()

    def test_run_bash_success(self, tmp_path):
        target = tmp_path / "bash.txt"
        run_bash(f"touch {target}")
        assert target.exists()

    def test_run_failure_raises(self):
        with pytest.raises(RunError) as exc_info:
            run("bash", "-c", "exit 3")
        assert exc_info.value.exit_status == 3
        assert "exit code 3" in str(exc_info.value)

    def test_run_unknown_executable(self):
        with pytest.raises(ExecutableNotFound):
            run("definitely-not-a-real-program")

    def test_capture_listing(self, make_dir):
        folder = make_dir("taskpipe-demo")
        output = capture("ls", str(folder))
        assert output.stdout == "taskpipe-demo"
        assert output.stderr == ""

    def test_capture_resolves_bare_name(self, make_dir):
        folder = make_dir("taskpipe-demo")
        assert capture("ls", cwd=folder).stdout == "taskpipe-demo"

    def test_capture_bash(self, make_dir):
        folder = make_dir("taskpipe-demo")
        output = capture_bash(f"ls {folder}")
        assert output.stdout == "taskpipe-demo"
        assert output.stderr == ""

    def test_capture_bash_environment(self):
        assert capture_bash("echo $GREETING", env={"GREETING": "hello"}).stdout == "hello"

    def test_capture_separates_streams(self):
        output = capture("bash", "-c", "echo out; echo err >&2")
        assert output.stdout == "out"
        assert output.stderr == "err"

    def test_capture_failure_keeps_output(self):
        with pytest.raises(CaptureError) as exc_info:
            capture_bash("echo partial; echo broken >&2; exit 5")
        error = exc_info.value
        assert error.exit_status == 5
        assert error.captured.stdout == "partial"
        assert error.captured.stderr == "broken"
        assert "broken" in str(error)

    def test_capture_error_is_run_error(self):
        with pytest.raises(RunError):
            capture("bash", "-c", "exit 1")

    def test_capture_signal_exit(self):
        with pytest.raises(CaptureError) as exc_info:
            capture_bash("kill -TERM $$")
        assert exc_info.value.status.signaled
        assert exc_info.value.exit_status == 15
        assert "SIGTERM" in str(exc_info.value)


class TestExecReplace:
    """Only the failure paths run in-process; success never returns."""

    def test_unknown_executable(self):
        with pytest.raises(ExecutableNotFound):
            exec_replace("definitely-not-a-real-program")

    @require_binaries("true")
    def test_os_error_becomes_spawn_failure(self):
        with patch("taskpipe.shell.os.execve", side_effect=PermissionError(13, "Permission denied")):
            with pytest.raises(SpawnFailure, match="Permission denied"):
                exec_replace("true")

    @require_binaries("true")
    def test_passes_merged_environment(self, monkeypatch):
        monkeypatch.setenv("TASKPIPE_BASE", "base")
        with patch("taskpipe.shell.os.execve", side_effect=OSError(1, "stop")) as execve:
            with pytest.raises(SpawnFailure):
                exec_replace("true", "arg", env={"TASKPIPE_EXTRA": "extra"})
        path, argv, env = execve.call_args.args
        assert path.endswith("true")
        assert argv == ["true", "arg"]
        assert env["TASKPIPE_BASE"] == "base"
        assert env["TASKPIPE_EXTRA"] == "extra"
