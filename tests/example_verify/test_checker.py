"""Tests for checker.py: ExampleChecker command building and fail-fast loop."""

import subprocess
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from example_verify.checker import ExampleChecker
from example_verify.errors import PreconditionError, VerificationError


def _exit_codes(codes: dict[str, int]):
    """subprocess.run stand-in returning a per-example exit status."""

    def fake_run(cmd, **kwargs):
        example = cmd[cmd.index("--example") + 1]
        return SimpleNamespace(returncode=codes.get(example, 0))

    return fake_run


@pytest.fixture
def checker(tmp_path: Path) -> ExampleChecker:
    return ExampleChecker(tmp_path, "thumbv7m-none-eabi")


class TestCommandFor:
    def test_default_command(self, checker: ExampleChecker):
        assert checker.command_for("blink") == [
            "xargo",
            "check",
            "--example",
            "blink",
            "--target",
            "thumbv7m-none-eabi",
        ]

    def test_multi_word_command(self, tmp_path: Path):
        checker = ExampleChecker(tmp_path, "thumbv6m-none-eabi", command=("cargo", "+nightly"))
        assert checker.command_for("uart")[:3] == ["cargo", "+nightly", "check"]


class TestCheck:
    def test_runs_in_workspace(self, checker: ExampleChecker, tmp_path: Path):
        with patch("example_verify.checker.subprocess.run") as mock_run:
            mock_run.return_value = SimpleNamespace(returncode=0)
            assert checker.check("blink") == 0

        args, kwargs = mock_run.call_args
        assert args[0] == checker.command_for("blink")
        assert kwargs["cwd"] == tmp_path
        assert kwargs["timeout"] is None

    def test_returns_failure_status(self, checker: ExampleChecker):
        with patch("example_verify.checker.subprocess.run", side_effect=_exit_codes({"blink": 101})):
            assert checker.check("blink") == 101

    def test_missing_executable(self, checker: ExampleChecker):
        with patch(
            "example_verify.checker.subprocess.run",
            side_effect=FileNotFoundError("xargo"),
        ):
            with pytest.raises(PreconditionError, match="xargo"):
                checker.check("blink")

    def test_timeout(self, tmp_path: Path):
        checker = ExampleChecker(tmp_path, "thumbv7m-none-eabi", timeout=5.0)
        with patch(
            "example_verify.checker.subprocess.run",
            side_effect=subprocess.TimeoutExpired(["xargo"], 5.0),
        ) as mock_run:
            with pytest.raises(VerificationError) as exc_info:
                checker.check("blink")
        assert mock_run.call_args.kwargs["timeout"] == 5.0
        assert exc_info.value.example == "blink"
        assert exc_info.value.returncode is None


class TestVerify:
    def test_all_pass(self, checker: ExampleChecker):
        with patch(
            "example_verify.checker.subprocess.run", side_effect=_exit_codes({})
        ) as mock_run:
            checked = checker.verify(["blink", "uart"])

        assert checked == ["blink", "uart"]
        assert mock_run.call_count == 2

    def test_stops_at_first_failure(self, checker: ExampleChecker):
        names = ["adc", "blink", "pwm", "serial", "uart"]
        with patch(
            "example_verify.checker.subprocess.run",
            side_effect=_exit_codes({"pwm": 1, "uart": 1}),
        ) as mock_run:
            with pytest.raises(VerificationError) as exc_info:
                checker.verify(names)

        ran = [c.args[0][c.args[0].index("--example") + 1] for c in mock_run.call_args_list]
        assert ran == ["adc", "blink", "pwm"]
        assert exc_info.value.example == "pwm"
        assert exc_info.value.returncode == 1

    def test_first_example_fails(self, checker: ExampleChecker):
        with patch(
            "example_verify.checker.subprocess.run",
            side_effect=_exit_codes({"blink": 2}),
        ) as mock_run:
            with pytest.raises(VerificationError):
                checker.verify(["blink", "uart"])
        assert mock_run.call_count == 1

    def test_no_examples(self, checker: ExampleChecker):
        with patch("example_verify.checker.subprocess.run") as mock_run:
            assert checker.verify([]) == []
        mock_run.assert_not_called()


class TestVerificationError:
    def test_message(self):
        assert "exited with status 101" in str(VerificationError("blink", 101))
        assert "timed out" in str(VerificationError("blink", None))
