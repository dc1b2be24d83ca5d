"""Unit tests for HookRunner."""

import logging
import subprocess
from unittest.mock import patch

import pytest

from bubble_bot.config import HookConfig
from bubble_bot.managers.hook_runner import HookRunner


def _completed(returncode: int) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode)


@pytest.fixture
def hooks():
    """Hook lists with a failing command first."""
    return HookConfig(post_start=["exit 1", "echo ok"], pre_stop=["echo bye"])


def test_post_start_failure_does_not_stop_later_hooks(hooks, settings, caplog):
    """Test that a failing hook is logged and the next one still runs."""
    caplog.set_level(logging.INFO, logger="bubble_bot.managers.hook_runner")
    runner = HookRunner("dev1", hooks, settings)

    with patch("bubble_bot.managers.hook_runner.subprocess.run") as mock_run:
        mock_run.side_effect = [_completed(1), _completed(0)]
        runner.run_post_start()

    commands = [c.args[0] for c in mock_run.call_args_list]
    assert commands == [
        ["docker", "exec", "dev1", "sh", "-c", "exit 1"],
        ["docker", "exec", "dev1", "sh", "-c", "echo ok"],
    ]

    failed = [r for r in caplog.records if r.getMessage() == "Hook failed"]
    assert len(failed) == 1
    assert failed[0].exit_code == 1
    assert failed[0].levelno == logging.WARNING

    succeeded = [r for r in caplog.records if r.getMessage() == "Hook succeeded"]
    assert [r.cmd for r in succeeded] == ["echo ok"]


def test_spawn_error_is_logged_and_skipped(hooks, settings):
    """Test that a hook that cannot be spawned does not raise."""
    runner = HookRunner("dev1", hooks, settings)

    with patch("bubble_bot.managers.hook_runner.subprocess.run") as mock_run:
        mock_run.side_effect = [FileNotFoundError("docker"), _completed(0)]
        runner.run_post_start()

    assert mock_run.call_count == 2


def test_pre_stop_runs_pre_stop_list(hooks, settings):
    """Test that pre_stop hooks run with stdin detached."""
    runner = HookRunner("dev1", hooks, settings)

    with patch("bubble_bot.managers.hook_runner.subprocess.run") as mock_run:
        mock_run.return_value = _completed(0)
        runner.run_pre_stop()

    mock_run.assert_called_once_with(
        ["docker", "exec", "dev1", "sh", "-c", "echo bye"],
        stdin=subprocess.DEVNULL,
        check=False,
    )


def test_no_hooks_is_noop(settings):
    """Test that empty hook lists spawn nothing."""
    runner = HookRunner("dev1", HookConfig(), settings)

    with patch("bubble_bot.managers.hook_runner.subprocess.run") as mock_run:
        runner.run_post_start()
        runner.run_pre_stop()

    mock_run.assert_not_called()
