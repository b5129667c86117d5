"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent


@pytest.fixture
def cli_env(tmp_path):
    """Environment pointing the CLI at a throwaway database."""
    env = dict(os.environ)
    env["PORTAL_DATABASE_URL"] = f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"
    env["PORTAL_WATERMARK_PATH"] = str(tmp_path / "seen.json")
    env["PORTAL_LOG_FILE"] = ""
    env["COLUMNS"] = "200"
    env["PYTHONIOENCODING"] = "utf-8"
    return env


def run_cli_command(args: list[str], env: dict, timeout: int = 60) -> tuple[int, str, str]:
    """
    Run a CLI command and return exit code, stdout, stderr.

    Args:
        args: Arguments after 'python -m src.cli.main'
        env: Process environment
        timeout: Maximum time to wait

    Returns:
        Tuple of (exit_code, stdout, stderr)
    """
    result = subprocess.run(
        [sys.executable, "-m", "src.cli.main", *args],
        cwd=PROJECT_ROOT,
        env=env,
        capture_output=True,
        text=True,
        encoding="utf-8",
        timeout=timeout,
    )
    return result.returncode, result.stdout, result.stderr


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self, cli_env):
        code, stdout, stderr = run_cli_command(["--help"], cli_env)

        assert code == 0, f"Help failed: {stderr}"
        assert "classify" in stdout
        assert "ledger" in stdout

    def test_info(self, cli_env):
        code, stdout, stderr = run_cli_command(["info"], cli_env)

        assert code == 0, f"Info failed: {stderr}"
        assert "max_xp_per_submission" in stdout
        assert "flag_paste_count" in stdout


class TestClassify:
    def test_paste_burst(self, cli_env):
        code, stdout, stderr = run_cli_command(
            ["classify", "--time", "50", "--keys", "10", "--pastes", "6"], cli_env
        )

        assert code == 0, stderr
        assert "FLAGGED" in stdout
        assert "10 XP" in stdout

    def test_below_floor(self, cli_env):
        code, stdout, _ = run_cli_command(["classify", "--time", "5"], cli_env)

        assert code == 1
        assert "Not classifiable" in stdout

    def test_replay(self, cli_env, tmp_path):
        trace = tmp_path / "trace.json"
        trace.write_text(
            json.dumps(
                {
                    "start": 0,
                    "end": 600_000,
                    "events": [{"at": t, "type": "keydown"} for t in range(0, 600_000, 500)],
                }
            ),
            encoding="utf-8",
        )

        code, stdout, stderr = run_cli_command(["replay", str(trace)], cli_env)

        assert code == 0, stderr
        assert "SUCCESS" in stdout
        assert "100 XP" in stdout


class TestStoreCommands:
    def test_admin_flow(self, cli_env, tmp_path, sample_bank):
        code, stdout, stderr = run_cli_command(["db", "init"], cli_env)
        assert code == 0, stderr
        assert "Database initialized" in stdout

        code, stdout, stderr = run_cli_command(["whitelist", "add", "ada@school.test", "AP Physics"], cli_env)
        assert code == 0, stderr
        assert "AP Physics" in stdout

        bank = tmp_path / "bank.json"
        bank.write_text(json.dumps(sample_bank), encoding="utf-8")
        code, stdout, stderr = run_cli_command(["bank", "upload", "res-1", str(bank)], cli_env)
        assert code == 0, stderr
        assert "Stored 2 questions" in stdout

        code, stdout, stderr = run_cli_command(["events", "add", "Double XP", "2.0", "--hours", "1"], cli_env)
        assert code == 0, stderr

        code, stdout, stderr = run_cli_command(
            ["classes", "set", "AP Physics", "--rate", "20", "--thresholds", '{"flagPasteCount": 3}'],
            cli_env,
        )
        assert code == 0, stderr

        code, stdout, stderr = run_cli_command(["submissions", "res-1"], cli_env)
        assert code == 0, stderr
        assert "No submissions" in stdout

    def test_ledger_unknown_user(self, cli_env):
        run_cli_command(["db", "init"], cli_env)

        code, stdout, _ = run_cli_command(["ledger", "nobody"], cli_env)

        assert code == 1
        assert "No profile" in stdout
