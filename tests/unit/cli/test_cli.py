"""Tests for the ghost command-line interface."""

from unittest.mock import patch

import pytest

from ghost.cli import main

MANIFEST = """
[package]
name = "app"
type = "exe"

[sources]
files = ["main.c"]
"""


@pytest.fixture
def workspace(write_workspace, write_package, monkeypatch):
    monkeypatch.delenv("GHOST_PROFILE", raising=False)
    write_package("app", MANIFEST, files=["main.c"])
    return write_workspace(["app"])


def _exit_code(argv):
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


class TestCli:
    """Test commands and exit codes."""

    def test_no_command_prints_help(self, capsys):
        assert _exit_code([]) == 0
        assert "usage: ghost" in capsys.readouterr().out

    def test_help_command(self, capsys):
        assert _exit_code(["help"]) == 0
        assert "discover" in capsys.readouterr().out

    def test_unknown_command_prints_help(self, capsys):
        assert _exit_code(["biuld"]) == 0
        assert "usage: ghost" in capsys.readouterr().out

    def test_bad_option_exits_1(self, capsys):
        assert _exit_code(["build", "--no-such-flag"]) == 1
        assert "unrecognized arguments" in capsys.readouterr().err

    def test_missing_directory(self, tmp_path):
        assert _exit_code(["build", "-C", str(tmp_path / "nope")]) == 1

    def test_build_generate_only(self, workspace, capsys, monkeypatch):
        monkeypatch.delenv("GHOST_PROFILE", raising=False)

        assert _exit_code(["build", "-n", "-C", str(workspace)]) == 0

        assert (workspace / "build" / "build.ninja").exists()
        assert (workspace / "compile_commands.json").exists()
        assert "Generated" in capsys.readouterr().err

    def test_build_runs_ninja(self, workspace, monkeypatch):
        monkeypatch.delenv("GHOST_PROFILE", raising=False)

        with patch("ghost.build.orchestrator.run_ninja") as mock_ninja:
            assert _exit_code(["build", "-C", str(workspace)]) == 0

        mock_ninja.assert_called_once()

    def test_bad_profile_exits_1(self, workspace, capsys):
        assert _exit_code(["build", "-n", "--profile", str(workspace / "missing.toml"), "-C", str(workspace)]) == 1
        assert "Build failed!" in capsys.readouterr().err

    def test_missing_source_exits_2(self, workspace, capsys, monkeypatch):
        monkeypatch.delenv("GHOST_PROFILE", raising=False)
        (workspace / "app" / "main.c").unlink()

        assert _exit_code(["build", "-n", "-C", str(workspace)]) == 2

        err = capsys.readouterr().err
        assert "app: missing 1 file(s):" in err
        assert "  - main.c" in err

    def test_interrupt_exits_130(self, workspace):
        with patch("ghost.cli.GhostOrchestrator.build", side_effect=KeyboardInterrupt):
            assert _exit_code(["build", "-C", str(workspace)]) == 130


class TestDiscoverCommand:
    """Test the discover command."""

    def test_ok(self, workspace, capsys):
        assert _exit_code(["discover", "-C", str(workspace)]) == 0
        assert "app: 1 files (1 compilable) – OK" in capsys.readouterr().out

    def test_verbose_and_profile_are_passed(self, workspace):
        with patch("ghost.cli.discover_command") as mock_discover:
            main(["discover", "-v", "--profile", "gcc.toml", "-C", str(workspace)])

        args = mock_discover.call_args.args[0]
        assert args.verbose
        assert args.profile.name == "gcc.toml"

    def test_missing_files(self, workspace, capsys):
        (workspace / "app" / "main.c").unlink()

        assert _exit_code(["discover", "-C", str(workspace)]) == 2

        err = capsys.readouterr().err
        assert "app: missing 1 file(s):" in err
        assert "  - main.c" in err
