"""Tests for the build and discover flows."""

import json
import subprocess
from unittest.mock import patch

import pytest

from ghost.build.hooks import HOOK_SCRIPT_NAME
from ghost.build.orchestrator import ExecutorError, GhostOrchestrator, run_ninja
from ghost.build.source_scanner import DiscoveryMismatchError

LIB = """
[package]
name = "add"
type = "static"

[sources]
files = ["src/add.c"]

[public]
include_dirs = ["include"]
"""

APP = """
[package]
name = "app"
type = "exe"

[sources]
files = ["main.c"]

[deps]
direct = ["add"]
"""


@pytest.fixture
def workspace(write_workspace, write_package):
    write_package("libs/add", LIB, files=["src/add.c", "include/add.h"])
    write_package("apps/app", APP, files=["main.c"])
    return write_workspace(["libs/add", "apps/app"])


def _ok(*args, **kwargs):
    return subprocess.CompletedProcess(args=args, returncode=0)


class TestBuildFlow:
    """Test the build flow end to end with ninja mocked out."""

    def test_generate_only(self, workspace):
        with patch("ghost.build.orchestrator.safe_run") as mock_run:
            result = GhostOrchestrator(workspace, environ={}).build(generate_only=True)

        mock_run.assert_not_called()
        assert not result.ran_executor
        assert result.build_file == workspace.resolve() / "build" / "build.ninja"
        assert result.edge_count == 4
        text = result.build_file.read_text()
        assert "build build/bin/app: link_exe build/obj/app/main_c.o build/lib/libadd.a" in text
        entries = json.loads((workspace / "compile_commands.json").read_text())
        assert [e["file"] for e in entries] == [
            str((workspace / "libs/add/src/add.c").resolve()),
            str((workspace / "apps/app/main.c").resolve()),
        ]

    def test_runs_ninja_from_workspace_root(self, workspace):
        with patch("ghost.build.orchestrator.safe_run", side_effect=_ok) as mock_run:
            result = GhostOrchestrator(workspace, environ={}).build()

        assert result.ran_executor
        cmd = mock_run.call_args.args[0]
        assert cmd == ["ninja", "-f", "build/build.ninja"]
        assert mock_run.call_args.kwargs["cwd"] == str(workspace.resolve())

    def test_missing_source_aborts_before_writing(self, workspace):
        (workspace / "apps/app/main.c").unlink()

        with patch("ghost.build.orchestrator.safe_run") as mock_run:
            with pytest.raises(DiscoveryMismatchError) as exc_info:
                GhostOrchestrator(workspace, environ={}).build()

        mock_run.assert_not_called()
        assert exc_info.value.missing == {"app": ["main.c"]}
        assert exc_info.value.exit_code == 2
        assert not (workspace / "build" / "build.ninja").exists()

    def test_hooks_run_around_ninja(self, workspace):
        (workspace / HOOK_SCRIPT_NAME).write_text(
            "def before_generate(ctx):\n"
            '    ctx["profile"]["defines"].append("FROM_HOOK=1")\n'
            "\n"
            "def after_build(ctx):\n"
            '    ctx["log"].append("built")\n'
        )

        with patch("ghost.build.orchestrator.safe_run", side_effect=_ok):
            result = GhostOrchestrator(workspace, environ={}).build()

        assert "-DFROM_HOOK=1" in result.build_file.read_text()
        assert result.context.log == ["built"]

    def test_after_build_skipped_when_generating_only(self, workspace):
        (workspace / HOOK_SCRIPT_NAME).write_text('def after_build(ctx):\n    ctx["log"].append("built")\n')

        result = GhostOrchestrator(workspace, environ={}).build(generate_only=True)

        assert result.context.log == []

    def test_dependency_declared_later_warns(self, write_workspace, write_package, capsys):
        write_package("libs/add", LIB, files=["src/add.c", "include/add.h"])
        write_package("apps/app", APP, files=["main.c"])
        root = write_workspace(["apps/app", "libs/add"])

        GhostOrchestrator(root, environ={}).build(generate_only=True)

        out = capsys.readouterr().out
        assert "WARNING: 'app' depends on 'add', which is listed after it in workspace.members" in out
        assert "Dependency order: add, app" in out

    def test_workspace_profile_fragment(self, write_workspace, write_package):
        write_package("apps/app", APP.replace('direct = ["add"]', "direct = []"), files=["main.c"])
        root = write_workspace(["apps/app"], extra='[profile.debug]\ndefines = ["TRACE=1"]\n')

        result = GhostOrchestrator(root, environ={}).build(generate_only=True)

        assert "defines = -DDEBUG=1 -DTRACE=1" in result.build_file.read_text()


class TestRunNinja:
    """Test executor error mapping."""

    def test_ninja_not_installed(self, tmp_path):
        with patch("ghost.build.orchestrator.safe_run", side_effect=FileNotFoundError("ninja")):
            with pytest.raises(ExecutorError, match="not found"):
                run_ninja(tmp_path, tmp_path / "build" / "build.ninja")

    def test_ninja_failure(self, tmp_path):
        failed = subprocess.CompletedProcess(args=[], returncode=1)
        with patch("ghost.build.orchestrator.safe_run", return_value=failed):
            with pytest.raises(ExecutorError, match="exit code 1"):
                run_ninja(tmp_path, tmp_path / "build" / "build.ninja")

    def test_verbose_flag(self, tmp_path):
        with patch("ghost.build.orchestrator.safe_run", side_effect=_ok) as mock_run:
            run_ninja(tmp_path, tmp_path / "build" / "build.ninja", verbose=True)

        assert mock_run.call_args.args[0][-1] == "-v"


class TestDiscoverFlow:
    """Test the discover flow."""

    def test_all_present(self, workspace):
        report = GhostOrchestrator(workspace, environ={}).discover()

        assert report.ok
        assert [(p.name, len(p.files), p.compilable) for p in report.packages] == [("add", 1, 1), ("app", 1, 1)]
        report.raise_for_missing()

    def test_missing_files_collected_across_packages(self, workspace):
        (workspace / "libs/add/src/add.c").unlink()
        (workspace / "apps/app/main.c").unlink()

        report = GhostOrchestrator(workspace, environ={}).discover()

        assert report.missing == {"add": ["src/add.c"], "app": ["main.c"]}
        with pytest.raises(DiscoveryMismatchError):
            report.raise_for_missing()

    def test_discovery_package_refreshes_cache(self, write_workspace, write_package):
        pkg_root = write_package(
            "disc",
            '[package]\nname = "disc"\ntype = "static"\n[sources]\nroots = ["src"]\n',
            files=["src/a.c", "src/b.h"],
        )
        root = write_workspace(["disc"])

        report = GhostOrchestrator(root, environ={}).discover()

        entry = report.packages[0]
        assert entry.discovered
        assert entry.files == ["src/a.c"]
        assert (pkg_root / ".ghost" / "files.json").exists()

    def test_discovery_matches_build_exclusions(self, write_workspace, write_package):
        pkg_root = write_package(
            "disc",
            '[package]\nname = "disc"\ntype = "static"\n[sources]\nroots = ["src"]\n',
            files=["src/a.c", "src/bench/b.c", "src/out/gen.c"],
        )
        root = write_workspace(
            ["disc"],
            extra='[build_dir]\ndir = "disc/src/out"\n\n[profile.debug]\nexclude = ["**/bench/**"]\n',
        )

        report = GhostOrchestrator(root, environ={}).discover()
        cached = json.loads((pkg_root / ".ghost" / "files.json").read_text())

        result = GhostOrchestrator(root, environ={}).build(generate_only=True)

        assert report.packages[0].files == ["src/a.c"]
        assert cached == {"files": ["src/a.c"]}
        assert json.loads((pkg_root / ".ghost" / "files.json").read_text()) == cached
        assert result.edge_count == 2

    def test_repeated_explicit_file_listed_once(self, write_workspace, write_package):
        write_package(
            "a",
            '[package]\nname = "a"\ntype = "static"\n[sources]\nfiles = ["x.c", "x.c", "gone.c", "gone.c"]\n',
            files=["x.c"],
        )
        root = write_workspace(["a"])

        report = GhostOrchestrator(root, environ={}).discover()

        assert report.packages[0].files == ["x.c", "gone.c"]
        assert report.missing == {"a": ["gone.c"]}
