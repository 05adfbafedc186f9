"""Tests for BuildContext assembly and serialization."""

from unittest.mock import patch

import pytest

from ghost.build.build_context import (
    DEFAULT_DISCOVER_INCLUDE,
    DEFAULT_DISCOVER_ROOTS,
    BuildContext,
    create_build_context,
    host_os,
)
from ghost.build.build_profiles import default_profile
from ghost.build.toolchain import default_toolchain


class TestCreateBuildContext:
    """Test the context assembler."""

    def test_defaults(self, tmp_path):
        ctx = create_build_context(default_toolchain(), default_profile(), tmp_path, environ={})

        assert ctx.env == "dev"
        assert ctx.os in ("windows", "macos", "linux")
        assert ctx.workspace_root == str(tmp_path.resolve())
        assert ctx.project_root == ctx.workspace_root
        assert ctx.discover_roots == DEFAULT_DISCOVER_ROOTS
        assert ctx.discover_include == DEFAULT_DISCOVER_INCLUDE
        assert ctx.discover_exclude == []
        assert ctx.log == []

    def test_env_tag_from_environment(self, tmp_path):
        ctx = create_build_context(default_toolchain(), default_profile(), tmp_path, environ={"GHOST_ENV": "ci"})
        assert ctx.env == "ci"

    def test_separate_project_root(self, tmp_path):
        project = tmp_path / "project"
        project.mkdir()

        ctx = create_build_context(default_toolchain(), default_profile(), tmp_path, project, environ={})

        assert ctx.project_root == str(project.resolve())

    @pytest.mark.parametrize(
        "platform,expected",
        [("win32", "windows"), ("darwin", "macos"), ("linux", "linux")],
    )
    def test_host_os(self, platform, expected):
        with patch("ghost.build.build_context.sys.platform", platform):
            assert host_os() == expected


class TestBuildContextSerialization:
    """Test the to_dict/from_dict round-trip used by hooks."""

    def test_round_trip(self, build_ctx):
        assert BuildContext.from_dict(build_ctx.to_dict()) == build_ctx

    def test_to_dict_is_plain_data(self, build_ctx):
        data = build_ctx.to_dict()

        assert isinstance(data["toolchain"], dict)
        assert isinstance(data["profile"]["defines"], list)

    def test_mutated_dict(self, build_ctx):
        data = build_ctx.to_dict()
        data["profile"]["name"] = "release"
        data["discover_exclude"].append("**/gen/**")

        ctx = BuildContext.from_dict(data)

        assert ctx.profile.name == "release"
        assert ctx.discover_exclude == ["**/gen/**"]

    def test_rejects_non_dict(self):
        with pytest.raises(ValueError, match="ctx must be a dict"):
            BuildContext.from_dict(["not", "a", "dict"])

    def test_rejects_wrong_field_type(self, build_ctx):
        data = build_ctx.to_dict()
        data["log"] = "oops"

        with pytest.raises(ValueError, match="ctx.log"):
            BuildContext.from_dict(data)

    def test_rejects_missing_toolchain(self, build_ctx):
        data = build_ctx.to_dict()
        del data["toolchain"]

        with pytest.raises(ValueError, match="ctx.toolchain"):
            BuildContext.from_dict(data)
