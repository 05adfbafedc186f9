"""Tests for build profiles and workspace profile fragments."""

import pytest

from ghost.build.build_profiles import (
    ProfileConfig,
    apply_profile_fragment,
    default_profile,
    format_define_flags,
)
from ghost.config.manifest import ProfileFragment, WorkspaceManifest


class TestProfileConfig:
    """Test ProfileConfig dictionary round-trips."""

    def test_default_profile(self):
        profile = default_profile()
        assert profile.name == "debug"
        assert profile.defines == ["DEBUG=1"]
        assert profile.exclude == []

    def test_round_trip(self):
        profile = ProfileConfig(name="release", defines=["NDEBUG"], exclude=["**/test/**"])
        assert ProfileConfig.from_dict(profile.to_dict()) == profile

    def test_rejects_non_list_defines(self):
        with pytest.raises(ValueError, match="profile.defines"):
            ProfileConfig.from_dict({"name": "x", "defines": "NDEBUG"})


class TestApplyProfileFragment:
    """Test merging [profile.<name>] fragments."""

    def test_matching_fragment_is_appended(self):
        workspace = WorkspaceManifest(
            members=[],
            profiles={"debug": ProfileFragment(defines=["TRACE=1", "DEBUG=1"], exclude=["**/bench/**"])},
        )

        merged = apply_profile_fragment(default_profile(), workspace)

        assert merged.name == "debug"
        assert merged.defines == ["DEBUG=1", "TRACE=1"]
        assert merged.exclude == ["**/bench/**"]

    def test_other_fragments_are_ignored(self):
        workspace = WorkspaceManifest(members=[], profiles={"release": ProfileFragment(defines=["NDEBUG"])})

        merged = apply_profile_fragment(default_profile(), workspace)

        assert merged == default_profile()


class TestFormatDefineFlags:
    """Test -D flag rendering."""

    def test_keeps_order_and_drops_duplicates(self):
        assert format_define_flags(["B=2", "A", "B=2"]) == ["-DB=2", "-DA"]

    def test_empty(self):
        assert format_define_flags([]) == []
