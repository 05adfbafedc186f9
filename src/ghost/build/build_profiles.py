"""Build Profile Configuration.

A profile is a named build variant (e.g. ``debug``) carrying preprocessor
defines and source exclusions. The resolved profile comes from the same
source as the toolchain (explicit profile file, GHOST_PROFILE, or the
built-in default) and is then extended with the matching ``[profile.<name>]``
fragment of the workspace manifest, if one exists.

Design:
    Profiles are declarative data. Defines become ``-D`` flags on every
    compile edge; exclusions are appended to the exclude patterns of every
    discovery call. No other code inspects the profile's contents.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from ghost.config.manifest import WorkspaceManifest

from .serialization import str_field, str_list_field

DEFAULT_PROFILE_NAME = "debug"
EXPLICIT_PROFILE_NAME = "custom"
ENV_PROFILE_NAME = "env"


@dataclass(frozen=True)
class ProfileConfig:
    """Build variant descriptor.

    Attributes:
        name: Profile identifier (e.g. "debug", "custom")
        defines: Preprocessor defines without the -D prefix (e.g. "DEBUG=1")
        exclude: Glob patterns removed from discovered sources
    """

    name: str
    defines: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProfileConfig":
        """
        Parse a profile from a plain dictionary.

        Raises:
            ValueError: If a field has the wrong type
        """
        return cls(
            name=str_field(data, "name", "profile"),
            defines=str_list_field(data, "defines", "profile"),
            exclude=str_list_field(data, "exclude", "profile"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON/hook compatible dictionary."""
        return {
            "name": self.name,
            "defines": list(self.defines),
            "exclude": list(self.exclude),
        }


def default_profile() -> ProfileConfig:
    """Return the built-in profile used when no profile file is selected."""
    return ProfileConfig(name=DEFAULT_PROFILE_NAME, defines=["DEBUG=1"], exclude=[])


def _dedup(items: List[str]) -> List[str]:
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def apply_profile_fragment(profile: ProfileConfig, workspace: WorkspaceManifest) -> ProfileConfig:
    """Merge the workspace's fragment for this profile name into the profile.

    Fragment defines and exclusions are appended after the profile's own,
    keeping first occurrence order and dropping duplicates.

    Args:
        profile: Resolved profile
        workspace: Workspace manifest with optional [profile.<name>] tables

    Returns:
        The merged profile, or the input profile when no fragment matches
    """
    fragment = workspace.profiles.get(profile.name)
    if fragment is None:
        return profile
    return ProfileConfig(
        name=profile.name,
        defines=_dedup(list(profile.defines) + list(fragment.defines)),
        exclude=_dedup(list(profile.exclude) + list(fragment.exclude)),
    )


def format_define_flags(defines: List[str]) -> List[str]:
    """Render defines as -D flags, keeping order and dropping duplicates."""
    return [f"-D{define}" for define in _dedup(defines)]

