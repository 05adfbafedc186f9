"""Build Context - Aggregated, hook-visible build configuration.

This module defines BuildContext, the single configuration object that flows
from the resolver through the hook engine into the graph compiler.

Design:
    BuildContext is created once per invocation by create_build_context()
    from host facts (OS, working directories), the resolved toolchain and the
    resolved profile. It is immutable; the hook engine replaces it wholesale
    by serializing it with to_dict(), letting the hook script mutate the
    plain dictionaries, and rebuilding it with from_dict().
"""

import os
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .build_profiles import ProfileConfig
from .serialization import str_field, str_list_field
from .toolchain import ToolchainConfig

ENV_TAG_VAR = "GHOST_ENV"
DEFAULT_ENV_TAG = "dev"

DEFAULT_DISCOVER_ROOTS = ["src"]
DEFAULT_DISCOVER_INCLUDE = ["**/*.c", "**/*.cc", "**/*.cpp", "**/*.cxx"]


def host_os() -> str:
    """Return the host OS tag: "windows", "macos" or "linux"."""
    if sys.platform == "win32":
        return "windows"
    if sys.platform == "darwin":
        return "macos"
    return "linux"


@dataclass(frozen=True)
class BuildContext:
    """Full build context, visible to and replaceable by hook scripts.

    Attributes:
        os: Host OS tag ("windows", "macos", "linux")
        env: Environment tag from GHOST_ENV (default "dev")
        project_root: Directory ghost was started for
        workspace_root: Directory holding the workspace manifest and hook script
        toolchain: Resolved toolchain
        profile: Resolved profile
        discover_roots: Default discovery roots for discovery packages
        discover_include: Default include globs for discovery packages
        discover_exclude: Exclude globs added to every discovery call
        log: Append-only messages recorded by hooks
    """

    os: str
    env: str
    project_root: str
    workspace_root: str
    toolchain: ToolchainConfig
    profile: ProfileConfig
    discover_roots: List[str] = field(default_factory=lambda: list(DEFAULT_DISCOVER_ROOTS))
    discover_include: List[str] = field(default_factory=lambda: list(DEFAULT_DISCOVER_INCLUDE))
    discover_exclude: List[str] = field(default_factory=list)
    log: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BuildContext":
        """
        Rebuild a context from its dictionary form.

        Args:
            data: Dictionary produced by to_dict(), possibly mutated by a hook

        Returns:
            BuildContext instance

        Raises:
            ValueError: If the dictionary is missing tables or a field has the wrong type
        """
        if not isinstance(data, dict):
            raise ValueError(f"ctx must be a dict, got {type(data).__name__}")
        toolchain = data.get("toolchain")
        profile = data.get("profile")
        if not isinstance(toolchain, dict):
            raise ValueError("ctx.toolchain must be a dict")
        if not isinstance(profile, dict):
            raise ValueError("ctx.profile must be a dict")

        return cls(
            os=str_field(data, "os", "ctx"),
            env=str_field(data, "env", "ctx"),
            project_root=str_field(data, "project_root", "ctx"),
            workspace_root=str_field(data, "workspace_root", "ctx"),
            toolchain=ToolchainConfig.from_dict(toolchain),
            profile=ProfileConfig.from_dict(profile),
            discover_roots=str_list_field(data, "discover_roots", "ctx"),
            discover_include=str_list_field(data, "discover_include", "ctx"),
            discover_exclude=str_list_field(data, "discover_exclude", "ctx"),
            log=str_list_field(data, "log", "ctx"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to plain dictionaries and lists, safe to hand to a script."""
        return {
            "os": self.os,
            "env": self.env,
            "project_root": self.project_root,
            "workspace_root": self.workspace_root,
            "toolchain": self.toolchain.to_dict(),
            "profile": self.profile.to_dict(),
            "discover_roots": list(self.discover_roots),
            "discover_include": list(self.discover_include),
            "discover_exclude": list(self.discover_exclude),
            "log": list(self.log),
        }

    def with_profile(self, profile: ProfileConfig) -> "BuildContext":
        """Return a copy with the profile replaced."""
        return replace(self, profile=profile)

    @property
    def workspace_path(self) -> Path:
        """workspace_root as a Path."""
        return Path(self.workspace_root)


def create_build_context(
    toolchain: ToolchainConfig,
    profile: ProfileConfig,
    workspace_root: Path,
    project_root: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> BuildContext:
    """
    Assemble the initial build context from host facts and resolved configuration.

    Args:
        toolchain: Resolved toolchain
        profile: Resolved profile
        workspace_root: Workspace root directory
        project_root: Project directory (defaults to workspace_root)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        A fresh BuildContext with discovery defaults and an empty log
    """
    env = os.environ if environ is None else environ
    workspace = Path(workspace_root).resolve()
    project = Path(project_root).resolve() if project_root is not None else workspace
    return BuildContext(
        os=host_os(),
        env=env.get(ENV_TAG_VAR) or DEFAULT_ENV_TAG,
        project_root=str(project),
        workspace_root=str(workspace),
        toolchain=toolchain,
        profile=profile,
    )
