"""
Type-safe workspace and package manifest models.

Both manifests are TOML files named ``ghost.build``. The workspace manifest
lives in the workspace root and lists member directories; each member
directory holds its own package manifest.

Workspace manifest::

    [project]
    name = "demo"
    version = "0.1.0"

    [workspace]
    members = ["libs/add", "apps/app"]

    [profile.debug]
    defines = ["TRACE=1"]
    exclude = ["**/bench/**"]

    [build_dir]
    dir = "out"

Package manifest::

    [package]
    name = "add"
    version = "0.1.0"
    type = "static"

    [sources]
    files = ["src/add.c"]

    [public]
    include_dirs = ["include"]

    [deps]
    direct = ["io"]

Parsing and validation are separate steps: a package with an unknown kind
still loads, and is then rejected by validate_package() with its name.
"""

import tomllib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from ghost.errors import GhostError

MANIFEST_FILENAME = "ghost.build"
DEFAULT_BUILD_DIR = "build"


class PackageKind(Enum):
    """Recognized package kinds."""

    STATIC = "static"
    SHARED = "shared"
    INTERFACE = "interface"
    EXE = "exe"
    TEST = "test"

    def __str__(self) -> str:
        return self.value


PACKAGE_KINDS = tuple(kind.value for kind in PackageKind)


class ValidationReason(Enum):
    """Why a package failed validation."""

    UNSUPPORTED_KIND = "unsupported_kind"
    EMPTY_SOURCES = "empty_sources"
    NO_COMPILABLE_SOURCES = "no_compilable_sources"


class ManifestParseError(GhostError):
    """Raised when a manifest cannot be read or does not have the expected shape."""

    def __init__(self, path: Path, message: str):
        self.path = path
        super().__init__(f"{path}: {message}")


class PackageValidationError(GhostError):
    """Raised when a parsed package manifest violates a package invariant."""

    def __init__(self, package: str, reason: ValidationReason, message: str):
        self.package = package
        self.reason = reason
        super().__init__(f"package '{package}': {message}")
        if reason is ValidationReason.NO_COMPILABLE_SOURCES:
            self.exit_code = 2


@dataclass(frozen=True)
class ProfileFragment:
    """Named profile fragment from the workspace manifest."""

    defines: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class WorkspaceManifest:
    """Root project descriptor.

    Attributes:
        name: Project name (empty when [project] is absent)
        version: Project version
        members: Member directories relative to the workspace root, in declaration order
        build_dir: Build output directory relative to the workspace root
        profiles: Named profile fragments keyed by profile name
    """

    members: List[str]
    name: str = ""
    version: str = ""
    build_dir: str = DEFAULT_BUILD_DIR
    profiles: Dict[str, ProfileFragment] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: Path) -> "WorkspaceManifest":
        """
        Parse a workspace manifest from its TOML table.

        Args:
            data: Decoded TOML document
            source: Manifest path, used in error messages

        Returns:
            WorkspaceManifest instance

        Raises:
            ManifestParseError: If [workspace].members is missing or fields have the wrong type
        """
        workspace = _table(data, "workspace", source)
        if "members" not in workspace:
            raise ManifestParseError(source, "workspace.members missing")
        members = _str_list(workspace, "members", source)

        project = _table(data, "project", source)
        build_dir_table = _table(data, "build_dir", source)

        profiles = {}
        for profile_name, fragment in _table(data, "profile", source).items():
            if not isinstance(fragment, dict):
                raise ManifestParseError(source, f"profile.{profile_name} must be a table")
            profiles[profile_name] = ProfileFragment(
                defines=_str_list(fragment, "defines", source),
                exclude=_str_list(fragment, "exclude", source),
            )

        return cls(
            members=members,
            name=_str(project, "name", source),
            version=_str(project, "version", source),
            build_dir=_str(build_dir_table, "dir", source) or DEFAULT_BUILD_DIR,
            profiles=profiles,
        )


@dataclass(frozen=True)
class Sources:
    """Source declaration of a package.

    Either an explicit file list, or discovery roots with include/exclude
    glob patterns. Discovery is used only when ``files`` is empty.
    """

    files: List[str] = field(default_factory=list)
    roots: List[str] = field(default_factory=list)
    include: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)

    @property
    def uses_discovery(self) -> bool:
        """True when sources come from the discovery engine instead of an explicit list."""
        return not self.files and bool(self.roots or self.include)


@dataclass(frozen=True)
class Visibility:
    """Public or private usage requirements of a package."""

    include_dirs: List[str] = field(default_factory=list)
    defines: List[str] = field(default_factory=list)
    link_libs: List[str] = field(default_factory=list)
    link_dirs: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Dependencies:
    """Names of the workspace packages a package depends on."""

    direct: List[str] = field(default_factory=list)
    private: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class PackageManifest:
    """One buildable unit.

    Attributes:
        name: Package name, unique within the workspace
        kind: Package kind string as written in the manifest (validated separately)
        version: Optional package version
        sources: Explicit files or discovery patterns
        public: Requirements exported to dependents
        private: Requirements used only by this package
        deps: Direct and private dependency names
    """

    name: str
    kind: str
    version: Optional[str] = None
    sources: Sources = field(default_factory=Sources)
    public: Visibility = field(default_factory=Visibility)
    private: Visibility = field(default_factory=Visibility)
    deps: Dependencies = field(default_factory=Dependencies)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: Path) -> "PackageManifest":
        """
        Parse a package manifest from its TOML table.

        Args:
            data: Decoded TOML document
            source: Manifest path, used in error messages

        Returns:
            PackageManifest instance

        Raises:
            ManifestParseError: If [package] or [sources] is missing or fields have the wrong type
        """
        if "package" not in data:
            raise ManifestParseError(source, "missing [package] table")
        if "sources" not in data:
            raise ManifestParseError(source, "missing [sources] table")

        package = _table(data, "package", source)
        for key in ("name", "type"):
            if key not in package:
                raise ManifestParseError(source, f"package.{key} missing")

        sources = _table(data, "sources", source)
        deps = _table(data, "deps", source)
        version = package.get("version")
        if version is not None and not isinstance(version, str):
            raise ManifestParseError(source, "package.version must be a string")

        return cls(
            name=_str(package, "name", source),
            kind=_str(package, "type", source),
            version=version,
            sources=Sources(
                files=_str_list(sources, "files", source),
                roots=_str_list(sources, "roots", source),
                include=_str_list(sources, "include", source),
                exclude=_str_list(sources, "exclude", source),
            ),
            public=_visibility(_table(data, "public", source), source),
            private=_visibility(_table(data, "private", source), source),
            deps=Dependencies(
                direct=_str_list(deps, "direct", source),
                private=_str_list(deps, "private", source),
            ),
        )


def _table(data: Dict[str, Any], key: str, source: Path) -> Dict[str, Any]:
    value = data.get(key, {})
    if not isinstance(value, dict):
        raise ManifestParseError(source, f"[{key}] must be a table")
    return value


def _str(data: Dict[str, Any], key: str, source: Path) -> str:
    value = data.get(key, "")
    if not isinstance(value, str):
        raise ManifestParseError(source, f"'{key}' must be a string")
    return value


def _str_list(data: Dict[str, Any], key: str, source: Path) -> List[str]:
    value = data.get(key, [])
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ManifestParseError(source, f"'{key}' must be a list of strings")
    return list(value)


def _visibility(data: Dict[str, Any], source: Path) -> Visibility:
    return Visibility(
        include_dirs=_str_list(data, "include_dirs", source),
        defines=_str_list(data, "defines", source),
        link_libs=_str_list(data, "link_libs", source),
        link_dirs=_str_list(data, "link_dirs", source),
    )


def _read_toml(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ManifestParseError(path, f"cannot read manifest: {e}") from e
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ManifestParseError(path, f"invalid TOML: {e}") from e


def manifest_path(directory: Path) -> Path:
    """Return the manifest path inside a workspace or member directory."""
    return directory / MANIFEST_FILENAME


def load_workspace(path: Path) -> WorkspaceManifest:
    """
    Load the workspace (root) manifest.

    Args:
        path: Path to the root ghost.build

    Returns:
        Parsed WorkspaceManifest

    Raises:
        ManifestParseError: If the file cannot be read or parsed
    """
    return WorkspaceManifest.from_dict(_read_toml(path), path)


def load_package(path: Path) -> PackageManifest:
    """
    Load a package manifest.

    Args:
        path: Path to the member's ghost.build

    Returns:
        Parsed PackageManifest (not yet validated)

    Raises:
        ManifestParseError: If the file cannot be read or parsed
    """
    return PackageManifest.from_dict(_read_toml(path), path)


def validate_package(pkg: PackageManifest) -> None:
    """
    Check package invariants before any discovery or graph work.

    Args:
        pkg: Parsed package manifest

    Raises:
        PackageValidationError: UNSUPPORTED_KIND for an unknown package type,
            EMPTY_SOURCES when neither files nor discovery patterns are declared
    """
    if pkg.kind not in PACKAGE_KINDS:
        raise PackageValidationError(
            pkg.name,
            ValidationReason.UNSUPPORTED_KIND,
            f"unsupported package.type: {pkg.kind!r} (expected one of {', '.join(PACKAGE_KINDS)})",
        )
    if not pkg.sources.files and not pkg.sources.uses_discovery:
        raise PackageValidationError(
            pkg.name,
            ValidationReason.EMPTY_SOURCES,
            "sources.files must not be empty (or declare sources.roots/include for discovery)",
        )
