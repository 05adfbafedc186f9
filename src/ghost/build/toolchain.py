"""Toolchain and profile resolution.

This module produces the concrete compiler/archiver/linker recipe used for
one invocation. Exactly one source wins, in this order:

    1. An explicit profile file (``ghost build --profile path``)
    2. The file named by the GHOST_PROFILE environment variable
    3. The built-in default (clang/clang++/ar)

Profile file format (TOML)::

    [toolchain]
    cc = "gcc"
    cxx = "g++"
    ar = "ar"
    cflags = ["-Wall"]
    cxxflags = ["-std=c++17"]
    link_mode = "driver"     # driver | ld | msvc
    fuse_ld = "lld"

    [profile]                # optional
    name = "release"
    defines = ["NDEBUG"]

    [env]                    # optional, recorded for future use
    CC_WRAPPER = "ccache"

Link mode is stored as a plain string so hook scripts can change it; it is
turned into a closed LinkMode variant by resolve_link_mode() exactly once
per invocation.
"""

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from ghost.errors import GhostError

from .build_profiles import (
    ENV_PROFILE_NAME,
    EXPLICIT_PROFILE_NAME,
    ProfileConfig,
    default_profile,
)
from .serialization import optional_str_field, str_field, str_list_field

logger = logging.getLogger(__name__)

PROFILE_ENV_VAR = "GHOST_PROFILE"


class ProfileError(GhostError):
    """Raised when a requested toolchain profile cannot be read or parsed."""

    pass


@dataclass(frozen=True)
class ToolchainConfig:
    """Compiler/linker invocation recipe.

    Attributes:
        cc: C compiler
        cxx: C++ compiler
        ar: Archiver (a path ending in "libtool" selects the libtool rule)
        rc: Optional resource compiler
        sysroot: Optional sysroot passed as --sysroot
        target_triple: Optional target triple passed as --target
        cflags: Flags for C translation units
        cxxflags: Flags for C++ translation units
        ldflags: Flags appended to every executable link
        arflags: Archiver flags
        libdirs: Extra library search directories
        libs: Extra libraries ("m" and "-lm" are both accepted)
        link_mode: "driver", "ld" or "msvc" (anything else behaves like driver)
        link: Linker override used by the "ld" mode
        link_c: C driver used for linking (recorded)
        link_cxx: C++ driver used by "driver" mode and linker used by "msvc" mode
        fuse_ld: Linker selected through -fuse-ld in "driver" mode
    """

    cc: str
    cxx: str
    ar: str
    rc: Optional[str] = None
    sysroot: Optional[str] = None
    target_triple: Optional[str] = None
    cflags: List[str] = field(default_factory=list)
    cxxflags: List[str] = field(default_factory=list)
    ldflags: List[str] = field(default_factory=list)
    arflags: List[str] = field(default_factory=lambda: ["rcs"])
    libdirs: List[str] = field(default_factory=list)
    libs: List[str] = field(default_factory=list)
    link_mode: str = "driver"
    link: Optional[str] = None
    link_c: Optional[str] = None
    link_cxx: Optional[str] = None
    fuse_ld: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolchainConfig":
        """
        Parse a toolchain from a plain dictionary.

        Args:
            data: [toolchain] table or the toolchain entry of a hook context

        Returns:
            ToolchainConfig instance

        Raises:
            ValueError: If cc/cxx/ar are missing or a field has the wrong type
        """
        for key in ("cc", "cxx", "ar"):
            if key not in data:
                raise ValueError(f"toolchain.{key} missing")
        return cls(
            cc=str_field(data, "cc", "toolchain"),
            cxx=str_field(data, "cxx", "toolchain"),
            ar=str_field(data, "ar", "toolchain"),
            rc=optional_str_field(data, "rc", "toolchain"),
            sysroot=optional_str_field(data, "sysroot", "toolchain"),
            target_triple=optional_str_field(data, "target_triple", "toolchain"),
            cflags=str_list_field(data, "cflags", "toolchain"),
            cxxflags=str_list_field(data, "cxxflags", "toolchain"),
            ldflags=str_list_field(data, "ldflags", "toolchain"),
            arflags=str_list_field(data, "arflags", "toolchain", default=["rcs"]),
            libdirs=str_list_field(data, "libdirs", "toolchain"),
            libs=str_list_field(data, "libs", "toolchain"),
            link_mode=optional_str_field(data, "link_mode", "toolchain") or "driver",
            link=optional_str_field(data, "link", "toolchain"),
            link_c=optional_str_field(data, "link_c", "toolchain"),
            link_cxx=optional_str_field(data, "link_cxx", "toolchain"),
            fuse_ld=optional_str_field(data, "fuse_ld", "toolchain"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON/hook compatible dictionary."""
        return {
            "cc": self.cc,
            "cxx": self.cxx,
            "ar": self.ar,
            "rc": self.rc,
            "sysroot": self.sysroot,
            "target_triple": self.target_triple,
            "cflags": list(self.cflags),
            "cxxflags": list(self.cxxflags),
            "ldflags": list(self.ldflags),
            "arflags": list(self.arflags),
            "libdirs": list(self.libdirs),
            "libs": list(self.libs),
            "link_mode": self.link_mode,
            "link": self.link,
            "link_c": self.link_c,
            "link_cxx": self.link_cxx,
            "fuse_ld": self.fuse_ld,
        }

    def target_flags(self) -> List[str]:
        """Flags selecting the target and sysroot, shared by compile and driver link."""
        flags = []
        if self.target_triple:
            flags.append(f"--target={self.target_triple}")
        if self.sysroot:
            flags.append(f"--sysroot={self.sysroot}")
        return flags

    @property
    def uses_libtool(self) -> bool:
        """True when the archiver is Apple libtool rather than ar."""
        return self.ar.endswith("libtool")


def default_toolchain() -> ToolchainConfig:
    """Return the built-in toolchain. Never fails."""
    return ToolchainConfig(
        cc="clang",
        cxx="clang++",
        ar="ar",
        cflags=["-Wall", "-Wextra"],
        cxxflags=["-std=c++20", "-O2"],
        ldflags=[],
        arflags=["rcs"],
        libdirs=["build/lib"],
        libs=[],
        link_mode="driver",
        link_c="clang",
        link_cxx="clang++",
    )


# Link modes: one case per mode, each carrying only what it needs.


@dataclass(frozen=True)
class DriverLink:
    """Link through the compiler driver, optionally choosing the linker with -fuse-ld."""

    linker: str
    fuse_ld: Optional[str] = None
    target_flags: Tuple[str, ...] = ()

    rule = "link_exe"

    @property
    def linkflags(self) -> List[str]:
        flags = list(self.target_flags)
        if self.fuse_ld:
            flags.append(f"-fuse-ld={self.fuse_ld}")
        return flags


@dataclass(frozen=True)
class RawLink:
    """Link with a raw linker binary such as ld or ld.lld."""

    linker: str

    rule = "link_exe"

    @property
    def linkflags(self) -> List[str]:
        return []


@dataclass(frozen=True)
class MsvcLink:
    """Link with a Microsoft-style linker (/OUT:)."""

    linker: str

    rule = "link_exe_msvc"

    @property
    def linkflags(self) -> List[str]:
        return []


LinkMode = Union[DriverLink, RawLink, MsvcLink]


def resolve_link_mode(toolchain: ToolchainConfig) -> LinkMode:
    """
    Turn the toolchain's link_mode string into a LinkMode.

    Args:
        toolchain: Resolved toolchain

    Returns:
        DriverLink for "driver" (link_cxx, else cxx), RawLink for "ld"
        (link, else "ld"), MsvcLink for "msvc" (link_cxx, else "link").
        Unknown modes fall back to DriverLink with the plain C++ compiler.
    """
    mode = toolchain.link_mode
    if mode == "driver":
        return DriverLink(
            linker=toolchain.link_cxx or toolchain.cxx,
            fuse_ld=toolchain.fuse_ld,
            target_flags=tuple(toolchain.target_flags()),
        )
    if mode == "ld":
        return RawLink(linker=toolchain.link or "ld")
    if mode == "msvc":
        return MsvcLink(linker=toolchain.link_cxx or "link")

    logger.warning("Unknown link_mode %r, falling back to the compiler driver", mode)
    return DriverLink(linker=toolchain.cxx, target_flags=tuple(toolchain.target_flags()))


def load_profile_file(path: Path, default_name: str) -> Tuple[ToolchainConfig, ProfileConfig]:
    """
    Load a toolchain profile file.

    Args:
        path: Path to the TOML profile file
        default_name: Profile name used when the file has no [profile].name

    Returns:
        (ToolchainConfig, ProfileConfig)

    Raises:
        ProfileError: If the file cannot be read, is not valid TOML, or has no valid [toolchain]
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ProfileError(f"{path}: cannot read profile: {e}") from e
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ProfileError(f"{path}: invalid TOML: {e}") from e

    toolchain_table = data.get("toolchain")
    if not isinstance(toolchain_table, dict):
        raise ProfileError(f"{path}: missing [toolchain] table")

    profile_table = data.get("profile", {})
    if not isinstance(profile_table, dict):
        raise ProfileError(f"{path}: [profile] must be a table")

    try:
        toolchain = ToolchainConfig.from_dict(toolchain_table)
        profile = ProfileConfig.from_dict({"name": default_name, **profile_table})
    except ValueError as e:
        raise ProfileError(f"{path}: {e}") from e

    logger.debug("Loaded profile %s from %s", profile.name, path)
    return toolchain, profile


def resolve_toolchain(
    profile_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Tuple[ToolchainConfig, ProfileConfig]:
    """
    Resolve the toolchain and profile for this invocation.

    Args:
        profile_path: Explicit profile file, wins over everything else
        environ: Environment mapping (defaults to os.environ)

    Returns:
        (ToolchainConfig, ProfileConfig)

    Raises:
        ProfileError: If an explicitly requested or environment-selected profile is unusable
    """
    env = os.environ if environ is None else environ

    if profile_path is not None:
        return load_profile_file(Path(profile_path), EXPLICIT_PROFILE_NAME)

    env_path = env.get(PROFILE_ENV_VAR)
    if env_path:
        return load_profile_file(Path(env_path), ENV_PROFILE_NAME)

    return default_toolchain(), default_profile()
