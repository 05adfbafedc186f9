"""Source discovery.

Expands a package's declared root directories into a concrete, sorted file
list using include/exclude glob matching, and checks explicit source lists
against the filesystem.

Matching rules:
    - Patterns use gitwildmatch syntax (``**/*.c``, ``**/vendor/**``).
    - Paths are matched relative to the package root with forward slashes.
    - Exclude wins over include.
    - ``.git``, ``build`` and ``.ghost`` directories are always excluded.

Every discovery call writes its result to ``<package>/.ghost/files.json``.
That file is for inspection only and is never read back.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from pathspec import PathSpec

from ghost.errors import GhostError

logger = logging.getLogger(__name__)

CACHE_DIR_NAME = ".ghost"
CACHE_FILE_NAME = "files.json"
INFRASTRUCTURE_EXCLUDES = ("**/.git/**", "**/build/**", "**/.ghost/**")

C_EXTENSIONS = (".c",)
CXX_EXTENSIONS = (".cc", ".cpp", ".cxx")


class SourceDiscoveryError(GhostError):
    """Raised when discovery patterns are invalid or the cache cannot be written."""

    pass


class DiscoveryMismatchError(GhostError):
    """Raised when declared source files are missing on disk.

    Attributes:
        missing: Package name -> list of missing package-relative paths
    """

    exit_code = 2

    def __init__(self, missing: Dict[str, List[str]]):
        self.missing = missing
        total = sum(len(paths) for paths in missing.values())
        super().__init__(f"{total} declared source file(s) missing in {len(missing)} package(s)")

    def format_report(self) -> List[str]:
        """Itemized report, one header per package and one line per missing path."""
        lines = []
        for package, paths in self.missing.items():
            lines.append(f"{package}: missing {len(paths)} file(s):")
            lines.extend(f"  - {path}" for path in paths)
        return lines


@dataclass(frozen=True)
class FileList:
    """Discovery result: sorted, deduplicated package-relative paths."""

    files: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[str]]:
        return {"files": list(self.files)}

    def __len__(self) -> int:
        return len(self.files)


def is_compile_source(path: str) -> bool:
    """True if the path is a C or C++ translation unit."""
    return path.endswith(C_EXTENSIONS + CXX_EXTENSIONS)


def is_c_source(path: str) -> bool:
    """True if the path is a C (not C++) translation unit."""
    return path.endswith(C_EXTENSIONS)


def _build_spec(patterns: Iterable[str]) -> PathSpec:
    try:
        return PathSpec.from_lines("gitwildmatch", list(patterns))
    except ValueError as e:
        raise SourceDiscoveryError(f"invalid glob pattern: {e}") from e


def _relative_posix(path: Path, pkg_root: Path) -> str:
    try:
        rel = path.relative_to(pkg_root)
    except ValueError:
        rel = Path(os.path.relpath(path, pkg_root))
    return rel.as_posix().replace("\\", "/")


def write_file_list_cache(pkg_root: Path, file_list: FileList) -> Path:
    """
    Persist a discovery result for inspection.

    Args:
        pkg_root: Package root directory
        file_list: Discovery result

    Returns:
        Path of the written cache file
    """
    cache_dir = pkg_root / CACHE_DIR_NAME
    cache_file = cache_dir / CACHE_FILE_NAME
    try:
        cache_dir.mkdir(parents=True, exist_ok=True)
        cache_file.write_text(json.dumps(file_list.to_dict(), indent=2), encoding="utf-8")
    except OSError as e:
        raise SourceDiscoveryError(f"cannot write discovery cache {cache_file}: {e}") from e
    return cache_file


def discover(
    pkg_root: Path,
    roots: Sequence[str],
    include: Sequence[str],
    exclude: Sequence[str],
    extra_excludes: Sequence[str] = (),
    write_cache: bool = True,
) -> FileList:
    """
    Walk the package's roots and return the matching files.

    Args:
        pkg_root: Package root; results are relative to it
        roots: Directories to walk, relative to pkg_root (missing ones are skipped)
        include: Glob patterns a file must match
        exclude: Glob patterns that remove a file even if it matches include
        extra_excludes: Additional exclusions (e.g. a custom build directory)
        write_cache: Write the result to <pkg_root>/.ghost/files.json

    Returns:
        FileList sorted lexicographically

    Raises:
        SourceDiscoveryError: On invalid patterns or an unwritable cache
    """
    pkg_root = Path(pkg_root)
    include_spec = _build_spec(include)
    exclude_spec = _build_spec(list(exclude) + list(INFRASTRUCTURE_EXCLUDES) + list(extra_excludes))

    found = set()
    for root in roots:
        base = pkg_root / root
        if not base.is_dir():
            logger.debug("Discovery root %s does not exist, skipping", base)
            continue
        for dirpath, _dirnames, filenames in os.walk(base):
            for filename in filenames:
                full = Path(dirpath) / filename
                if not full.is_file():
                    continue
                rel = _relative_posix(full, pkg_root)
                if exclude_spec.match_file(rel):
                    continue
                if include_spec.match_file(rel):
                    found.add(rel)

    file_list = FileList(files=sorted(found))
    logger.debug("Discovered %d file(s) under %s", len(file_list), pkg_root)
    if write_cache:
        write_file_list_cache(pkg_root, file_list)
    return file_list


def find_missing_sources(pkg_root: Path, files: Sequence[str]) -> List[str]:
    """
    Return the declared files that do not exist under pkg_root, in declaration order.

    Args:
        pkg_root: Package root directory
        files: Declared package-relative source paths
    """
    return [f for f in files if not (Path(pkg_root) / f).exists()]


def resolve_package_sources(
    pkg_root: Path,
    files: Sequence[str],
    roots: Sequence[str],
    include: Sequence[str],
    exclude: Sequence[str],
    extra_excludes: Sequence[str] = (),
    package_name: Optional[str] = None,
) -> List[str]:
    """
    Resolve a package's source list from its explicit files or by discovery.

    Args:
        pkg_root: Package root directory
        files: Explicit source list (wins when non-empty)
        roots: Discovery roots used when files is empty
        include: Discovery include patterns
        exclude: Discovery exclude patterns
        extra_excludes: Additional discovery exclusions
        package_name: Name used in the mismatch report

    Returns:
        Package-relative source paths; explicit files keep declaration
        order with repeats dropped

    Raises:
        DiscoveryMismatchError: If an explicit file is missing on disk
    """
    if files:
        unique = list(dict.fromkeys(files))
        missing = find_missing_sources(pkg_root, unique)
        if missing:
            raise DiscoveryMismatchError({package_name or str(pkg_root): missing})
        return unique
    return discover(pkg_root, roots, include, exclude, extra_excludes=extra_excludes).files
