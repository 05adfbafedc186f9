"""Dependency metadata collection.

Before any graph work, every workspace member's manifest is read far enough
to learn its name and what it exports publicly. The result is a flat
name -> DependencyMeta table used for include propagation. It is not a
graph: no ordering, no cycle checks, and a lookup that misses simply adds
nothing.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Sequence

from ghost.config.manifest import load_package, manifest_path

logger = logging.getLogger(__name__)

GENERATED_DIR_NAME = ".gen"


@dataclass(frozen=True)
class DependencyMeta:
    """What one package exports to its dependents.

    Attributes:
        name: Package name
        root: Absolute, canonical package root
        public_includes: Public include directories, relative to root
        public_defines: Public preprocessor defines
    """

    name: str
    root: Path
    public_includes: List[str] = field(default_factory=list)
    public_defines: List[str] = field(default_factory=list)

    def include_dirs(self) -> List[Path]:
        """Include directories visible to dependents, in propagation order.

        Declared public include dirs first, then the conventional include/
        and .gen/ directories when they exist on disk.
        """
        dirs = [Path(os.path.normpath(self.root / d)) for d in self.public_includes]
        for conventional in ("include", GENERATED_DIR_NAME):
            candidate = self.root / conventional
            if candidate.exists():
                dirs.append(candidate)
        return dirs


def collect_dependency_meta(member_roots: Sequence[Path]) -> Dict[str, DependencyMeta]:
    """
    Build the name -> DependencyMeta table for all workspace members.

    Args:
        member_roots: Member directories (relative paths resolve against the cwd)

    Returns:
        Mapping of package name to its metadata; a later member with the
        same name replaces an earlier one

    Raises:
        ManifestParseError: If a member manifest cannot be read or parsed
    """
    table: Dict[str, DependencyMeta] = {}
    for member in member_roots:
        root = Path(member).resolve()
        pkg = load_package(manifest_path(root))
        if pkg.name in table:
            logger.warning("Duplicate package name %r (%s replaces %s)", pkg.name, root, table[pkg.name].root)
        table[pkg.name] = DependencyMeta(
            name=pkg.name,
            root=root,
            public_includes=list(pkg.public.include_dirs),
            public_defines=list(pkg.public.defines),
        )
    return table
