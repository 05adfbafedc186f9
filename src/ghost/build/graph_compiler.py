"""
Build graph compiler.

Turns the validated manifests of a workspace into build edges and
compilation database entries. Members are processed strictly in the order
the workspace manifest lists them:

    1. Validate the package manifest
    2. Resolve its sources (explicit list or discovery)
    3. One compile edge and one compile command per C/C++ source
    4. An archive edge for static libraries, a link edge for executables

Static libraries are linked into every executable that comes after them in
member order. The list of built libraries is passed explicitly from one
package to the next; nothing here keeps state between calls.

Paths written into edges:
    - outputs are relative to the workspace root (ninja runs there)
    - inputs of compile edges are absolute source paths
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from ghost.config.manifest import (
    PackageKind,
    PackageManifest,
    PackageValidationError,
    ValidationReason,
    WorkspaceManifest,
    load_package,
    manifest_path,
    validate_package,
)

from .build_context import BuildContext
from .build_profiles import format_define_flags
from .dependency_meta import GENERATED_DIR_NAME, DependencyMeta
from .source_scanner import discover, is_c_source, is_compile_source, resolve_package_sources
from .toolchain import LinkMode, resolve_link_mode

logger = logging.getLogger(__name__)

Variables = List[Tuple[str, str]]


@dataclass(frozen=True)
class BuildEdge:
    """One build statement: outputs produced from inputs by a rule.

    Attributes:
        rule: Rule name from the fixed prelude
        outputs: Output paths
        inputs: Input paths
        variables: Per-edge variable overrides, in emission order
    """

    rule: str
    outputs: List[str]
    inputs: List[str]
    variables: Variables = field(default_factory=list)


@dataclass(frozen=True)
class CompileCommand:
    """One compilation database entry."""

    directory: str
    file: str
    command: str
    output: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "directory": self.directory,
            "file": self.file,
            "command": self.command,
            "output": self.output,
        }


@dataclass
class PackageGraph:
    """Edges and compile commands produced for one package.

    Attributes:
        name: Package name
        kind: Package kind
        edges: Compile edges followed by the archive or link edge, if any
        compile_commands: One entry per compile edge
        objects: Object paths, ordered by source path
        library: Archive produced by a static package
        executable: Binary produced by an exe package
    """

    name: str
    kind: str
    edges: List[BuildEdge] = field(default_factory=list)
    compile_commands: List[CompileCommand] = field(default_factory=list)
    objects: List[str] = field(default_factory=list)
    library: Optional[str] = None
    executable: Optional[str] = None


@dataclass
class BuildGraph:
    """Whole-workspace build description.

    Attributes:
        variables: Global variables, in emission order
        edges: All edges, in production order
        compile_commands: All compile commands, in edge order
        built_libraries: Archives in member declaration order
        packages: Per-package results, in member declaration order
    """

    variables: Variables = field(default_factory=list)
    edges: List[BuildEdge] = field(default_factory=list)
    compile_commands: List[CompileCommand] = field(default_factory=list)
    built_libraries: List[str] = field(default_factory=list)
    packages: List[PackageGraph] = field(default_factory=list)


def object_path(build_dir: str, package: str, source: str) -> str:
    """Object file for a source: <build_dir>/obj/<pkg>/<source with / \\ . as _>.o"""
    mangled = source.replace("/", "_").replace("\\", "_").replace(".", "_")
    return f"{build_dir}/obj/{package}/{mangled}.o"


def library_path(build_dir: str, package: str) -> str:
    return f"{build_dir}/lib/lib{package}.a"


def executable_path(build_dir: str, package: str) -> str:
    return f"{build_dir}/bin/{package}"


def _dedup(items: Sequence[str]) -> List[str]:
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def format_libdirs(dirs: Sequence[str]) -> str:
    return " ".join(f"-L{d}" for d in _dedup(dirs))


def format_libs(libs: Sequence[str]) -> str:
    return " ".join(lib if lib.startswith("-l") else f"-l{lib}" for lib in libs)


def global_variables(ctx: BuildContext, build_dir: str, link_mode: Optional[LinkMode] = None) -> Variables:
    """
    Compute the global variables written after the rule prelude.

    Args:
        ctx: Build context after hooks
        build_dir: Build directory relative to the workspace root
        link_mode: Already resolved link mode (resolved from ctx when omitted)

    Returns:
        Ordered (name, value) pairs
    """
    toolchain = ctx.toolchain
    if link_mode is None:
        link_mode = resolve_link_mode(toolchain)
    target_flags = toolchain.target_flags()

    libdirs = list(toolchain.libdirs)
    default_libdir = f"{build_dir}/lib"
    if default_libdir not in libdirs:
        libdirs.append(default_libdir)

    return [
        ("builddir", build_dir),
        ("cc", toolchain.cc),
        ("cxx", toolchain.cxx),
        ("ar", toolchain.ar),
        ("arflags", " ".join(toolchain.arflags)),
        ("cflags", " ".join(target_flags + list(toolchain.cflags))),
        ("cxxflags", " ".join(target_flags + list(toolchain.cxxflags))),
        ("ldflags", " ".join(toolchain.ldflags)),
        ("libdirs", format_libdirs(libdirs)),
        ("libs", format_libs(toolchain.libs)),
        ("link", link_mode.linker),
        ("linkflags", " ".join(link_mode.linkflags)),
    ]


def resolve_include_flags(
    pkg_root: Path,
    pkg: PackageManifest,
    dep_meta: Dict[str, DependencyMeta],
) -> str:
    """
    Compute the include flags for every compile edge of a package.

    Order of collection: own include/, src/ and .gen/ (when present), own
    public then private include dirs, then for each direct dependency with
    metadata its public include dirs and its include/ and .gen/ (when
    present). Private include dirs of dependencies are never visible.

    Args:
        pkg_root: Absolute package root
        pkg: Package manifest
        dep_meta: Name -> DependencyMeta table; unknown names add nothing

    Returns:
        -I"<path>" flags with ".." segments collapsed, sorted, deduplicated,
        space-joined
    """
    dirs: List[Path] = []
    for conventional in ("include", "src", GENERATED_DIR_NAME):
        candidate = pkg_root / conventional
        if candidate.exists():
            dirs.append(candidate)

    dirs.extend(pkg_root / d for d in pkg.public.include_dirs)
    dirs.extend(pkg_root / d for d in pkg.private.include_dirs)

    for dep_name in pkg.deps.direct:
        meta = dep_meta.get(dep_name)
        if meta is None:
            continue
        dirs.extend(meta.include_dirs())

    flags = sorted({f'-I"{os.path.normpath(d)}"' for d in dirs})
    return " ".join(flags)


def resolve_define_flags(
    ctx: BuildContext,
    pkg: PackageManifest,
    dep_meta: Dict[str, DependencyMeta],
) -> str:
    """
    Compute the -D flags for every compile edge of a package.

    Profile defines, then the package's public and private defines, then
    the public defines of each direct dependency. First occurrence wins.
    """
    defines = list(ctx.profile.defines) + list(pkg.public.defines) + list(pkg.private.defines)
    for dep_name in pkg.deps.direct:
        meta = dep_meta.get(dep_name)
        if meta is not None:
            defines.extend(meta.public_defines)
    return " ".join(format_define_flags(defines))


def _discovery_extra_excludes(pkg_root: Path, workspace_root: Path, build_dir: str) -> List[str]:
    build_abs = (workspace_root / build_dir).resolve()
    try:
        rel = build_abs.relative_to(pkg_root)
    except ValueError:
        return []
    if not rel.parts:
        return []
    return [f"{rel.as_posix()}/**"]


def discover_sources(ctx: BuildContext, pkg_root: Path, pkg: PackageManifest, build_dir: str) -> List[str]:
    """Expand a discovery package, refreshing its .ghost/files.json cache.

    Package roots/include patterns fall back to the context's discovery
    defaults. The package's exclusions are followed by the context's and
    the profile's, and a build directory inside the package is skipped.
    """
    sources = pkg.sources
    return discover(
        pkg_root,
        roots=sources.roots or ctx.discover_roots,
        include=sources.include or ctx.discover_include,
        exclude=list(sources.exclude) + list(ctx.discover_exclude) + list(ctx.profile.exclude),
        extra_excludes=_discovery_extra_excludes(pkg_root, ctx.workspace_path, build_dir),
    ).files


def resolve_sources(
    ctx: BuildContext,
    pkg_root: Path,
    pkg: PackageManifest,
    build_dir: str,
) -> List[str]:
    """
    Resolve a package's source list.

    Explicit files are checked against the filesystem. Discovery packages
    use their own roots/include patterns, falling back to the context's
    discovery defaults, with the context's and the profile's exclusions
    appended to the package's own.

    Raises:
        DiscoveryMismatchError: If an explicit file does not exist
        PackageValidationError: EMPTY_SOURCES if discovery finds nothing
    """
    sources = pkg.sources
    if sources.files:
        return resolve_package_sources(pkg_root, sources.files, [], [], [], package_name=pkg.name)

    files = discover_sources(ctx, pkg_root, pkg, build_dir)
    if not files:
        raise PackageValidationError(
            pkg.name,
            ValidationReason.EMPTY_SOURCES,
            "source discovery found no files",
        )
    return files


def compile_package(
    ctx: BuildContext,
    member_root: Path,
    pkg: PackageManifest,
    dep_meta: Dict[str, DependencyMeta],
    build_dir: str,
    built_libraries: Sequence[str],
    link_mode: Optional[LinkMode] = None,
) -> PackageGraph:
    """
    Produce the edges and compile commands for one package.

    Args:
        ctx: Build context after hooks
        member_root: Absolute package root
        pkg: Package manifest
        dep_meta: Name -> DependencyMeta table
        build_dir: Build directory relative to the workspace root
        built_libraries: Archives produced by earlier members, in member order
        link_mode: Already resolved link mode (resolved from ctx when omitted)

    Returns:
        PackageGraph; ``library`` is set for static packages and must be
        appended to built_libraries by the caller

    Raises:
        PackageValidationError: Unsupported kind, empty sources, or no compilable sources
        DiscoveryMismatchError: If an explicit source file is missing
    """
    validate_package(pkg)
    workspace_root = ctx.workspace_path
    sources = resolve_sources(ctx, member_root, pkg, build_dir)

    includes = resolve_include_flags(member_root, pkg, dep_meta)
    defines = resolve_define_flags(ctx, pkg, dep_meta)
    toolchain = ctx.toolchain
    target_flags = toolchain.target_flags()

    graph = PackageGraph(name=pkg.name, kind=pkg.kind)
    objects_by_source: Dict[str, str] = {}

    for source in sources:
        if not is_compile_source(source):
            continue
        if is_c_source(source):
            rule, compiler, flags = "cc", toolchain.cc, toolchain.cflags
        else:
            rule, compiler, flags = "cxx", toolchain.cxx, toolchain.cxxflags

        obj = object_path(build_dir, pkg.name, source)
        src_abs = str((member_root / source).resolve())
        obj_abs = str(workspace_root / obj)

        variables: Variables = [("includes", includes)]
        if defines:
            variables.append(("defines", defines))
        graph.edges.append(BuildEdge(rule=rule, outputs=[obj], inputs=[src_abs], variables=variables))

        parts = [compiler, "-MMD", "-MF", f"{obj}.d", *target_flags, *flags, defines, includes]
        parts += ["-c", src_abs, "-o", obj_abs]
        graph.compile_commands.append(
            CompileCommand(
                directory=str(workspace_root),
                file=src_abs,
                command=" ".join(p for p in parts if p),
                output=obj_abs,
            )
        )
        objects_by_source[source] = obj

    if not objects_by_source:
        raise PackageValidationError(
            pkg.name,
            ValidationReason.NO_COMPILABLE_SOURCES,
            "no compilable sources (.c, .cc, .cpp, .cxx)",
        )

    graph.objects = [objects_by_source[s] for s in sorted(objects_by_source)]

    kind = PackageKind(pkg.kind)
    if kind is PackageKind.STATIC:
        out = library_path(build_dir, pkg.name)
        rule = "libtool_static" if toolchain.uses_libtool else "ar"
        graph.edges.append(BuildEdge(rule=rule, outputs=[out], inputs=list(graph.objects)))
        graph.library = out
    elif kind is PackageKind.EXE:
        out = executable_path(build_dir, pkg.name)
        rule = (link_mode or resolve_link_mode(toolchain)).rule
        inputs = list(graph.objects) + list(built_libraries)
        graph.edges.append(
            BuildEdge(
                rule=rule,
                outputs=[out],
                inputs=inputs,
                variables=_link_overrides(ctx, member_root, pkg, build_dir),
            )
        )
        graph.executable = out
    else:
        logger.debug("Package %s of kind %s produces no archive or link edge", pkg.name, pkg.kind)

    return graph


def _link_overrides(ctx: BuildContext, pkg_root: Path, pkg: PackageManifest, build_dir: str) -> Variables:
    """Per-edge libdirs/libs for an executable that declares its own link requirements."""
    link_dirs = list(pkg.public.link_dirs) + list(pkg.private.link_dirs)
    link_libs = list(pkg.public.link_libs) + list(pkg.private.link_libs)
    overrides: Variables = []
    if link_dirs:
        dirs = list(ctx.toolchain.libdirs) + [f"{build_dir}/lib"] + [str(pkg_root / d) for d in link_dirs]
        overrides.append(("libdirs", format_libdirs(dirs)))
    if link_libs:
        overrides.append(("libs", format_libs(list(ctx.toolchain.libs) + link_libs)))
    return overrides


def compile_workspace(
    ctx: BuildContext,
    workspace: WorkspaceManifest,
    dep_meta: Dict[str, DependencyMeta],
    workspace_root: Path,
) -> BuildGraph:
    """
    Compile every workspace member, in declaration order, into one BuildGraph.

    Args:
        ctx: Build context after hooks
        workspace: Workspace manifest
        dep_meta: Name -> DependencyMeta table
        workspace_root: Absolute workspace root

    Returns:
        BuildGraph with global variables, all edges and all compile commands

    Raises:
        ManifestParseError: If a member manifest cannot be loaded
        PackageValidationError: If a member fails validation
        DiscoveryMismatchError: If a member's explicit source is missing
    """
    workspace_root = Path(workspace_root)
    build_dir = workspace.build_dir
    link_mode = resolve_link_mode(ctx.toolchain)
    graph = BuildGraph(variables=global_variables(ctx, build_dir, link_mode))

    for member in workspace.members:
        member_root = (workspace_root / member).resolve()
        pkg = load_package(manifest_path(member_root))
        pkg_graph = compile_package(
            ctx, member_root, pkg, dep_meta, build_dir, graph.built_libraries, link_mode=link_mode
        )
        graph.edges.extend(pkg_graph.edges)
        graph.compile_commands.extend(pkg_graph.compile_commands)
        if pkg_graph.library is not None:
            graph.built_libraries = graph.built_libraries + [pkg_graph.library]
        graph.packages.append(pkg_graph)
        logger.debug("Compiled %s: %d edge(s)", pkg.name, len(pkg_graph.edges))

    return graph
