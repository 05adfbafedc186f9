"""
Build orchestration for ghost workspaces.

This module drives the two user-facing flows:

    build     Resolve toolchain -> assemble context -> pre-build hooks ->
              collect dependency metadata -> compile the build graph ->
              write build.ninja and compile_commands.json -> run ninja ->
              after_build hook
    discover  Check every member's sources without generating anything

All expected failures are raised as GhostError subclasses; the CLI maps
them to exit codes.
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from ghost.config.manifest import (
    PackageManifest,
    WorkspaceManifest,
    load_package,
    load_workspace,
    manifest_path,
    validate_package,
)
from ghost.errors import GhostError
from ghost.output import TimedLogger, log_detail, log_edge, log_phase, log_warning
from ghost.subprocess_utils import safe_run

from .build_context import BuildContext, create_build_context
from .build_profiles import apply_profile_fragment
from .dependency_graph import CyclicDependencyError, DependencyGraph
from .dependency_meta import collect_dependency_meta
from .graph_compiler import BuildGraph, compile_workspace, discover_sources
from .hooks import POST_BUILD_HOOKS, PRE_BUILD_HOOKS, hook_script_path, run_hooks
from .ninja_writer import write_build_file, write_compile_commands
from .source_scanner import (
    DiscoveryMismatchError,
    find_missing_sources,
    is_compile_source,
)
from .toolchain import resolve_toolchain

logger = logging.getLogger(__name__)

BUILD_FILE_NAME = "build.ninja"
COMPILE_COMMANDS_NAME = "compile_commands.json"
NINJA_EXECUTABLE = "ninja"


class ExecutorError(GhostError):
    """Raised when ninja cannot be started or reports a failed build."""

    pass


@dataclass
class BuildResult:
    """Result of a build run."""

    build_file: Path
    compile_commands: Path
    edge_count: int
    build_time: float
    ran_executor: bool
    context: BuildContext


@dataclass
class PackageSources:
    """Source check result for one package."""

    name: str
    files: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    discovered: bool = False

    @property
    def compilable(self) -> int:
        return sum(1 for f in self.files if is_compile_source(f))


@dataclass
class DiscoverReport:
    """Result of the discover flow, one entry per member in declaration order."""

    build_dir: str
    packages: List[PackageSources] = field(default_factory=list)

    @property
    def missing(self) -> Dict[str, List[str]]:
        return {p.name: p.missing for p in self.packages if p.missing}

    @property
    def ok(self) -> bool:
        return not self.missing

    def raise_for_missing(self) -> None:
        """Raise DiscoveryMismatchError if any declared file is missing."""
        if self.missing:
            raise DiscoveryMismatchError(self.missing)


def _workspace_manifest(workspace_root: Path) -> WorkspaceManifest:
    return load_workspace(manifest_path(workspace_root))


def _member_root(workspace_root: Path, member: str) -> Path:
    return (workspace_root / member).resolve()


def run_ninja(workspace_root: Path, build_file: Path, verbose: bool = False) -> None:
    """
    Run ninja on the generated build file from the workspace root.

    Args:
        workspace_root: Directory ninja runs in
        build_file: Generated build.ninja
        verbose: Pass -v so ninja prints full command lines

    Raises:
        ExecutorError: If ninja is not installed or exits non-zero
    """
    try:
        rel = build_file.relative_to(workspace_root)
    except ValueError:
        rel = build_file
    cmd = [NINJA_EXECUTABLE, "-f", rel.as_posix()]
    if verbose:
        cmd.append("-v")

    logger.debug("Running %s in %s", " ".join(cmd), workspace_root)
    try:
        result = safe_run(cmd, cwd=str(workspace_root))
    except FileNotFoundError as e:
        raise ExecutorError(f"{NINJA_EXECUTABLE} not found on PATH") from e
    except OSError as e:
        raise ExecutorError(f"cannot run {NINJA_EXECUTABLE}: {e}") from e
    if result.returncode != 0:
        raise ExecutorError(f"{NINJA_EXECUTABLE} failed with exit code {result.returncode}")


class GhostOrchestrator:
    """
    Orchestrates the build and discover flows for one workspace.

    Usage:
        orchestrator = GhostOrchestrator(Path("."), verbose=True)
        result = orchestrator.build(profile_path=None)
    """

    TOTAL_PHASES = 6

    def __init__(self, workspace_root: Path, verbose: bool = False, environ: Optional[Mapping[str, str]] = None):
        """
        Initialize the orchestrator.

        Args:
            workspace_root: Directory holding the workspace ghost.build
            verbose: Enable verbose output
            environ: Environment mapping (defaults to os.environ)
        """
        self.workspace_root = Path(workspace_root).resolve()
        self.verbose = verbose
        self.environ = environ

    def build(self, profile_path: Optional[Path] = None, generate_only: bool = False) -> BuildResult:
        """
        Execute the build flow.

        Args:
            profile_path: Explicit toolchain profile file
            generate_only: Stop after writing build.ninja and compile_commands.json

        Returns:
            BuildResult

        Raises:
            GhostError: Any expected failure (manifest, profile, hook,
                validation, discovery mismatch, executor)
        """
        start_time = time.time()
        total = self.TOTAL_PHASES

        log_phase(1, total, "Resolving toolchain...")
        toolchain, profile = resolve_toolchain(profile_path, environ=self.environ)
        log_detail(f"Profile: {profile.name}")
        log_detail(f"Compilers: {toolchain.cc} / {toolchain.cxx}", verbose_only=True)

        log_phase(2, total, "Loading workspace manifest...")
        workspace = _workspace_manifest(self.workspace_root)
        profile = apply_profile_fragment(profile, workspace)
        ctx = create_build_context(toolchain, profile, self.workspace_root, environ=self.environ)
        log_detail(f"Members: {len(workspace.members)}")
        log_detail(f"Build dir: {workspace.build_dir}", verbose_only=True)

        log_phase(3, total, "Running hooks...")
        ctx = self._run_hooks(ctx, PRE_BUILD_HOOKS)

        log_phase(4, total, "Collecting dependency metadata...")
        member_roots = [_member_root(self.workspace_root, m) for m in workspace.members]
        dep_meta = collect_dependency_meta(member_roots)
        self._check_dependency_order(member_roots)

        with TimedLogger("Generating build graph", phase=(5, total)) as timer:
            graph = compile_workspace(ctx, workspace, dep_meta, self.workspace_root)
            build_file = write_build_file(graph, self.workspace_root / workspace.build_dir / BUILD_FILE_NAME)
            compile_commands = write_compile_commands(
                graph.compile_commands, self.workspace_root / COMPILE_COMMANDS_NAME
            )
            self._log_graph(graph)
            timer.detail(f"{len(graph.edges)} edges, {len(graph.compile_commands)} compile commands")
            timer.detail(f"Wrote {build_file}")
            timer.detail(f"Wrote {compile_commands}")

        ran_executor = False
        if generate_only:
            log_phase(6, total, "Skipping ninja (generate only)")
        else:
            log_phase(6, total, "Running ninja...")
            run_ninja(self.workspace_root, build_file, verbose=self.verbose)
            ran_executor = True
            ctx = self._run_hooks(ctx, POST_BUILD_HOOKS)

        return BuildResult(
            build_file=build_file,
            compile_commands=compile_commands,
            edge_count=len(graph.edges),
            build_time=time.time() - start_time,
            ran_executor=ran_executor,
            context=ctx,
        )

    def discover(self, profile_path: Optional[Path] = None) -> DiscoverReport:
        """
        Execute the discover flow: check every member's sources.

        Explicit source lists are checked against the filesystem; discovery
        packages are expanded (refreshing their .ghost/files.json) with the
        same exclusions the build uses. Missing files are collected across
        all members, not just the first.

        Args:
            profile_path: Explicit toolchain profile file, for its exclusions

        Returns:
            DiscoverReport; check ``report.ok`` or ``report.missing``

        Raises:
            ProfileError: If a requested profile cannot be read
            ManifestParseError: If a manifest cannot be loaded
            PackageValidationError: If a member fails validation
        """
        workspace = _workspace_manifest(self.workspace_root)
        ctx = self._create_context(profile_path, workspace)
        report = DiscoverReport(build_dir=workspace.build_dir)

        for member in workspace.members:
            member_root = _member_root(self.workspace_root, member)
            pkg = load_package(manifest_path(member_root))
            validate_package(pkg)
            report.packages.append(self._check_sources(ctx, member_root, pkg, workspace.build_dir))

        return report

    def _create_context(self, profile_path: Optional[Path], workspace: WorkspaceManifest) -> BuildContext:
        toolchain, profile = resolve_toolchain(profile_path, environ=self.environ)
        profile = apply_profile_fragment(profile, workspace)
        return create_build_context(toolchain, profile, self.workspace_root, environ=self.environ)

    def _check_sources(self, ctx: BuildContext, member_root: Path, pkg: PackageManifest, build_dir: str) -> PackageSources:
        sources = pkg.sources
        if sources.files:
            files = list(dict.fromkeys(sources.files))
            return PackageSources(name=pkg.name, files=files, missing=find_missing_sources(member_root, files))
        files = discover_sources(ctx, member_root, pkg, build_dir)
        return PackageSources(name=pkg.name, files=files, discovered=True)

    def _run_hooks(self, ctx: BuildContext, phases: Sequence[str]) -> BuildContext:
        script = hook_script_path(self.workspace_root)
        if not script.is_file():
            log_detail("No hook script", verbose_only=True)
            return ctx
        seen = len(ctx.log)
        ctx = run_hooks(ctx, script, phases)
        for message in ctx.log[seen:]:
            log_detail(f"hook: {message}")
        return ctx

    def _check_dependency_order(self, member_roots: List[Path]) -> None:
        packages = [load_package(manifest_path(root)) for root in member_roots]
        graph = DependencyGraph.from_packages(packages)
        try:
            order = graph.topological_order()
        except CyclicDependencyError as e:
            log_warning(str(e))
            return
        violations = graph.order_violations([pkg.name for pkg in packages])
        for package, dependency in violations:
            log_warning(f"'{package}' depends on '{dependency}', which is listed after it in workspace.members")
        if violations:
            log_detail(f"Dependency order: {', '.join(order)}")

    def _log_graph(self, graph: BuildGraph) -> None:
        for edge in graph.edges:
            for output in edge.outputs:
                log_edge(edge.rule, output)
