"""Build system components for ghost.

This module provides the build graph pipeline: toolchain resolution, source
discovery, hooks, graph compilation and ninja emission.
"""

from .build_context import BuildContext, create_build_context
from .build_profiles import ProfileConfig, apply_profile_fragment
from .graph_compiler import BuildEdge, BuildGraph, CompileCommand, compile_package, compile_workspace
from .hooks import HookScriptError, run_hooks
from .orchestrator import BuildResult, DiscoverReport, ExecutorError, GhostOrchestrator
from .source_scanner import DiscoveryMismatchError, SourceDiscoveryError, discover
from .toolchain import ProfileError, ToolchainConfig, resolve_toolchain

__all__ = [
    "BuildContext",
    "BuildEdge",
    "BuildGraph",
    "BuildResult",
    "CompileCommand",
    "DiscoverReport",
    "DiscoveryMismatchError",
    "ExecutorError",
    "GhostOrchestrator",
    "HookScriptError",
    "ProfileConfig",
    "ProfileError",
    "SourceDiscoveryError",
    "ToolchainConfig",
    "apply_profile_fragment",
    "compile_package",
    "compile_workspace",
    "create_build_context",
    "discover",
    "resolve_toolchain",
    "run_hooks",
]
