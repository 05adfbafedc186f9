"""Hook engine for user build scripts.

A workspace may contain a ``ghost_hooks.py`` script next to its root
manifest. When present, it is executed in a fresh namespace on every call
to run_hooks(). The namespace holds two names:

    ctx    The current BuildContext as plain dicts and lists. Mutate it in
           place or rebind it; whatever ``ctx`` holds when the engine is done
           becomes the new BuildContext.
    shell  shell(cmdline) -> ShellResult(code, stdout, stderr). Runs the
           command line through the platform shell in the workspace root.
           A non-zero exit is a normal result, never an exception.

After the script body runs, the engine calls each of the lifecycle
callbacks the script defines, in this order, passing ``ctx``::

    before_discover, before_generate, before_build, after_build

Example ``ghost_hooks.py``::

    def before_generate(ctx):
        rev = shell("git rev-parse --short HEAD")
        if rev.code == 0:
            ctx["profile"]["defines"].append(f"GIT_REV={rev.stdout.strip()}")
        ctx["log"].append("stamped git revision")
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Sequence

from ghost.errors import GhostError
from ghost.subprocess_utils import safe_run, shell_command

from .build_context import BuildContext

logger = logging.getLogger(__name__)

HOOK_SCRIPT_NAME = "ghost_hooks.py"
LIFECYCLE_HOOKS = ("before_discover", "before_generate", "before_build", "after_build")
PRE_BUILD_HOOKS = LIFECYCLE_HOOKS[:3]
POST_BUILD_HOOKS = LIFECYCLE_HOOKS[3:]


class HookScriptError(GhostError):
    """Raised when the hook script fails to compile, raises, or leaves an invalid ctx."""

    pass


@dataclass(frozen=True)
class ShellResult:
    """Outcome of a shell() call made by a hook script."""

    code: int
    stdout: str
    stderr: str


def make_shell(cwd: Path) -> Callable[[str], ShellResult]:
    """
    Create the shell capability handed to hook scripts.

    Args:
        cwd: Directory the commands run in (the workspace root)

    Returns:
        Function running a command line and returning a ShellResult
    """

    def shell(cmdline: str) -> ShellResult:
        logger.debug("hook shell: %s", cmdline)
        try:
            result = safe_run(
                shell_command(cmdline),
                cwd=str(cwd),
                capture_output=True,
                text=True,
                errors="replace",
            )
        except OSError as e:
            return ShellResult(code=-1, stdout="", stderr=f"spawn error: {e}")
        return ShellResult(code=result.returncode, stdout=result.stdout, stderr=result.stderr)

    return shell


def hook_script_path(workspace_root: Path) -> Path:
    """Return where the hook script is expected for a workspace."""
    return Path(workspace_root) / HOOK_SCRIPT_NAME


def run_hooks(
    ctx: BuildContext,
    script_path: Path,
    phases: Sequence[str] = LIFECYCLE_HOOKS,
) -> BuildContext:
    """
    Run the hook script against a build context.

    Args:
        ctx: Current build context
        script_path: Path of the hook script
        phases: Lifecycle callbacks to call, a subset of LIFECYCLE_HOOKS

    Returns:
        The context read back from the script's ``ctx`` global, or ctx
        itself when no script exists

    Raises:
        HookScriptError: If the script cannot be read or compiled, raises
            at top level or in a callback, or leaves a ctx that does not
            deserialize into a BuildContext
    """
    script_path = Path(script_path)
    if not script_path.is_file():
        return ctx

    try:
        source = script_path.read_text(encoding="utf-8")
    except OSError as e:
        raise HookScriptError(f"{script_path}: cannot read hook script: {e}") from e

    try:
        code = compile(source, str(script_path), "exec")
    except SyntaxError as e:
        raise HookScriptError(f"{script_path.name}:{e.lineno}: {e.msg}") from e

    namespace: Dict[str, Any] = {
        "__name__": "__ghost_hooks__",
        "__file__": str(script_path),
        "ctx": ctx.to_dict(),
        "shell": make_shell(Path(ctx.workspace_root)),
        "ShellResult": ShellResult,
    }

    try:
        exec(code, namespace)
    except Exception as e:
        raise HookScriptError(f"{script_path.name}: {type(e).__name__}: {e}") from e

    for name in LIFECYCLE_HOOKS:
        if name not in phases:
            continue
        callback = namespace.get(name)
        if not callable(callback):
            continue
        logger.debug("Calling hook %s", name)
        try:
            callback(namespace["ctx"])
        except Exception as e:
            raise HookScriptError(f"{script_path.name}: {name}() failed: {type(e).__name__}: {e}") from e

    try:
        return BuildContext.from_dict(namespace.get("ctx"))
    except ValueError as e:
        raise HookScriptError(f"{script_path.name}: hook left an invalid ctx: {e}") from e
