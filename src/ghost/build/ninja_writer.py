"""
Low-level build description emitter.

Renders a BuildGraph as a ``build.ninja`` file and a list of compile
commands as ``compile_commands.json``. Both files are rewritten in full on
every run.

Layout of the generated build file:

    1. The fixed rule prelude (cc, cxx, ar, libtool_static, link_exe,
       link_exe_msvc)
    2. Global variables (builddir, cc, cxx, ar, flags, link, ...)
    3. One build statement per edge, in the order the compiler produced them
"""

import io
import json
import logging
from pathlib import Path
from typing import Iterable, Sequence, TextIO, Tuple

from .graph_compiler import BuildEdge, BuildGraph, CompileCommand

logger = logging.getLogger(__name__)

NINJA_RULES = """\
rule cc
  command = $cc -MMD -MF $out.d $cflags $defines $includes -c $in -o $out
  description = CC $out
  depfile = $out.d
  deps = gcc

rule cxx
  command = $cxx -MMD -MF $out.d $cxxflags $defines $includes -c $in -o $out
  description = CXX $out
  depfile = $out.d
  deps = gcc

rule ar
  command = $ar $arflags $out $in
  description = AR $out

rule libtool_static
  command = libtool -static -o $out $in
  description = LIBTOOL $out

rule link_exe
  command = $link $linkflags $in -o $out $ldflags $libdirs $libs
  description = LINK $out

rule link_exe_msvc
  command = $link /OUT:$out $in $ldflags $libdirs $libs
  description = LINK $out
"""


def escape_path(path: str) -> str:
    """Escape a path for use in a build statement."""
    return path.replace("$", "$$").replace(" ", "$ ").replace(":", "$:")


def escape_value(value: str) -> str:
    """Escape a variable value."""
    return value.replace("$", "$$")


class NinjaWriter:
    """Minimal ninja syntax writer.

    Usage:
        with open("build.ninja", "w") as f:
            writer = NinjaWriter(f)
            writer.prelude()
            writer.variable("cc", "clang")
            writer.build(["obj/a.o"], "cc", ["src/a.c"])
    """

    def __init__(self, output: TextIO):
        self.output = output

    def newline(self) -> None:
        self.output.write("\n")

    def comment(self, text: str) -> None:
        for line in text.splitlines():
            self.output.write(f"# {line}\n")

    def prelude(self) -> None:
        """Write the fixed rule set every generated file shares."""
        self.output.write(NINJA_RULES)
        self.newline()

    def variable(self, key: str, value: str, indent: int = 0) -> None:
        self.output.write(f"{'  ' * indent}{key} = {escape_value(value)}\n")

    def build(
        self,
        outputs: Sequence[str],
        rule: str,
        inputs: Sequence[str] = (),
        variables: Iterable[Tuple[str, str]] = (),
    ) -> None:
        """
        Write one build statement.

        Args:
            outputs: Output paths
            rule: Rule name from the prelude
            inputs: Explicit input paths
            variables: Per-edge (name, value) overrides, written in order
        """
        out_text = " ".join(escape_path(p) for p in outputs)
        in_text = " ".join(escape_path(p) for p in inputs)
        line = f"build {out_text}: {rule}"
        if in_text:
            line += f" {in_text}"
        self.output.write(line + "\n")
        for key, value in variables:
            self.variable(key, value, indent=1)

    def edge(self, edge: BuildEdge) -> None:
        self.build(edge.outputs, edge.rule, edge.inputs, edge.variables)


def render_build_file(graph: BuildGraph) -> str:
    """Render a BuildGraph to ninja text."""
    buffer = io.StringIO()
    writer = NinjaWriter(buffer)
    writer.comment("Generated by ghost. Do not edit.")
    writer.newline()
    writer.prelude()
    for key, value in graph.variables:
        writer.variable(key, value)
    writer.newline()
    for edge in graph.edges:
        writer.edge(edge)
    return buffer.getvalue()


def write_build_file(graph: BuildGraph, path: Path) -> Path:
    """
    Write the build description, replacing any previous file.

    Args:
        graph: Compiled build graph
        path: Destination (normally <build_dir>/build.ninja)

    Returns:
        The written path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_build_file(graph), encoding="utf-8")
    logger.debug("Wrote %d edge(s) to %s", len(graph.edges), path)
    return path


def write_compile_commands(entries: Sequence[CompileCommand], path: Path) -> Path:
    """
    Write the compilation database as a pretty-printed JSON array.

    Args:
        entries: Compile commands in edge order
        path: Destination (normally <workspace>/compile_commands.json)

    Returns:
        The written path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = [entry.to_dict() for entry in entries]
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    logger.debug("Wrote %d compile command(s) to %s", len(entries), path)
    return path
