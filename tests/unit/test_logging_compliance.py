"""Unit tests for logging compliance across the codebase.

These tests enforce that library code reports through the logging module or
ghost.output instead of print() statements.
"""

import re
from pathlib import Path

import pytest

SRC_DIR = Path(__file__).parent.parent.parent / "src" / "ghost"

LOGGER_CALL = re.compile(r"^\s*logger\.(debug|info|warning|error|exception)\(", re.MULTILINE)
LOGGER_DEFINITION = re.compile(r"^logger = logging\.getLogger\(__name__\)$", re.MULTILINE)


def _library_files():
    """All source files except the CLI, which owns user-facing output."""
    return [path for path in sorted(SRC_DIR.rglob("*.py")) if "__pycache__" not in path.parts and path.name != "cli.py"]


class TestLoggingCompliance:
    """Test cases for logging vs print statement compliance."""

    def test_source_tree_found(self):
        assert SRC_DIR.exists(), f"Source directory not found: {SRC_DIR}"
        assert _library_files(), "No Python files found in src/ghost"

    def test_no_print_statements_in_library_code(self):
        """Verify no print() calls exist in non-CLI code.

        Progress goes through ghost.output and diagnostics through logging.
        """
        violations = []

        for file_path in _library_files():
            lines = file_path.read_text(encoding="utf-8").split("\n")
            for line_num, line in enumerate(lines, start=1):
                if line.strip().startswith("#"):
                    continue
                if re.search(r"(?<![\w.])print\s*\(", line):
                    violations.append(f"{file_path}:{line_num}: {line.strip()}")

        if violations:
            violation_report = "\n".join(violations)
            pytest.fail(f"Found {len(violations)} print() statements in library code:\n{violation_report}")

    def test_module_loggers_use_module_name(self):
        """Verify files with logger calls define a module-level logger."""
        missing = []

        for file_path in _library_files():
            content = file_path.read_text(encoding="utf-8")
            if LOGGER_CALL.search(content) and not LOGGER_DEFINITION.search(content):
                missing.append(str(file_path))

        if missing:
            pytest.fail("Files calling logger.* without logging.getLogger(__name__):\n" + "\n".join(missing))
