"""Base exception for ghost.

Every module raises its own subclass of GhostError so the CLI can report
any expected failure with a clean message and map it to an exit code.
"""


class GhostError(Exception):
    """Base class for all expected ghost failures."""

    exit_code = 1
