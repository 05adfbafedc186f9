"""Ghost - manifest-driven build graph compiler for C/C++ workspaces.

Ghost reads a workspace ``ghost.build`` manifest and the manifests of its
member packages, and generates a ``build.ninja`` file plus a
``compile_commands.json`` compilation database.
"""

__version__ = "0.3.0"
