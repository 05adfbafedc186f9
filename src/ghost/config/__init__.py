"""Manifest parsing for ghost."""

from .manifest import (
    MANIFEST_FILENAME,
    ManifestParseError,
    PackageKind,
    PackageManifest,
    PackageValidationError,
    ValidationReason,
    WorkspaceManifest,
    load_package,
    load_workspace,
    validate_package,
)

__all__ = [
    "MANIFEST_FILENAME",
    "ManifestParseError",
    "PackageKind",
    "PackageManifest",
    "PackageValidationError",
    "ValidationReason",
    "WorkspaceManifest",
    "load_package",
    "load_workspace",
    "validate_package",
]
