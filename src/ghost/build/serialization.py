"""Field readers for dictionary-backed models.

ToolchainConfig, ProfileConfig and BuildContext round-trip through plain
dictionaries (profile files, hook scripts). These helpers read one field and
raise ValueError naming the field when a value has the wrong type.
"""

from typing import Any, Dict, List, Optional


def str_field(data: Dict[str, Any], key: str, owner: str, default: str = "") -> str:
    """Read a string field, falling back to default when absent."""
    value = data.get(key, default)
    if not isinstance(value, str):
        raise ValueError(f"{owner}.{key} must be a string, got {type(value).__name__}")
    return value


def optional_str_field(data: Dict[str, Any], key: str, owner: str) -> Optional[str]:
    """Read a string field that may be absent or None."""
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"{owner}.{key} must be a string or None, got {type(value).__name__}")
    return value


def str_list_field(
    data: Dict[str, Any],
    key: str,
    owner: str,
    default: Optional[List[str]] = None,
) -> List[str]:
    """Read a list-of-strings field, returning a fresh list."""
    value = data.get(key)
    if value is None:
        return list(default) if default is not None else []
    if not isinstance(value, (list, tuple)) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"{owner}.{key} must be a list of strings")
    return list(value)
