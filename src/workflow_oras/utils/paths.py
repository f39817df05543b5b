"""Path containment checks for extracted artifacts."""

import posixpath
from pathlib import Path, PurePosixPath

from ..exceptions import PathEscapeError


def normalize_relative(relative: str) -> str:
    """Normalize a relative path; backslashes count as separators."""
    return posixpath.normpath(relative.replace("\\", "/"))


def resolve_within(root: Path, relative: str) -> Path:
    """Resolve ``relative`` against ``root`` and ensure it stays inside.

    Args:
        root: Directory the path must remain under
        relative: Relative path, as written by the user or an archive

    Returns:
        The normalized absolute path

    Raises:
        PathEscapeError: If the path is empty, absolute or escapes ``root``
    """
    if not relative or not relative.strip():
        raise PathEscapeError("Only script path inside archive can be selected: ''")

    normalized = normalize_relative(relative)
    if PurePosixPath(normalized).is_absolute() or Path(normalized).is_absolute():
        raise PathEscapeError(
            f"Only script path inside archive can be selected: {relative}"
        )

    base = Path(posixpath.normpath(str(root.absolute())))
    resolved = Path(posixpath.normpath(str(base / normalized)))
    if resolved != base and base not in resolved.parents:
        raise PathEscapeError(
            f"Only script path inside archive can be selected: {relative}"
        )
    return resolved
