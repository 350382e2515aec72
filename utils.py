"""Utility functions."""
from pathlib import Path

from errors import PathOutsideRootError


def resolve_under_root(root: Path, candidate: Path) -> Path:
    """Resolve a path ensuring it's under the root directory."""
    root = root.resolve()
    real = (root / candidate).resolve()
    if root not in real.parents and real != root:
        raise PathOutsideRootError()
    return real


def normalize_folder(folder: str) -> str:
    """Turn a user-supplied folder into the '/'-separated form used for matching."""
    return folder.replace("\\", "/").strip().strip("/")


def strip_uploads_prefix(value: str) -> str:
    """Accept '/uploads/a/b.jpg', 'uploads/a/b.jpg' or 'a/b.jpg'."""
    value = value.replace("\\", "/").lstrip("/")
    if value.startswith("uploads/"):
        value = value[len("uploads/"):]
    return value
