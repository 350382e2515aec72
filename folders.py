"""Folder browsing, folder management and cached folder thumbnails."""
import os
import shutil
import threading
import time
from pathlib import Path
from typing import Any, Callable, Optional
from urllib.parse import quote

from errors import FolderExistsError, FolderNotFoundError, ValidationError
from imaging import make_thumbnail
from logging_util import get_logger
from scanner import count_images, find_first_image, is_image_name
from utils import normalize_folder, resolve_under_root

logger = get_logger(__name__)

THUMB_CACHE_SECONDS = 3600


def image_thumbnail_url(image_id: str) -> str:
    return f"/api/images/{quote(image_id, safe='')}/thumbnail"


def folder_thumbnail_url(folder: str) -> str:
    return f"/api/folders/{quote(folder)}/thumbnail"


def _has_subfolders(path: Path) -> bool:
    try:
        with os.scandir(path) as entries:
            return any(e.is_dir() and not e.name.startswith(".") for e in entries)
    except OSError:
        return False


def breadcrumb(folder: str) -> list[dict[str, str]]:
    crumbs = [{"name": "Root", "path": ""}]
    parts = [p for p in folder.split("/") if p]
    for i, part in enumerate(parts):
        crumbs.append({"name": part, "path": "/".join(parts[: i + 1])})
    return crumbs


def folder_structure(root: Path, folder: str = "") -> dict[str, Any]:
    """Describe one folder for the slideshow folder picker."""
    folder = normalize_folder(folder)
    full = resolve_under_root(root, Path(folder)) if folder else root.resolve()
    if not full.is_dir():
        raise FolderNotFoundError()

    subfolders = []
    images = []
    with os.scandir(full) as entries:
        items = sorted(entries, key=lambda e: e.name.lower())
    for entry in items:
        rel = f"{folder}/{entry.name}" if folder else entry.name
        if entry.is_dir(follow_symlinks=False) and not entry.name.startswith("."):
            sub = Path(entry.path)
            subfolders.append({
                "name": entry.name,
                "path": rel,
                "imageCount": count_images(sub),
                "hasSubfolders": _has_subfolders(sub),
                "thumbnail": folder_thumbnail_url(rel),
            })
        elif entry.is_file() and is_image_name(entry.name):
            images.append({
                "id": rel,
                "filename": entry.name,
                "thumbnail": image_thumbnail_url(rel),
            })

    return {
        "success": True,
        "folder": {
            "name": folder.rsplit("/", 1)[-1] if folder else "Root",
            "path": folder,
            "parentPath": folder.rsplit("/", 1)[0] if "/" in folder else "",
            "imageCount": count_images(full),
            "breadcrumb": breadcrumb(folder),
        },
        "subfolders": subfolders,
        "images": images,
    }


def folder_contents(root: Path, folder: str = "") -> dict[str, Any]:
    """Flat listing of one folder for the admin file manager."""
    folder = normalize_folder(folder)
    full = resolve_under_root(root, Path(folder)) if folder else root.resolve()
    if not full.is_dir():
        raise FolderNotFoundError()

    folders = []
    files = []
    with os.scandir(full) as entries:
        for entry in entries:
            rel = f"{folder}/{entry.name}" if folder else entry.name
            if entry.is_dir(follow_symlinks=False) and not entry.name.startswith("."):
                folders.append({"name": entry.name, "type": "folder", "path": rel})
            elif entry.is_file() and is_image_name(entry.name):
                files.append({
                    "name": entry.name,
                    "type": "image",
                    "path": rel,
                    "url": f"/uploads/{quote(rel)}",
                })
    return {
        "currentPath": folder,
        "folders": sorted(folders, key=lambda f: f["name"]),
        "files": sorted(files, key=lambda f: f["name"]),
    }


def create_folder(root: Path, name: str, parent: str = "") -> str:
    name = (name or "").strip()
    if not name or "/" in name or "\\" in name or name in {".", ".."}:
        raise ValidationError("A valid folder name is required")
    parent = normalize_folder(parent or "")
    rel = f"{parent}/{name}" if parent else name
    full = resolve_under_root(root, Path(rel))
    if full.exists():
        raise FolderExistsError()
    full.mkdir(parents=True)
    logger.info("Created folder %s", rel)
    return rel


def delete_folder(root: Path, folder: str) -> None:
    folder = normalize_folder(folder or "")
    if not folder:
        raise ValidationError("The content root cannot be deleted")
    full = resolve_under_root(root, Path(folder))
    if not full.is_dir():
        raise FolderNotFoundError()
    shutil.rmtree(full)
    logger.info("Deleted folder %s", folder)


class FolderThumbnailCache:
    """JPEG thumbnails of each folder's first image, kept for an hour."""

    def __init__(
        self,
        root: Path,
        ttl: float = THUMB_CACHE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.root = Path(root)
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, tuple[bytes, float]] = {}
        self._generation = 0
        self._lock = threading.Lock()

    def get(self, folder: str) -> Optional[bytes]:
        key = normalize_folder(folder)
        now = self._clock()
        with self._lock:
            cached = self._entries.get(key)
            if cached and now - cached[1] < self.ttl:
                return cached[0]
            generation = self._generation

        full = resolve_under_root(self.root, Path(key)) if key else self.root.resolve()
        first = find_first_image(full)
        if first is None:
            return None
        try:
            data = make_thumbnail(first)
        except OSError as e:
            logger.warning("Could not build thumbnail for folder %s: %s", key, e)
            return None

        with self._lock:
            # a clear() during the build means data may predate a mutation
            if self._generation == generation:
                self._entries[key] = (data, now)
        return data

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generation += 1
