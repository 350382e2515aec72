"""Image scanning utilities and the cached image index."""
import os
import threading
import time
from pathlib import Path
from typing import Callable, Iterable, Optional

from logging_util import get_logger
from models import Image

logger = get_logger(__name__)

# Configuration
ALLOWED_EXTS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}


def is_image_name(name: str) -> bool:
    return not name.startswith(".") and os.path.splitext(name)[1].lower() in ALLOWED_EXTS


def iter_image_files(root: Path) -> Iterable[Path]:
    """Depth-first walk yielding every image file below root.

    Hidden (dot-prefixed) files and directories are skipped. Directory errors propagate
    to the caller.
    """
    with os.scandir(root) as entries:
        items = list(entries)
    for entry in items:
        if entry.is_dir(follow_symlinks=False):
            if entry.name.startswith("."):
                continue
            yield from iter_image_files(Path(entry.path))
        elif entry.is_file() and is_image_name(entry.name):
            yield Path(entry.path)


def make_image(root: Path, file: Path) -> Image:
    relative = os.path.relpath(file, root)
    image_id = relative.replace(os.sep, "/")
    folder = image_id.rsplit("/", 1)[0] if "/" in image_id else ""
    return Image(id=image_id, relative_path=relative, folder=folder, path=str(file))


def scan(root: Path) -> list[Image]:
    """Index all images under root."""
    return [make_image(root, f) for f in iter_image_files(root)]


def count_images(folder: Path) -> int:
    try:
        return sum(1 for _ in iter_image_files(folder))
    except OSError:
        return 0


def find_first_image(folder: Path) -> Optional[Path]:
    """First image in folder, checking files at each level before descending."""
    try:
        with os.scandir(folder) as entries:
            items = sorted(entries, key=lambda e: e.name)
    except OSError:
        return None
    for entry in items:
        if entry.is_file() and is_image_name(entry.name):
            return Path(entry.path)
    for entry in items:
        if entry.is_dir(follow_symlinks=False) and not entry.name.startswith("."):
            found = find_first_image(Path(entry.path))
            if found:
                return found
    return None


class ImageIndex:
    """Process-wide cache of every image under the content root.

    Entries are served until they are ``expiry`` seconds old or until
    ``invalidate()`` is called by an image-mutating operation.
    """

    def __init__(
        self,
        root: Path,
        expiry: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.root = Path(root)
        self.expiry = expiry
        self._clock = clock
        self._images: Optional[list[Image]] = None
        self._built_at: Optional[float] = None
        self._lock = threading.Lock()

    @property
    def is_built(self) -> bool:
        return self._images is not None

    def get_all_images(self, force_refresh: bool = False) -> list[Image]:
        with self._lock:
            now = self._clock()
            if (
                not force_refresh
                and self._images is not None
                and self._built_at is not None
                and now - self._built_at < self.expiry
            ):
                return list(self._images)

            try:
                images = scan(self.root)
            except OSError as e:
                # unreadable root: show nothing rather than fail the request
                logger.warning("Image scan of %s failed: %s", self.root, e)
                images = []

            self._images = images
            self._built_at = now
            logger.debug("Image index rebuilt: %d images", len(images))
            return list(images)

    def invalidate(self) -> None:
        with self._lock:
            self._images = None
            self._built_at = None
        logger.info("Image cache cleared")
