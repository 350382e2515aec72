"""Pillow helpers: metadata, thumbnails, upload re-encoding and rotation."""
import io
import os
import tempfile
from pathlib import Path
from typing import Optional

from PIL import Image as PILImage, ImageOps, UnidentifiedImageError

from errors import InvalidImageError

THUMB_SIZE = (200, 200)
THUMB_QUALITY = 80


def read_image_meta(path: Path) -> tuple[int, int]:
    """Read image dimensions."""
    with PILImage.open(path) as im:
        im = ImageOps.exif_transpose(im)
        return im.width, im.height


def make_thumbnail(path: Path, size: tuple[int, int] = THUMB_SIZE) -> bytes:
    """Cover-crop the image to size and return JPEG bytes."""
    with PILImage.open(path) as im:
        im = ImageOps.exif_transpose(im)
        thumb = ImageOps.fit(im.convert("RGB"), size)
    buf = io.BytesIO()
    thumb.save(buf, format="JPEG", quality=THUMB_QUALITY)
    return buf.getvalue()


def _atomic_save(im: PILImage.Image, dest: Path, fmt: str, quality: int) -> None:
    fd, tmp = tempfile.mkstemp(dir=dest.parent, prefix=f".tmp_{dest.stem}_", suffix=dest.suffix)
    os.close(fd)
    try:
        if fmt == "JPEG":
            im.convert("RGB").save(tmp, format=fmt, quality=quality)
        else:
            im.save(tmp, format=fmt)
        os.replace(tmp, dest)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


def save_upload_as_jpeg(data: bytes, dest: Path, quality: int = 85) -> int:
    """Auto-rotate from EXIF, re-encode as JPEG at dest and return the stored size."""
    try:
        with PILImage.open(io.BytesIO(data)) as im:
            im.load()
            im = ImageOps.exif_transpose(im)
            _atomic_save(im, dest, "JPEG", quality)
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidImageError(f"Could not process image: {e}")
    return dest.stat().st_size


def rotate_image_file(path: Path, angle: int, quality: int = 85) -> None:
    """Rotate in place; positive angles turn clockwise."""
    with PILImage.open(path) as im:
        fmt: Optional[str] = im.format
        im.load()
        rotated = ImageOps.exif_transpose(im).rotate(-angle, expand=True)
    _atomic_save(rotated, path, fmt or "JPEG", quality)
