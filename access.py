"""Access control for the slideshow image pool.

A requester is one of three kinds:

* ``Admin``: any authenticated session; sees everything.
* ``PinRestricted``: a PIN-authenticated access account; sees only images in
  its assigned folders or their descendants.
* ``Unauthenticated``: the public slideshow; sees everything.

``resolve_eligible_images`` applies the account filter first and then the
optional explicit folder filter, raising a distinct error for each way the
pool can end up empty.
"""
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Union

from errors import AccessRestrictedError, FolderEmptyError, NoImagesFoundError
from logging_util import get_logger
from models import Image
from utils import normalize_folder

logger = get_logger(__name__)


@dataclass(frozen=True)
class Admin:
    pass


@dataclass(frozen=True)
class PinRestricted:
    assigned_folders: tuple[str, ...]
    account_id: Optional[str] = None


@dataclass(frozen=True)
class Unauthenticated:
    pass


RequesterContext = Union[Admin, PinRestricted, Unauthenticated]


def folder_matches(folder: str, allowed: str) -> bool:
    """True when folder is allowed itself or lies below it.

    'family' matches 'family' and 'family/2023' but not 'familyreunion'.
    """
    return folder == allowed or folder.startswith(allowed + "/")


def filter_by_folders(images: Iterable[Image], folders: Sequence[str]) -> list[Image]:
    normalized = [normalize_folder(f) for f in folders]
    return [img for img in images if any(folder_matches(img.folder, f) for f in normalized)]


def resolve_eligible_images(
    all_images: Sequence[Image],
    requester: RequesterContext,
    folder_filter: Optional[str] = None,
) -> list[Image]:
    """Return the images a requester may be shown.

    Raises NoImagesFoundError when the index is empty, AccessRestrictedError
    when the account filter leaves nothing and FolderEmptyError when the
    explicit folder filter leaves nothing.
    """
    if not all_images:
        raise NoImagesFoundError()

    available = list(all_images)

    if isinstance(requester, PinRestricted):
        available = filter_by_folders(available, requester.assigned_folders)
        logger.debug(
            "Access filter for account %s: %d of %d images",
            requester.account_id, len(available), len(all_images),
        )
        if not available:
            logger.info(
                "No accessible images for assigned folders %s", list(requester.assigned_folders)
            )
            raise AccessRestrictedError()

    if folder_filter and normalize_folder(folder_filter):
        before = len(available)
        available = filter_by_folders(available, [folder_filter])
        logger.debug("Folder filter %r: %d of %d images", folder_filter, len(available), before)
        if not available:
            raise FolderEmptyError(folder_filter)

    return available
