"""Exception types for photoframe.

Every error carries a machine-readable ``code`` for client branching, a
human-readable ``message`` and the HTTP status the API boundary maps it to.
Optional ``details`` are merged into the JSON error body.
"""
from typing import Any, Optional


class PhotoFrameError(Exception):
    """Base exception for all photoframe errors."""

    status_code: int = 500
    code: str = "SERVER_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "error": self.message, "code": self.code, **self.details}


class ConfigError(PhotoFrameError):
    code = "CONFIG_ERROR"


class ValidationError(PhotoFrameError):
    status_code = 400
    code = "VALIDATION_FAILED"


class NoImagesFoundError(PhotoFrameError):
    status_code = 404
    code = "NO_IMAGES_FOUND"

    def __init__(self, message: str = "No images found") -> None:
        super().__init__(message)


class AccessRestrictedError(PhotoFrameError):
    status_code = 403
    code = "ACCESS_RESTRICTED"

    def __init__(self, message: str = "No images accessible with your account permissions") -> None:
        super().__init__(message)


class FolderEmptyError(PhotoFrameError):
    status_code = 404
    code = "FOLDER_EMPTY"

    def __init__(self, folder: str) -> None:
        super().__init__(f"No images found in folder: {folder}")
        self.folder = folder


class RateLimitedError(PhotoFrameError):
    status_code = 429
    code = "RATE_LIMITED"

    def __init__(self, message: str, remaining_minutes: int) -> None:
        super().__init__(message, details={"remainingTime": remaining_minutes})
        self.remaining_minutes = remaining_minutes


class InvalidPinError(PhotoFrameError):
    status_code = 401
    code = "INVALID_PIN"

    def __init__(self, attempts_remaining: int) -> None:
        super().__init__("Invalid PIN", details={"attemptsRemaining": attempts_remaining})
        self.attempts_remaining = attempts_remaining


class DuplicatePinError(PhotoFrameError):
    status_code = 400
    code = "DUPLICATE_PIN"

    def __init__(self) -> None:
        super().__init__("PIN already exists")


class AccountNotFoundError(PhotoFrameError):
    status_code = 404
    code = "ACCOUNT_NOT_FOUND"

    def __init__(self) -> None:
        super().__init__("Account not found")


class ImageNotFoundError(PhotoFrameError):
    status_code = 404
    code = "IMAGE_NOT_FOUND"

    def __init__(self, message: str = "Image not found") -> None:
        super().__init__(message)


class InvalidImageError(PhotoFrameError):
    status_code = 400
    code = "INVALID_IMAGE"


class FolderNotFoundError(PhotoFrameError):
    status_code = 404
    code = "FOLDER_NOT_FOUND"

    def __init__(self, message: str = "Folder not found") -> None:
        super().__init__(message)


class FolderExistsError(PhotoFrameError):
    status_code = 400
    code = "FOLDER_EXISTS"

    def __init__(self) -> None:
        super().__init__("Folder already exists")


class ThumbnailNotFoundError(PhotoFrameError):
    status_code = 404
    code = "THUMBNAIL_NOT_FOUND"

    def __init__(self) -> None:
        super().__init__("No thumbnail available for folder")


class PathOutsideRootError(PhotoFrameError):
    status_code = 400
    code = "INVALID_PATH"

    def __init__(self) -> None:
        super().__init__("Path is outside root")


class AuthRequiredError(PhotoFrameError):
    status_code = 401
    code = "AUTH_REQUIRED"

    def __init__(self, message: str = "Authentication required", *, code: Optional[str] = None) -> None:
        super().__init__(message, code=code, details={"redirect": "/login"})


class ForbiddenError(PhotoFrameError):
    status_code = 403
    code = "FORBIDDEN"

    def __init__(self) -> None:
        super().__init__("Forbidden: Insufficient permissions")
