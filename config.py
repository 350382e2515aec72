"""Application settings loaded from the environment (and an optional .env file)."""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

APP_DIR = Path(__file__).resolve().parent

DEFAULT_FOLDERS = ("family", "vacation", "holidays", "misc")


@dataclass
class Settings:
    session_secret: Optional[str] = None
    admin_password: str = "admin123"
    admin_password_from_env: bool = False
    upload_dir: Path = APP_DIR / "uploads"
    data_dir: Path = APP_DIR / "data"
    default_folders: tuple[str, ...] = DEFAULT_FOLDERS
    upload_folder: str = "evento"
    port: int = 3000
    max_recent_images: int = 10
    image_cache_expiry_ms: int = 60_000
    image_quality: int = 85
    max_upload_bytes: int = 10 * 1024 * 1024
    slideshow_interval_ms: int = 15_000
    pin_max_attempts: int = 5
    pin_lockout_minutes: int = 15
    pin_attempt_window_minutes: int = 5
    session_max_age: int = 24 * 60 * 60
    trust_proxy: bool = True
    log_level: str = "INFO"
    log_to_file: bool = True

    @property
    def accounts_file(self) -> Path:
        return self.data_dir / "access-accounts.json"

    @property
    def log_dir(self) -> Path:
        return self.data_dir / "logs"


def _env_int(name: str, default: int) -> int:
    # unparsable or zero values fall back to the default
    raw = os.environ.get(name, "").strip()
    try:
        value = int(raw)
    except ValueError:
        return default
    return value or default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """Build Settings from environment variables, loading .env first."""
    load_dotenv(env_file or APP_DIR / ".env")

    folders = os.environ.get("DEFAULT_FOLDERS", "")
    default_folders = tuple(f.strip() for f in folders.split(",") if f.strip()) or DEFAULT_FOLDERS
    admin_password = os.environ.get("ADMIN_PASSWORD", "")

    return Settings(
        session_secret=os.environ.get("SESSION_SECRET") or None,
        admin_password=admin_password or "admin123",
        admin_password_from_env=bool(admin_password),
        upload_dir=Path(os.environ.get("UPLOAD_DIR") or APP_DIR / "uploads").resolve(),
        data_dir=Path(os.environ.get("DATA_DIR") or APP_DIR / "data").resolve(),
        default_folders=default_folders,
        upload_folder=(os.environ.get("UPLOAD_FOLDER") or "evento").strip("/"),
        port=_env_int("PORT", 3000),
        max_recent_images=_env_int("MAX_RECENT_IMAGES", 10),
        image_cache_expiry_ms=_env_int("IMAGE_CACHE_EXPIRY", 60_000),
        image_quality=_env_int("IMAGE_QUALITY", 85),
        max_upload_bytes=_env_int("MAX_UPLOAD_BYTES", 10 * 1024 * 1024),
        slideshow_interval_ms=_env_int("DEFAULT_SLIDESHOW_INTERVAL", 15_000),
        pin_max_attempts=_env_int("PIN_MAX_ATTEMPTS", 5),
        pin_lockout_minutes=_env_int("PIN_LOCKOUT_MINUTES", 15),
        pin_attempt_window_minutes=_env_int("PIN_ATTEMPT_WINDOW_MINUTES", 5),
        trust_proxy=_env_bool("TRUST_PROXY", True),
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    )
