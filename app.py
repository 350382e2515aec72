"""
Photo Frame – self-hosted slideshow and event photo sharing (FastAPI)

Quick start
-----------
1) python -m venv .venv && source .venv/bin/activate  # or .venv\\Scripts\\activate on Windows
2) pip install -e .
3) export SESSION_SECRET=... ADMIN_PASSWORD=...   # or put them in .env
4) python app.py  # auto-writes templates/static, uploads/ and data/
5) Open http://localhost:3000/slideshow, log in at /login to manage photos

Notes
-----
• Photos live under UPLOAD_DIR (default ./uploads), one folder per album.
• Guests scan the QR code (/qr-upload) to upload into the event folder.
• Access accounts (PIN → folders) are stored in DATA_DIR/access-accounts.json.
"""

import sys
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from starlette.middleware.sessions import SessionMiddleware

from auth import ROLE_ADMIN, ROLE_GUEST, require_admin, require_auth, require_role
from config import APP_DIR, Settings, load_settings
from database import AccountStore
from errors import AuthRequiredError, ConfigError, PhotoFrameError
from folders import FolderThumbnailCache
from logging_util import get_logger, setup_logging
from ratelimit import PinRateLimiter
from routes import (
    access_accounts_page,
    admin_create_folder,
    admin_delete_folder,
    admin_folder_contents,
    admin_page,
    authenticate_with_pin,
    batch_delete_images,
    clear_pin_session,
    create_account,
    delete_account,
    delete_image,
    folder_selection_page,
    folder_structure,
    folder_thumbnail,
    get_auth_status,
    get_pin_session,
    health,
    image_thumbnail,
    index,
    list_accounts,
    login,
    login_page,
    logout,
    qr_code,
    qr_upload_login,
    random_image,
    rotate_image,
    slideshow_login,
    slideshow_page,
    update_account,
    upload_images,
    upload_page,
)
from scanner import ImageIndex
from selector import RandomImageSelector
from templates_static import ensure_assets

logger = get_logger("app")

STATIC_DIR = APP_DIR / "static"

SESSION_COOKIE = "photoframe.sid"


def initialize_uploads(settings: Settings) -> None:
    """Create the content root and its default folders."""
    settings.upload_dir.mkdir(parents=True, exist_ok=True)
    for folder in settings.default_folders:
        (settings.upload_dir / folder).mkdir(parents=True, exist_ok=True)


def handle_photoframe_error(request: Request, exc: PhotoFrameError):
    if isinstance(exc, AuthRequiredError) and not request.url.path.startswith("/api/"):
        target = "/login?expired=true" if exc.code == "SESSION_EXPIRED" else "/login"
        return RedirectResponse(target, 302)
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.code, exc.message)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    setup_logging(settings.log_level, settings.log_dir if settings.log_to_file else None)

    if not settings.session_secret:
        raise ConfigError("SESSION_SECRET environment variable not set")
    if not settings.admin_password_from_env:
        logger.warning('ADMIN_PASSWORD environment variable not set. Using default password "admin123".')

    app = FastAPI(title="Photo Frame")

    # Shared state, one instance per app
    app.state.settings = settings
    app.state.image_index = ImageIndex(settings.upload_dir, settings.image_cache_expiry_ms / 1000)
    app.state.selector = RandomImageSelector(settings.max_recent_images)
    app.state.rate_limiter = PinRateLimiter(
        max_attempts=settings.pin_max_attempts,
        lockout_duration=settings.pin_lockout_minutes * 60,
        attempt_window=settings.pin_attempt_window_minutes * 60,
    )
    app.state.accounts = AccountStore(settings.accounts_file)
    app.state.folder_thumbs = FolderThumbnailCache(settings.upload_dir)

    # Ensure templates, static files, uploads and data exist
    ensure_assets()
    initialize_uploads(settings)
    app.state.accounts.init_storage()

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        session_cookie=SESSION_COOKIE,
        max_age=settings.session_max_age,
        same_site="lax",
        https_only=False,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        client = request.client.host if request.client else "-"
        logger.info("%s %s - %s", request.method, request.url.path, client)
        return await call_next(request)

    app.add_exception_handler(PhotoFrameError, handle_photoframe_error)

    # Static files
    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")
    app.mount("/uploads", StaticFiles(directory=str(settings.upload_dir)), name="uploads")

    admin = [Depends(require_admin)]
    authed = [Depends(require_auth)]

    # Views
    app.get("/")(index)
    app.get("/slideshow")(slideshow_page)
    app.get("/folder-selection")(folder_selection_page)
    app.get("/login")(login_page)
    app.get("/qr-upload")(qr_upload_login)
    app.get("/slideshow-login")(slideshow_login)
    app.get("/admin", dependencies=admin)(admin_page)
    app.get("/access-accounts", dependencies=admin)(access_accounts_page)
    app.get("/upload", dependencies=[Depends(require_role(ROLE_GUEST, ROLE_ADMIN))])(upload_page)

    # Public API
    app.get("/api/health")(health)
    app.get("/api/random-image")(random_image)
    app.get("/api/images/random")(random_image)
    app.get("/api/images/{image_id:path}/thumbnail")(image_thumbnail)
    app.get("/api/qr-code")(qr_code)

    # Folder thumbnail MUST come before the catch-all folder path route
    app.get("/api/folders")(folder_structure)
    app.get("/api/folders/{folder_path:path}/thumbnail")(folder_thumbnail)
    app.get("/api/folders/{folder_path:path}")(folder_structure)

    # Uploads: any authenticated role
    app.post("/api/upload", dependencies=authed)(upload_images)

    # Image management
    app.delete("/api/images/batch", dependencies=admin)(batch_delete_images)
    app.delete("/api/images", dependencies=admin)(delete_image)
    app.post("/api/images/rotate", dependencies=admin)(rotate_image)

    # Folder management
    app.get("/api/admin/folders", dependencies=admin)(admin_folder_contents)
    app.post("/api/admin/folders", dependencies=admin)(admin_create_folder)
    app.delete("/api/admin/folders", dependencies=admin)(admin_delete_folder)

    # Access accounts
    app.get("/api/access-accounts", dependencies=admin)(list_accounts)
    app.post("/api/access-accounts", dependencies=admin)(create_account)
    app.put("/api/access-accounts/{account_id}", dependencies=admin)(update_account)
    app.delete("/api/access-accounts/{account_id}", dependencies=admin)(delete_account)

    # PIN sessions
    app.post("/api/auth/pin")(authenticate_with_pin)
    app.get("/api/auth/session")(get_pin_session)
    app.delete("/api/auth/session")(clear_pin_session)

    # Admin sessions
    app.post("/api/auth/login")(login)
    app.post("/api/auth/logout")(logout)
    app.get("/api/auth/status")(get_auth_status)

    logger.info("Photo frame ready, serving %s", settings.upload_dir)
    return app


if __name__ == "__main__":
    # Allow `python app.py 3000`
    port = int(sys.argv[1]) if len(sys.argv) > 1 else load_settings().port
    print(f"→ Open http://localhost:{port}/slideshow")
    import uvicorn

    uvicorn.run("app:create_app", factory=True, host="0.0.0.0", port=port)
