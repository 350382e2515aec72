"""FastAPI routes for photoframe."""
import base64
import io
import secrets
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional
from urllib.parse import quote

import qrcode
from fastapi import Body, File, Form, Query, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse, Response
from jinja2 import Environment, FileSystemLoader, select_autoescape

import folders as folder_ops
from access import resolve_eligible_images
from auth import (
    ROLE_ADMIN,
    ROLE_GUEST,
    ROLE_SLIDESHOW,
    auth_status,
    client_address,
    requester_context,
    start_session,
    verify_admin_password,
)
from errors import (
    FolderNotFoundError,
    ImageNotFoundError,
    InvalidImageError,
    InvalidPinError,
    PhotoFrameError,
    RateLimitedError,
    ThumbnailNotFoundError,
    ValidationError,
)
from imaging import make_thumbnail, read_image_meta, rotate_image_file, save_upload_as_jpeg
from logging_util import get_logger
from models import iso
from scanner import is_image_name
from utils import normalize_folder, resolve_under_root, strip_uploads_prefix

logger = get_logger(__name__)

# Configuration
APP_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = APP_DIR / "templates"
UPLOAD_TYPES = {"jpeg", "jpg", "png", "gif", "webp", "bmp", "avif", "heif"}
THUMB_HEADERS = {"Cache-Control": "public, max-age=3600"}

# Jinja environment
jinja_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)


def render(name: str, **ctx) -> HTMLResponse:
    """Render template with context."""
    template = jinja_env.get_template(name)
    ctx.setdefault("title", "Photo Frame")
    return HTMLResponse(template.render(**ctx))


def _state(request: Request):
    return request.app.state


def _content_root(request: Request) -> Path:
    return _state(request).settings.upload_dir


def _invalidate(request: Request) -> None:
    """Drop cached views of the content root after a mutation."""
    _state(request).image_index.invalidate()
    _state(request).folder_thumbs.clear()


def _resolve_image(request: Request, path: Optional[str]) -> Path:
    rel = strip_uploads_prefix(path or "")
    if not rel:
        raise ValidationError("Image path is required")
    full = resolve_under_root(_content_root(request), Path(rel))
    if not full.is_file() or not is_image_name(full.name):
        raise ImageNotFoundError()
    return full


# ---------- Views ----------

def index():
    """Root route redirects to the slideshow."""
    return RedirectResponse("/slideshow", 302)


def slideshow_page(request: Request, folder: Optional[str] = Query(None)):
    settings = _state(request).settings
    return render(
        "slideshow.html",
        title="Slideshow",
        interval=settings.slideshow_interval_ms,
        folder=folder or "",
        account=request.session.get("accessAccount"),
    )


def folder_selection_page():
    return render("folder_selection.html", title="Choose Folder")


def login_page(request: Request, error: Optional[str] = Query(None), expired: Optional[str] = Query(None)):
    if request.session.get("authenticated"):
        target = "/admin" if request.session.get("role") == ROLE_ADMIN else "/"
        return RedirectResponse(target, 302)
    return render("login.html", title="Login", error=error, expired=expired)


def qr_upload_login(request: Request):
    """QR code entry point: guest session for uploading."""
    start_session(request.session, ROLE_GUEST)
    logger.info("Guest login from %s", client_address(request))
    return RedirectResponse("/upload", 302)


def slideshow_login(request: Request):
    start_session(request.session, ROLE_SLIDESHOW)
    logger.info("Slideshow login from %s", client_address(request))
    return RedirectResponse("/slideshow", 302)


def admin_page(request: Request):
    return render("admin.html", title="Admin", upload_folder=_state(request).settings.upload_folder)


def access_accounts_page():
    return render("access_accounts.html", title="Access Accounts")


def upload_page(request: Request):
    return render("upload.html", title="Upload Photos", role=request.session.get("role"))


# ---------- Auth ----------

async def login(request: Request):
    """Admin login; accepts JSON or a form post."""
    is_json = request.headers.get("content-type", "").startswith("application/json")
    if is_json:
        try:
            body = await request.json()
        except ValueError:
            body = {}
    else:
        body = await request.form()
    password = body.get("password") if hasattr(body, "get") else None

    if not password:
        if is_json:
            return JSONResponse({"message": "Password is required"}, status_code=400)
        return RedirectResponse("/login?error=missing", 303)

    settings = _state(request).settings
    if verify_admin_password(str(password), settings.admin_password):
        start_session(request.session, ROLE_ADMIN)
        logger.info("Admin login successful from %s", client_address(request, settings.trust_proxy))
        if is_json:
            return JSONResponse({"message": "Login successful", "redirect": "/admin"})
        return RedirectResponse("/admin", 303)

    logger.info("Admin login failed from %s", client_address(request, settings.trust_proxy))
    if is_json:
        return JSONResponse({"message": "Invalid password"}, status_code=401)
    return RedirectResponse("/login?error=invalid", 303)


def logout(request: Request):
    request.session.clear()
    return RedirectResponse("/login", 303)


def get_auth_status(request: Request):
    return auth_status(request.session)


def authenticate_with_pin(request: Request, pin: Any = Body(None, embed=True)):
    """Exchange an access-account PIN for a folder-restricted session."""
    state = _state(request)
    ip = client_address(request, state.settings.trust_proxy)

    status = state.rate_limiter.check(ip)
    if not status.allowed:
        logger.warning("Rate limit exceeded for %s", ip)
        raise RateLimitedError(status.message, status.remaining_minutes)

    pin = "" if pin is None else str(pin).strip()
    if not pin:
        raise ValidationError("PIN is required", code="PIN_REQUIRED")

    account = state.accounts.authenticate(pin)
    if account is None:
        state.rate_limiter.record_failure(ip)
        after = state.rate_limiter.check(ip)
        remaining = after.attempts_remaining if after.allowed else 0
        logger.info("Failed PIN attempt from %s, attempts remaining: %d", ip, remaining)
        raise InvalidPinError(remaining)

    state.rate_limiter.record_success(ip)
    logger.info("PIN authentication from %s for account %s", ip, account.name)
    request.session["accessAccount"] = account.session_info()
    return {"success": True, "account": account.session_info()}


def get_pin_session(request: Request):
    account = request.session.get("accessAccount")
    if account:
        return {"authenticated": True, "account": account}
    return {"authenticated": False}


def clear_pin_session(request: Request):
    request.session.clear()
    return {"success": True, "message": "Session cleared"}


# ---------- Access accounts ----------

def list_accounts(request: Request):
    return {"accounts": [a.to_record() for a in _state(request).accounts.list_accounts()]}


def create_account(
    request: Request,
    name: Any = Body(None, embed=True),
    pin: Any = Body(None, embed=True),
    assigned_folders: Optional[List[str]] = Body(None, embed=True, alias="assignedFolders"),
):
    account = _state(request).accounts.create_account(
        None if name is None else str(name),
        None if pin is None else str(pin),
        assigned_folders,
    )
    return JSONResponse({"success": True, "account": account.to_record()}, status_code=201)


def update_account(
    request: Request,
    account_id: str,
    name: Any = Body(None, embed=True),
    pin: Any = Body(None, embed=True),
    assigned_folders: Optional[List[str]] = Body(None, embed=True, alias="assignedFolders"),
):
    account = _state(request).accounts.update_account(
        account_id,
        None if name is None else str(name),
        None if pin is None else str(pin),
        assigned_folders,
    )
    return {"success": True, "account": account.to_record()}


def delete_account(request: Request, account_id: str):
    _state(request).accounts.delete_account(account_id)
    return {"success": True, "message": "Account deleted successfully"}


# ---------- Images ----------

def _image_payload(request: Request, image) -> dict[str, Any]:
    base = str(request.base_url).rstrip("/")
    rel_url = f"/uploads/{quote(image.id)}"
    size = width = height = created = None
    try:
        stat = Path(image.path).stat()
        size = stat.st_size
        created = iso(datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc))
        width, height = read_image_meta(Path(image.path))
    except OSError:
        pass
    return {
        "id": image.id,
        "filename": image.filename,
        "path": rel_url,
        "folder": image.folder,
        "url": f"{base}{rel_url}",
        "thumbnail": f"{base}{folder_ops.image_thumbnail_url(image.id)}",
        "metadata": {
            "size": size,
            "dimensions": {"width": width, "height": height},
            "createdAt": created,
        },
    }


def random_image(request: Request, folder: Optional[str] = Query(None)):
    """Pick a random image the requester may see, avoiding recent repeats."""
    state = _state(request)
    all_images = state.image_index.get_all_images()
    requester = requester_context(request.session)
    pool = resolve_eligible_images(all_images, requester, folder)
    image = state.selector.select(pool)
    logger.info("Selected image %s (pool %d, folder filter %s)", image.id, len(pool), folder or "none")
    return {"success": True, "image": _image_payload(request, image)}


def image_thumbnail(request: Request, image_id: str):
    full = _resolve_image(request, image_id)
    try:
        data = make_thumbnail(full)
    except OSError as e:
        raise InvalidImageError(f"Could not read image: {e}")
    return Response(content=data, media_type="image/jpeg", headers=THUMB_HEADERS)


def _check_upload(upload: UploadFile, data: bytes, max_bytes: int) -> None:
    name = upload.filename or ""
    ext = Path(name).suffix.lower().lstrip(".")
    mimetype = (upload.content_type or "").lower()
    if ext not in UPLOAD_TYPES or not any(t in mimetype for t in UPLOAD_TYPES):
        raise InvalidImageError(f"Invalid file type: {name}. Images only.")
    if len(data) > max_bytes:
        mb = max_bytes // (1024 * 1024)
        raise InvalidImageError(f"File size too large. Maximum size is {mb}MB.")


def upload_images(
    request: Request,
    images: List[UploadFile] = File(...),
    folder: Optional[str] = Form(None),
):
    """Store uploaded photos as auto-rotated JPEGs."""
    state = _state(request)
    settings = state.settings
    root = settings.upload_dir

    target_rel = settings.upload_folder
    if folder and request.session.get("role") == ROLE_ADMIN:
        target_rel = normalize_folder(folder)
        if not resolve_under_root(root, Path(target_rel)).is_dir():
            raise FolderNotFoundError()
    target_dir = resolve_under_root(root, Path(target_rel)) if target_rel else root.resolve()
    target_dir.mkdir(parents=True, exist_ok=True)

    payloads = []
    for upload in images:
        data = upload.file.read()
        _check_upload(upload, data, settings.max_upload_bytes)
        payloads.append((upload, data))

    processed = []
    try:
        for upload, data in payloads:
            filename = f"images-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}.jpg"
            dest = target_dir / filename
            size = save_upload_as_jpeg(data, dest, settings.image_quality)
            rel = f"{target_rel}/{filename}" if target_rel else filename
            processed.append({
                "filename": filename,
                "originalname": upload.filename,
                "path": f"/uploads/{rel}",
                "size": size,
            })
    finally:
        if processed:
            _invalidate(request)

    logger.info("Uploaded %d images to %s", len(processed), target_rel or "/")
    return {"message": "Images uploaded successfully", "files": processed}


def delete_image(request: Request, path: Optional[str] = Query(None)):
    full = _resolve_image(request, path)
    full.unlink()
    _invalidate(request)
    logger.info("Deleted image %s", path)
    return {"message": "Image deleted successfully"}


def batch_delete_images(request: Request, paths: Any = Body(None, embed=True)):
    if not isinstance(paths, list) or not paths:
        raise ValidationError("Invalid paths provided", code="INVALID_PATHS")

    deleted = failed = 0
    errors = []
    try:
        for image_path in paths:
            try:
                full = _resolve_image(request, str(image_path))
                full.unlink()
                deleted += 1
            except ImageNotFoundError:
                failed += 1
                errors.append(f"Image not found: {image_path}")
            except (OSError, PhotoFrameError) as e:
                logger.warning("Failed to delete %s: %s", image_path, e)
                failed += 1
                errors.append(f"Failed to delete: {image_path}")
    finally:
        if deleted:
            _invalidate(request)

    results = {"deletedCount": deleted, "failedCount": failed, "errors": errors}
    if failed:
        return JSONResponse(
            {"message": f"Deleted {deleted} images, failed to delete {failed}", **results},
            status_code=207,
        )
    return {"message": f"Successfully deleted {deleted} images", **results}


def rotate_image(request: Request, path: Optional[str] = Body(None, embed=True), angle: int = Body(90, embed=True)):
    full = _resolve_image(request, path)
    if angle % 90 != 0:
        raise ValidationError("Angle must be a multiple of 90 degrees", code="INVALID_ANGLE")

    try:
        rotate_image_file(full, angle, _state(request).settings.image_quality)
    except OSError as e:
        raise InvalidImageError(f"Could not read image: {e}")
    _invalidate(request)

    direction = "clockwise" if angle > 0 else "counter-clockwise"
    logger.info("Rotated %s by %d", path, angle)
    return {"message": f"Image rotated {abs(angle)}° {direction} successfully"}


# ---------- Folders ----------

def folder_structure(request: Request, folder_path: str = ""):
    return folder_ops.folder_structure(_content_root(request), folder_path)


def folder_thumbnail(request: Request, folder_path: str):
    data = _state(request).folder_thumbs.get(folder_path)
    if data is None:
        raise ThumbnailNotFoundError()
    return Response(content=data, media_type="image/jpeg", headers=THUMB_HEADERS)


def admin_folder_contents(request: Request, path: str = Query("")):
    return folder_ops.folder_contents(_content_root(request), strip_uploads_prefix(path))


def admin_create_folder(request: Request, name: Optional[str] = Body(None, embed=True), path: str = Body("", embed=True)):
    rel = folder_ops.create_folder(_content_root(request), name or "", strip_uploads_prefix(path))
    return {"message": "Folder created successfully", "path": rel}


def admin_delete_folder(request: Request, path: str = Query("")):
    folder_ops.delete_folder(_content_root(request), strip_uploads_prefix(path))
    _invalidate(request)
    return {"message": "Folder deleted successfully"}


# ---------- Misc ----------

def health():
    return {"status": "ok", "timestamp": iso(datetime.now(timezone.utc))}


def qr_code(request: Request):
    """Data URL of a QR code pointing guests at the upload login."""
    target = str(request.base_url).rstrip("/") + "/qr-upload"
    img = qrcode.make(target)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    encoded = base64.b64encode(buf.getvalue()).decode("ascii")
    return PlainTextResponse(f"data:image/png;base64,{encoded}")
