"""Session-based authentication helpers and FastAPI dependencies."""
import hmac
import time
from typing import Any, Callable, Optional

import bcrypt
from fastapi import Request

from access import Admin, PinRestricted, RequesterContext, Unauthenticated
from errors import AuthRequiredError, ForbiddenError
from logging_util import get_logger

logger = get_logger(__name__)

ROLE_ADMIN = "admin"
ROLE_GUEST = "invitado"
ROLE_SLIDESHOW = "slideshow"


def verify_admin_password(password: str, configured: str) -> bool:
    """Compare against a plain password or a bcrypt hash ($2...)."""
    if configured.startswith("$2"):
        try:
            return bcrypt.checkpw(password.encode("utf-8"), configured.encode("utf-8"))
        except ValueError:
            logger.error("ADMIN_PASSWORD looks like a bcrypt hash but is malformed")
            return False
    return hmac.compare_digest(password.encode("utf-8"), configured.encode("utf-8"))


def start_session(session: dict, role: str) -> None:
    session["authenticated"] = True
    session["role"] = role
    session["loginTime"] = time.time()


def auth_status(session: dict) -> dict[str, Any]:
    return {
        "authenticated": bool(session.get("authenticated")),
        "role": session.get("role"),
        "loginTime": session.get("loginTime"),
    }


def requester_context(session: dict) -> RequesterContext:
    if session.get("authenticated"):
        return Admin()
    account = session.get("accessAccount") or {}
    folders = account.get("assignedFolders") or []
    if folders:
        return PinRestricted(assigned_folders=tuple(folders), account_id=account.get("id"))
    return Unauthenticated()


def client_address(request: Request, trust_proxy: bool = True) -> str:
    """Requester key for rate limiting; trusts one proxy hop when enabled."""
    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[-1].strip()
    return request.client.host if request.client else "unknown"


def require_auth(request: Request) -> dict:
    """Dependency: an authenticated, unexpired session."""
    session = request.session
    if not session.get("authenticated"):
        logger.info("Authentication failed for %s", request.url.path)
        raise AuthRequiredError()

    max_age = request.app.state.settings.session_max_age
    login_time: Optional[float] = session.get("loginTime")
    if login_time is not None and time.time() - login_time > max_age:
        logger.info("Session expired for %s", request.url.path)
        session.clear()
        raise AuthRequiredError("Session expired", code="SESSION_EXPIRED")
    return session


def require_role(*roles: str) -> Callable[[Request], dict]:
    def dependency(request: Request) -> dict:
        session = require_auth(request)
        if session.get("role") not in roles:
            raise ForbiddenError()
        return session

    return dependency


require_admin = require_role(ROLE_ADMIN)
