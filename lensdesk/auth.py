import hashlib
import logging
from enum import Enum
from typing import Optional

import httpx
from fastapi import Depends, Request
from pydantic import BaseModel

from .cache import QueryCache, get_query_cache
from .config import SESSION_COOKIE_NAME
from .errors import Forbidden, NotAuthenticated, UpstreamError
from .upstream import UpstreamClient, get_upstream

logger = logging.getLogger(__name__)

SESSION_QUERY_KEY = ("/api/auth/session",)


class Role(str, Enum):
    ADMIN = "ADMIN"
    SUPPORT = "SUPPORT"
    TECHNICUS = "TECHNICUS"


ROLE_DISPLAY_NAMES = {
    Role.ADMIN.value: "Beheerder",
    Role.SUPPORT.value: "Support",
    Role.TECHNICUS.value: "Technicus",
}


class AuthUser(BaseModel):
    id: str
    email: str
    role: str
    firstName: Optional[str] = None
    lastName: Optional[str] = None

    @property
    def greeting_name(self) -> str:
        return self.firstName or self.email


# ============================================================================
# SESSION CALLS
# ============================================================================


async def get_session(upstream: UpstreamClient) -> Optional[AuthUser]:
    """Current session user, or None when the upstream reports no session (401)"""
    try:
        data = await upstream.get("/api/auth/session")
    except UpstreamError as e:
        if e.status_code == 401:
            return None
        logger.error(f"❌ Session check failed: {e.upstream_message}")
        raise
    user = (data or {}).get("user")
    return AuthUser(**user) if user else None


async def sign_in(upstream: UpstreamClient, email: str, password: str) -> tuple[AuthUser, httpx.Response]:
    """Sign in upstream; returns the user and the raw response (for its cookies)"""
    try:
        response = await upstream.post_raw("/api/auth/signin", {"email": email, "password": password})
    except UpstreamError as e:
        logger.warning(f"⚠️ Sign in failed for {email}: {e.upstream_message}")
        raise e.with_toast("Inloggen mislukt")

    user = AuthUser(**response.json()["user"])
    logger.info(f"✅ Signed in {user.email} ({user.role})")
    return user, response


async def sign_out(upstream: UpstreamClient) -> httpx.Response:
    try:
        return await upstream.post_raw("/api/auth/signout")
    except UpstreamError as e:
        raise e.with_toast("Uitloggen mislukt")


def landing_path(user: AuthUser) -> str:
    """Where to send a user after sign in"""
    if user.role == Role.TECHNICUS.value:
        return "/repairs"
    return "/"


# ============================================================================
# ROLE-BASED ACCESS CONTROL
# ============================================================================


def has_role(user: Optional[AuthUser], roles) -> bool:
    if not user:
        return False
    return user.role in [r.value if isinstance(r, Role) else r for r in roles]


def is_admin(user: Optional[AuthUser]) -> bool:
    return has_role(user, [Role.ADMIN])


def can_access_users(user: Optional[AuthUser]) -> bool:
    return has_role(user, [Role.ADMIN])


def can_access_repairs(user: Optional[AuthUser]) -> bool:
    return has_role(user, [Role.ADMIN, Role.TECHNICUS])


def can_access_cases(user: Optional[AuthUser]) -> bool:
    return has_role(user, [Role.ADMIN, Role.SUPPORT])


def can_access_inbox(user: Optional[AuthUser]) -> bool:
    return has_role(user, [Role.ADMIN, Role.SUPPORT])


def role_display_name(role: str) -> str:
    return ROLE_DISPLAY_NAMES.get(role, role)


# ============================================================================
# FASTAPI DEPENDENCIES
# ============================================================================


def session_cache_namespace(request: Request) -> Optional[str]:
    """Cache namespace for session lookups, derived from the session cookie"""
    cookie = request.cookies.get(SESSION_COOKIE_NAME)
    if not cookie:
        return None
    return "session-" + hashlib.sha256(cookie.encode()).hexdigest()[:32]


async def get_current_user(
    request: Request,
    upstream: UpstreamClient = Depends(get_upstream),
    cache: QueryCache = Depends(get_query_cache),
) -> AuthUser:
    """Resolve the signed-in user from the upstream session"""
    namespace = session_cache_namespace(request)
    if namespace is None:
        raise NotAuthenticated()

    async def load():
        user = await get_session(upstream)
        return user.model_dump() if user else None

    data = await cache.fetch(namespace, SESSION_QUERY_KEY, load)
    if not data:
        raise NotAuthenticated()
    return AuthUser(**data)


def require_roles(*roles: Role):
    """Dependency factory restricting an endpoint to the given roles"""

    async def dependency(current_user: AuthUser = Depends(get_current_user)) -> AuthUser:
        if not has_role(current_user, roles):
            logger.warning(f"⚠️ {current_user.email} ({current_user.role}) denied, needs {[r.value for r in roles]}")
            raise Forbidden()
        return current_user

    return dependency
