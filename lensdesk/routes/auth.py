import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..auth import (
    SESSION_QUERY_KEY,
    AuthUser,
    can_access_cases,
    can_access_inbox,
    can_access_repairs,
    can_access_users,
    get_session,
    landing_path,
    role_display_name,
    session_cache_namespace,
    sign_in,
    sign_out,
)
from ..cache import QueryCache, get_query_cache
from ..schemas import Toast
from ..upstream import UpstreamClient, get_upstream

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


class SignInRequest(BaseModel):
    email: str
    password: str


class SessionResponse(BaseModel):
    user: Optional[AuthUser] = None
    roleLabel: Optional[str] = None
    permissions: dict = {}


def _session_payload(user: Optional[AuthUser]) -> dict:
    if not user:
        return SessionResponse().model_dump(mode="json")
    return SessionResponse(
        user=user,
        roleLabel=role_display_name(user.role),
        permissions={
            "users": can_access_users(user),
            "repairs": can_access_repairs(user),
            "cases": can_access_cases(user),
            "inbox": can_access_inbox(user),
        },
    ).model_dump(mode="json")


def _with_upstream_cookies(response: JSONResponse, upstream_response: httpx.Response) -> JSONResponse:
    """Pass the session cookies issued by the upstream API through to the browser"""
    for cookie in upstream_response.headers.get_list("set-cookie"):
        response.headers.append("set-cookie", cookie)
    return response


@router.get("/session")
async def session(upstream: UpstreamClient = Depends(get_upstream)):
    """Current session; an empty user when nobody is signed in"""
    user = await get_session(upstream)
    return _session_payload(user)


@router.post("/signin")
async def signin(data: SignInRequest, upstream: UpstreamClient = Depends(get_upstream)):
    """Sign in and tell the UI where to go next"""
    user, upstream_response = await sign_in(upstream, data.email, data.password)
    toast = Toast(title="Welkom terug!", description=f"Ingelogd als {user.greeting_name}")
    body = {
        **_session_payload(user),
        "redirect": landing_path(user),
        "toast": toast.model_dump(mode="json"),
    }
    return _with_upstream_cookies(JSONResponse(body), upstream_response)


@router.post("/signout")
async def signout(
    request: Request,
    upstream: UpstreamClient = Depends(get_upstream),
    cache: QueryCache = Depends(get_query_cache),
):
    upstream_response = await sign_out(upstream)
    namespace = session_cache_namespace(request)
    if namespace:
        cache.invalidate(namespace, SESSION_QUERY_KEY)
    toast = Toast(title="Uitgelogd", description="Je bent succesvol uitgelogd")
    return _with_upstream_cookies(JSONResponse({"toast": toast.model_dump(mode="json")}), upstream_response)
