"""Local and Facebook login backed by the signed session cookie."""

import logging
import secrets
from typing import Optional
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from passlib.context import CryptContext
from sqlmodel import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config import (
    FACEBOOK_CALLBACK_URL,
    FACEBOOK_CLIENT_ID,
    FACEBOOK_CLIENT_SECRET,
    FACEBOOK_DIALOG_URL,
    FACEBOOK_GRAPH_URL,
)
from database import get_session
from models import User
from schemas import LoginRequest, RegisterRequest, SessionUser

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

SESSION_USER_KEY = "user"
SESSION_STATE_KEY = "facebook_state"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def login_user(request: Request, user: User) -> SessionUser:
    session_user = SessionUser.from_user(user)
    request.session[SESSION_USER_KEY] = session_user.model_dump()
    return session_user


def current_user(request: Request) -> Optional[SessionUser]:
    """Session user, or None for anonymous requests."""
    data = request.session.get(SESSION_USER_KEY)
    if not data:
        return None
    return SessionUser(**data)


def require_user(user: Optional[SessionUser] = Depends(current_user)) -> SessionUser:
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Login required")
    return user


# --- Facebook ---

class FacebookAuthError(Exception):
    pass


def facebook_login_url(state: str) -> str:
    params = {
        "client_id": FACEBOOK_CLIENT_ID,
        "redirect_uri": FACEBOOK_CALLBACK_URL,
        "state": state,
        "scope": "email",
    }
    return f"{FACEBOOK_DIALOG_URL}?{urlencode(params)}"


async def fetch_facebook_profile(code: str) -> dict:
    """Exchange an authorization code for the user's Facebook profile (id, name)."""
    async with httpx.AsyncClient(timeout=10.0) as client:
        token_response = await client.get(
            f"{FACEBOOK_GRAPH_URL}/oauth/access_token",
            params={
                "client_id": FACEBOOK_CLIENT_ID,
                "client_secret": FACEBOOK_CLIENT_SECRET,
                "redirect_uri": FACEBOOK_CALLBACK_URL,
                "code": code,
            },
        )
        if token_response.status_code != 200:
            raise FacebookAuthError(f"Token exchange failed: HTTP {token_response.status_code}")
        access_token = token_response.json().get("access_token")
        if not access_token:
            raise FacebookAuthError("Token exchange returned no access token")

        profile_response = await client.get(
            f"{FACEBOOK_GRAPH_URL}/me",
            params={"fields": "id,name", "access_token": access_token},
        )
        if profile_response.status_code != 200:
            raise FacebookAuthError(f"Profile fetch failed: HTTP {profile_response.status_code}")
        profile = profile_response.json()

    if not profile.get("id"):
        raise FacebookAuthError("Profile has no id")
    return profile


async def upsert_facebook_user(session: AsyncSession, profile: dict) -> User:
    statement = select(User).where(User.provider == "facebook", User.provider_id == profile["id"])
    result = await session.execute(statement)
    user = result.scalars().first()
    name = profile.get("name") or f"Facebook user {profile['id']}"

    if user is None:
        user = User(
            username=f"facebook:{profile['id']}",
            display_name=name,
            provider="facebook",
            provider_id=profile["id"],
        )
    else:
        user.display_name = name

    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


# --- Routes ---

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(data: RegisterRequest, request: Request, session: AsyncSession = Depends(get_session)):
    user = User(
        username=data.username,
        display_name=data.display_name or data.username,
        provider="local",
        password_hash=hash_password(data.password),
    )
    try:
        session.add(user)
        await session.commit()
        await session.refresh(user)
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already taken")

    logger.info(f"Registered local user {user.username}")
    return {"success": True, "user": login_user(request, user)}


@router.get("/login")
async def login_options():
    return {"methods": {"local": "POST /login", "facebook": "/auth/facebook"}}


@router.post("/login")
async def login(data: LoginRequest, request: Request, session: AsyncSession = Depends(get_session)):
    result = await session.execute(select(User).where(User.username == data.username, User.provider == "local"))
    user = result.scalars().first()

    if user is None or not user.password_hash or not verify_password(data.password, user.password_hash):
        logger.warning(f"Failed login for {data.username}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password")

    return {"success": True, "user": login_user(request, user)}


@router.get("/logout")
async def logout(request: Request):
    request.session.clear()
    return RedirectResponse("/login", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/auth/facebook")
async def facebook_login(request: Request):
    if not FACEBOOK_CLIENT_ID:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Facebook login is not configured")
    state = secrets.token_urlsafe(16)
    request.session[SESSION_STATE_KEY] = state
    return RedirectResponse(facebook_login_url(state), status_code=status.HTTP_302_FOUND)


@router.get("/auth/facebook/callback")
async def facebook_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    session: AsyncSession = Depends(get_session),
):
    expected_state = request.session.pop(SESSION_STATE_KEY, None)
    if not code or not state or state != expected_state:
        logger.warning("Facebook callback rejected: missing code or state mismatch")
        return RedirectResponse("/login", status_code=status.HTTP_302_FOUND)

    try:
        profile = await fetch_facebook_profile(code)
    except (FacebookAuthError, httpx.HTTPError) as e:
        logger.error(f"Facebook login failed: {e}")
        return RedirectResponse("/login", status_code=status.HTTP_302_FOUND)

    user = await upsert_facebook_user(session, profile)
    login_user(request, user)
    logger.info(f"Facebook user {user.provider_id} logged in")
    return RedirectResponse("/content", status_code=status.HTTP_302_FOUND)
