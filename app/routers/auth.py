"""
Authentication router — login, registration, OAuth sign-in and sessions.

These are the only public (unauthenticated) endpoints besides /health.

Endpoints:
  POST /auth/register         — Create a local account + organization, start a session
  POST /auth/login            — Username/password login, start a session
  POST /auth/logout           — Clear the session cookie
  GET  /auth/me               — The current principal
  GET  /auth/google           — Redirect to Google sign-in
  GET  /auth/google/callback  — Google redirect target

Sessions:
  A successful sign-in sets an HTTP-only cookie holding a signed token that
  contains only the user id. The same token is returned in the body as
  session_token for API clients, which send it as a Bearer header.

Security audit notes:
  - Plaintext passwords exist only in memory during request processing
    and are never logged.
  - Provider access/refresh tokens are encrypted before storage and are
    never echoed back in a response.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import RedirectResponse

from app.config import settings
from app.context import RequestContext
from app.dependencies import get_auth_service, get_request_context
from app.integrations.google_oauth import GoogleOAuth, OAuthError
from app.models.user import User
from app.schemas.auth import (
    LoginRequest,
    RegisterRequest,
    SessionResponse,
)
from app.schemas.user import UserResponse
from app.security import create_oauth_state, create_session_token, verify_oauth_state
from app.services.auth_service import AuthService

router = APIRouter()

OAUTH_STATE_COOKIE = "poolops_oauth_state"


def get_google_oauth() -> GoogleOAuth:
    return GoogleOAuth()


def start_session(response: Response, auth: AuthService, user: User) -> str:
    """Set the session cookie for `user` and return the signed token."""
    token = create_session_token(auth.serialize(user))
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_MAX_AGE_MINUTES * 60,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
    )
    return token


@router.post(
    "/register",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a local account",
)
async def register(
    request: RegisterRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
):
    """
    Register a new account and its organization.

    The new user becomes org_admin of a freshly created organization and
    is signed in immediately.
    """
    user = await auth.register(
        username=request.username,
        email=request.email,
        password=request.password,
        name=request.name,
        organization_name=request.organization_name,
    )
    token = start_session(response, auth, user)
    return SessionResponse(user=UserResponse.model_validate(user), session_token=token)


@router.post(
    "/login",
    response_model=SessionResponse,
    summary="Authenticate with username and password",
)
async def login(
    request: LoginRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
):
    """
    Authenticate with username and password.

    Accounts still holding a legacy password are upgraded to Argon2 as
    part of a successful login.
    """
    result = await auth.authenticate(request.username, request.password)
    user = result.unwrap()
    token = start_session(response, auth, user)
    return SessionResponse(user=UserResponse.model_validate(user), session_token=token)


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="End the current session",
)
async def logout(response: Response):
    response.delete_cookie(settings.SESSION_COOKIE_NAME)


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get the current principal",
)
async def me(ctx: RequestContext = Depends(get_request_context)):
    return ctx.principal


@router.get("/google", summary="Start Google sign-in")
async def google_login(google: GoogleOAuth = Depends(get_google_oauth)):
    if not google.is_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Google sign-in is not configured",
        )
    nonce, signed_state = create_oauth_state()
    redirect = RedirectResponse(google.get_authorize_url(nonce), status_code=status.HTTP_302_FOUND)
    redirect.set_cookie(
        key=OAUTH_STATE_COOKIE,
        value=signed_state,
        max_age=settings.OAUTH_STATE_TTL_MINUTES * 60,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
    )
    return redirect


@router.get(
    "/google/callback",
    response_model=SessionResponse,
    summary="Google sign-in callback",
)
async def google_callback(
    request: Request,
    response: Response,
    code: str = Query(...),
    state: str | None = Query(None),
    google: GoogleOAuth = Depends(get_google_oauth),
    auth: AuthService = Depends(get_auth_service),
):
    """
    Finish Google sign-in: verify state, exchange the code, reconcile the profile.

    The profile is always the one Google returns for the exchanged code.
    There is no endpoint that accepts a profile from the client: reconcile()
    links accounts by email, so a caller-supplied profile would be a
    sign-in as anyone.

    The response reports `reactivated` so the client can route returning users.
    """
    if not verify_oauth_state(state, request.cookies.get(OAUTH_STATE_COOKIE)):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired OAuth state",
        )

    try:
        profile, tokens = await google.authenticate(code)
    except OAuthError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    result = await auth.reconcile(
        profile,
        access_token=tokens.get("access_token"),
        refresh_token=tokens.get("refresh_token"),
    )
    user = result.unwrap()
    token = start_session(response, auth, user)
    response.delete_cookie(OAUTH_STATE_COOKIE)
    return SessionResponse(
        user=UserResponse.model_validate(user),
        session_token=token,
        reactivated=result.reactivated,
    )
