# =============================================================================
# Google OAuth (authorization-code flow)
# =============================================================================
#
# Setup:
#   1. Go to https://console.cloud.google.com/apis/credentials
#   2. Create OAuth 2.0 Client ID (Web application)
#   3. Add authorized redirect URI: https://yourdomain.com/auth/google/callback
#   4. Set env vars:
#      - GOOGLE_CLIENT_ID=...
#      - GOOGLE_CLIENT_SECRET=...
#      - GOOGLE_REDIRECT_URI=...
#
# The userinfo response is converted into the provider-neutral OAuthProfile
# consumed by IdentityReconciler.
# =============================================================================

import logging
from typing import Any
from urllib.parse import urlencode

import httpx

from app.config import settings
from app.schemas.auth import OAuthEmail, OAuthPhoto, OAuthProfile

logger = logging.getLogger(__name__)


class OAuthError(Exception):
    """OAuth flow error (provider unreachable, bad code, misconfiguration)."""
    pass


class GoogleOAuth:
    """Google OAuth 2.0 client."""

    AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"
    SCOPES = ("openid", "email", "profile")

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self.client_id = settings.GOOGLE_CLIENT_ID
        self.client_secret = settings.GOOGLE_CLIENT_SECRET
        self.redirect_uri = settings.GOOGLE_REDIRECT_URI
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def get_authorize_url(self, state: str) -> str:
        """
        Get URL to redirect the user to for Google sign-in.

        Args:
            state: CSRF nonce, echoed back by Google on the callback
        """
        if not self.is_configured:
            raise OAuthError("Google OAuth not configured")

        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.SCOPES),
            "access_type": "offline",
            "prompt": "select_account",
            "state": state,
        }
        return f"{self.AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> dict[str, Any]:
        """
        Exchange an authorization code for tokens.

        Returns:
            Token response with access_token and, when granted, refresh_token
        """
        if not self.is_configured:
            raise OAuthError("Google OAuth not configured")

        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(
                self.TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "redirect_uri": self.redirect_uri,
                    "grant_type": "authorization_code",
                },
            )

        if response.status_code != 200:
            logger.error("Google token exchange failed with status %s", response.status_code)
            raise OAuthError(f"Token exchange failed: {response.status_code}")
        return response.json()

    async def get_profile(self, access_token: str) -> OAuthProfile:
        """Fetch the signed-in user's profile from Google."""
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.get(
                self.USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )

        if response.status_code != 200:
            logger.error("Google userinfo failed with status %s", response.status_code)
            raise OAuthError(f"Failed to get user info: {response.status_code}")

        data = response.json()
        return OAuthProfile(
            id=data.get("sub") or data.get("id"),
            emails=[OAuthEmail(value=data["email"], verified=data.get("email_verified"))]
            if data.get("email") else [],
            display_name=data.get("name"),
            photos=[OAuthPhoto(value=data["picture"])] if data.get("picture") else [],
        )

    async def authenticate(self, code: str) -> tuple[OAuthProfile, dict[str, Any]]:
        """
        Complete the flow: exchange the code, then fetch the profile.

        Returns:
            (profile, tokens)
        """
        tokens = await self.exchange_code(code)
        profile = await self.get_profile(tokens["access_token"])
        return profile, tokens
