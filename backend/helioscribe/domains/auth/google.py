"""
Google OAuth - 授权URL生成与授权码交换

The login and registration flows use distinct redirect URIs, so each gets its
own immutable ``GoogleOAuthConfig`` and client instance.
"""
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode
import logging

import httpx

from helioscribe.common.config import settings
from helioscribe.common.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

_GOOGLE_ISSUERS = {"accounts.google.com", "https://accounts.google.com"}


@dataclass(frozen=True)
class GoogleOAuthConfig:
    client_id: str
    client_secret: str
    redirect_uri: str


@dataclass(frozen=True)
class GoogleIdentity:
    sub: str
    email: Optional[str]
    email_verified: bool
    given_name: Optional[str] = None
    family_name: Optional[str] = None
    picture: Optional[str] = None


class GoogleOAuthClient:
    """Authorization-code flow against Google."""

    AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"

    def __init__(self, config: GoogleOAuthConfig, timeout: float = 10.0):
        self.config = config
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.config.client_id and self.config.client_secret)

    def authorization_url(self, state: Optional[str] = None) -> str:
        """生成 Google OAuth 授权 URL"""
        params = {
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "access_type": "offline",
            "prompt": "consent",
        }
        if state:
            params["state"] = state
        return f"{self.AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> GoogleIdentity:
        """用授权码换取 id_token 并校验其声明"""
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            token_response = await client.post(
                self.TOKEN_URL,
                data={
                    "client_id": self.config.client_id,
                    "client_secret": self.config.client_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": self.config.redirect_uri,
                },
            )
            if token_response.status_code != 200:
                logger.error(f"Google token exchange failed: {token_response.text}")
                raise ExternalServiceError("Google token exchange failed")

            id_token = token_response.json().get("id_token")
            if not id_token:
                raise ExternalServiceError("No id_token in Google token response")

            info_response = await client.get(self.TOKENINFO_URL, params={"id_token": id_token})
            if info_response.status_code != 200:
                logger.error(f"Google id_token verification failed: {info_response.text}")
                raise ExternalServiceError("Google id_token verification failed")

        claims = info_response.json()
        if claims.get("aud") != self.config.client_id or claims.get("iss") not in _GOOGLE_ISSUERS:
            logger.error(f"Google id_token has unexpected aud/iss: {claims.get('aud')} {claims.get('iss')}")
            raise ExternalServiceError("Google id_token audience mismatch")

        return GoogleIdentity(
            sub=claims["sub"],
            email=claims.get("email"),
            email_verified=str(claims.get("email_verified", "")).lower() == "true",
            given_name=claims.get("given_name"),
            family_name=claims.get("family_name"),
            picture=claims.get("picture"),
        )


@dataclass(frozen=True)
class GoogleOAuthClients:
    login: GoogleOAuthClient
    register: GoogleOAuthClient


_clients: Optional[GoogleOAuthClients] = None


def get_google_clients() -> GoogleOAuthClients:
    global _clients
    if _clients is None:
        client_id = settings.google_client_id or ""
        client_secret = settings.google_client_secret or ""
        _clients = GoogleOAuthClients(
            login=GoogleOAuthClient(
                GoogleOAuthConfig(client_id, client_secret, settings.google_login_redirect_uri)
            ),
            register=GoogleOAuthClient(
                GoogleOAuthConfig(client_id, client_secret, settings.google_register_redirect_uri)
            ),
        )
    return _clients
