# =============================================================
# 🪪 IDENTITY — Who is logging in (LibraryFlow)
# Demo stand-in or OIDC id-token verification, picked at startup.
# =============================================================
import logging
from typing import Dict, Optional, Sequence

import requests
from fastapi import Request
from jose import JWTError, jwt

from config import Settings

logger = logging.getLogger("uvicorn")

DEMO_CLAIMS = {
    "sub": "demo-user-123",
    "email": "demo@libraryflow.com",
    "first_name": "Demo",
    "last_name": "User",
    "profile_image_url": "https://images.unsplash.com/photo-1472099645785-5658abf4ff4e?w=150&h=150&fit=crop&crop=face",
}


class IdentityError(Exception):
    """The presented identity could not be verified."""


class IdentityProviderUnavailable(Exception):
    """The identity provider could not be reached."""


def normalize_claims(claims: Dict) -> Dict:
    return {
        "sub": str(claims["sub"]),
        "email": claims.get("email"),
        "first_name": claims.get("first_name") or claims.get("given_name"),
        "last_name": claims.get("last_name") or claims.get("family_name"),
        "profile_image_url": claims.get("profile_image_url") or claims.get("picture"),
    }


class DemoIdentity:
    mode = "demo"

    def resolve(self, id_token: Optional[str] = None) -> Dict:
        return dict(DEMO_CLAIMS)


class OidcIdentity:
    mode = "oidc"

    def __init__(
        self,
        issuer_url: str,
        client_id: str,
        algorithms: Sequence[str] = ("RS256",),
        timeout: float = 10,
    ):
        self.issuer_url = issuer_url
        self.client_id = client_id
        self.algorithms = list(algorithms)
        self.timeout = timeout
        self._jwks: Optional[Dict] = None

    def discover(self) -> Dict:
        url = self.issuer_url.rstrip("/") + "/.well-known/openid-configuration"
        response = requests.get(url, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def jwks(self, refresh: bool = False) -> Dict:
        if self._jwks is None or refresh:
            try:
                config = self.discover()
                response = requests.get(config["jwks_uri"], timeout=self.timeout)
                response.raise_for_status()
                self._jwks = response.json()
            except (requests.RequestException, KeyError, ValueError) as e:
                logger.error(f"❌ OIDC discovery failed for {self.issuer_url}: {e}")
                raise IdentityProviderUnavailable(str(e))
        return self._jwks

    def resolve(self, id_token: Optional[str] = None) -> Dict:
        if not id_token:
            raise IdentityError("Missing idToken")
        keys = self.jwks()
        try:
            kid = jwt.get_unverified_header(id_token).get("kid")
            if kid and kid not in {key.get("kid") for key in keys.get("keys", [])}:
                # Signing key rotated since the key set was cached
                logger.info(f"🔄 Unknown key id {kid}, refreshing JWKS")
                keys = self.jwks(refresh=True)
            claims = jwt.decode(
                id_token,
                keys,
                algorithms=self.algorithms,
                audience=self.client_id,
                issuer=self.issuer_url,
                options={"verify_at_hash": False},
            )
        except JWTError as e:
            raise IdentityError(str(e))
        if not claims.get("sub"):
            raise IdentityError("Token has no subject")
        return normalize_claims(claims)


def build_identity(settings: Settings):
    if settings.auth_mode == "oidc":
        return OidcIdentity(settings.oidc_issuer_url, settings.oidc_client_id)
    return DemoIdentity()


def get_identity(request: Request):
    return request.app.state.identity
