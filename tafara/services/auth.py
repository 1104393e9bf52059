"""Session validation against the hosted auth provider.

Sign-up, sign-in and token refresh happen between the browser and the
provider. The server only asks the provider who a bearer token belongs to.
"""

from dataclasses import dataclass
from typing import Optional

import httpx

from tafara.services.settings import get_settings


class AuthError(Exception):
    """The session token is missing or was rejected by the provider."""


@dataclass
class AuthUser:
    id: str
    email: str = ""


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an `Authorization: Bearer ...` header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def verify_session(token: Optional[str]) -> AuthUser:
    """Resolve a session token to the user it belongs to.

    Raises AuthError when the token is missing or the provider does not
    accept it, including when the provider cannot be reached.
    """
    if not token:
        raise AuthError("Missing session token")

    settings = get_settings()
    headers = {
        "apikey": settings.supabase_anon_key,
        "Authorization": f"Bearer {token}",
    }
    try:
        async with httpx.AsyncClient(timeout=10) as client:
            resp = await client.get(f"{settings.supabase_url}/auth/v1/user", headers=headers)
    except httpx.HTTPError as e:
        raise AuthError(f"Auth provider unreachable: {e.__class__.__name__}") from e

    if resp.status_code != 200:
        raise AuthError(f"Auth provider rejected token ({resp.status_code})")
    try:
        data = resp.json()
    except ValueError as e:
        raise AuthError("Auth provider returned non-JSON") from e
    user_id = data.get("id") if isinstance(data, dict) else None
    if not user_id:
        raise AuthError("Auth provider returned no user")
    return AuthUser(id=str(user_id), email=data.get("email") or "")
