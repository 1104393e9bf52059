"""Sign-up and sign-in steps that follow the auth provider's own flow."""

from typing import Optional

from tafara.client.api import TafaraClient
from tafara.client.settings import AppSettings


async def sign_up(
    client: TafaraClient,
    settings: AppSettings,
    username: str,
    email: str = "",
    api_key: Optional[str] = None,
) -> dict:
    """Create the profile row for a freshly registered provider account."""
    profile = await client.create_profile(username, email=email, api_key=api_key)
    settings.sign_in(profile["username"])
    return profile


async def sign_in(client: TafaraClient, settings: AppSettings) -> dict:
    """Load the caller's profile and cache its username.

    ApiError propagates: a missing profile blocks sign-in.
    """
    profile = await client.me()
    settings.sign_in(profile["username"])
    return profile


def sign_out(settings: AppSettings) -> None:
    settings.logout()
