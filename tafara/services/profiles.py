"""Profile lookups and provider key resolution."""

from typing import Optional

from sqlalchemy.orm import Session

from . import models
from .secrets import read_api_key
from .settings import Settings


def get_profile(db: Session, user_id: str) -> Optional[models.UserProfile]:
    return db.query(models.UserProfile).filter(models.UserProfile.id == user_id).first()


def get_by_username(db: Session, username: str) -> Optional[models.UserProfile]:
    return db.query(models.UserProfile).filter(models.UserProfile.username == username).first()


def resolve_api_key(profile: models.UserProfile, settings: Settings) -> Optional[str]:
    """Pick the key for an outbound gateway call.

    Preset accounts always use the operator's shared key, even when a
    personal key is also stored on the profile.
    """
    if profile.is_preset_account:
        return settings.shared_api_key
    return read_api_key(profile)


def profile_dict(profile: models.UserProfile) -> dict:
    return {
        "id": profile.id,
        "username": profile.username,
        "email": profile.email or "",
        "is_preset_account": bool(profile.is_preset_account),
        "has_api_key": bool(profile.api_key),
    }
