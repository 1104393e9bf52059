"""Published personas: the catalog request model and its queries."""

from typing import List, Optional

from pydantic import field_validator
from sqlalchemy import or_
from sqlalchemy.orm import Session

from . import models
from .persona_fields import (  # noqa: F401
    CATEGORIES,
    DEFAULT_MODEL,
    MODELS,
    PersonaConfig,
    PersonaFields,
    build_system_prompt,
)


ANONYMOUS_CREATOR = "Anonymous"


class PublishRequest(PersonaConfig):
    category: str
    is_anonymous: bool = False

    @field_validator("category")
    @classmethod
    def _known_category(cls, value: str) -> str:
        if value not in CATEGORIES:
            raise ValueError(f"Unknown category: {value}")
        return value


def public_ai_dict(ai: models.PublicAI) -> dict:
    return {
        "id": ai.id,
        "name": ai.name,
        "personality": ai.personality or "",
        "instructions": ai.instructions or "",
        "model": ai.model,
        "avatar": ai.avatar or "",
        "background": ai.background or "",
        "category": ai.category,
        "creator_username": ai.creator_username or "",
        "is_anonymous": bool(ai.is_anonymous),
        "created_at": ai.created_at.isoformat() if ai.created_at else None,
    }


def publish(db: Session, req: PublishRequest, creator_id: str, creator_username: str) -> models.PublicAI:
    """Copy a persona into the shared catalog.

    The row is a snapshot; later edits to the author's private copy do not
    reach it. Anonymous rows store the placeholder name instead of the
    author's username.
    """
    ai = models.PublicAI(
        name=req.name,
        personality=req.personality,
        instructions=req.instructions,
        model=req.model,
        avatar=req.avatar,
        background=req.background,
        category=req.category,
        creator_username=ANONYMOUS_CREATOR if req.is_anonymous else creator_username,
        creator_id=creator_id,
        is_anonymous=req.is_anonymous,
    )
    db.add(ai)
    db.commit()
    db.refresh(ai)
    return ai


def search(db: Session, q: Optional[str] = None, category: Optional[str] = None) -> List[models.PublicAI]:
    query = db.query(models.PublicAI)
    if category and category != "all":
        query = query.filter(models.PublicAI.category == category)
    if q:
        escaped = q.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{escaped}%"
        query = query.filter(
            or_(
                models.PublicAI.name.ilike(pattern, escape="\\"),
                models.PublicAI.personality.ilike(pattern, escape="\\"),
            )
        )
    return query.order_by(models.PublicAI.created_at.desc(), models.PublicAI.name).all()


def get(db: Session, ai_id: str) -> Optional[models.PublicAI]:
    return db.query(models.PublicAI).filter(models.PublicAI.id == ai_id).first()
