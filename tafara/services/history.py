"""Stored chat turns per (user, persona) pair, capped at MAX_MESSAGES.

Trimming runs after each insert and is best-effort: two concurrent saves for
the same pair may leave one extra row until the next save trims it.
"""

import logging
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models

MAX_MESSAGES = 15
ROLES = ("user", "assistant")

logger = logging.getLogger("uvicorn.error")


def _pair(db: Session, user_id: str, ai_id: str):
    return db.query(models.ChatMessage).filter(
        models.ChatMessage.user_id == user_id,
        models.ChatMessage.ai_id == ai_id,
    )


def trim(db: Session, user_id: str, ai_id: str) -> int:
    """Delete the oldest rows beyond the cap. Returns how many were removed."""
    rows = (
        _pair(db, user_id, ai_id)
        .order_by(models.ChatMessage.created_at, models.ChatMessage.id)
        .all()
    )
    excess = len(rows) - MAX_MESSAGES
    if excess <= 0:
        return 0
    for row in rows[:excess]:
        db.delete(row)
    db.commit()
    return excess


def save_message(db: Session, user_id: str, ai_id: str, role: str, content: str) -> models.ChatMessage:
    msg = models.ChatMessage(user_id=user_id, ai_id=ai_id, role=role, content=content)
    db.add(msg)
    db.commit()
    db.refresh(msg)
    try:
        removed = trim(db, user_id, ai_id)
        if removed:
            logger.debug("history: trimmed %d message(s) for ai=%s", removed, ai_id)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("history: trim failed for ai=%s", ai_id)
    return msg


def load_recent(db: Session, user_id: str, ai_id: str) -> List[models.ChatMessage]:
    """Return up to MAX_MESSAGES of the newest turns, oldest first."""
    rows = (
        _pair(db, user_id, ai_id)
        .order_by(models.ChatMessage.created_at.desc(), models.ChatMessage.id.desc())
        .limit(MAX_MESSAGES)
        .all()
    )
    rows.reverse()
    return rows


def clear(db: Session, user_id: str, ai_id: str) -> int:
    count = _pair(db, user_id, ai_id).delete()
    db.commit()
    return count
