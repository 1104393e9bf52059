"""SQLAlchemy models for profiles, published personas and chat history."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from .database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class UserProfile(Base):
    __tablename__ = "user_profiles"

    # Same id the auth provider assigns to the user.
    id = Column(String, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, default="")
    api_key = Column(Text, nullable=True)  # encrypted, see services.secrets
    is_preset_account = Column(Boolean, default=False, nullable=False)


class PublicAI(Base):
    __tablename__ = "public_ais"

    id = Column(String, primary_key=True, index=True, default=_new_id)
    name = Column(String, nullable=False)
    personality = Column(Text, default="")
    instructions = Column(Text, default="")
    model = Column(String, nullable=False)
    avatar = Column(Text, default="")
    background = Column(Text, default="")
    category = Column(String, index=True, nullable=False)
    creator_username = Column(String, default="")
    creator_id = Column(String, index=True, nullable=True)
    is_anonymous = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=_utcnow)


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    ai_id = Column(String, index=True, nullable=False)
    role = Column(String, nullable=False)
    content = Column(Text, default="")
    created_at = Column(DateTime, default=_utcnow)
