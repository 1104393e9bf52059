from typing import List, Optional
import logging

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy.orm import Session

from tafara.services.auth import AuthError, AuthUser, bearer_token, verify_session
from tafara.services.openrouter import (
    UpstreamError,
    build_messages,
    chat_with_openrouter,
)
from tafara.services import history, models, personas
from tafara.services.database import SessionLocal, engine
from tafara.services.profiles import (
    get_by_username,
    get_profile,
    profile_dict,
    resolve_api_key,
)
from tafara.services.secrets import is_valid_api_key, store_api_key
from tafara.services.settings import get_settings


models.Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


app = FastAPI(title="Tafara.ai")
logger = logging.getLogger("uvicorn.error")


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


async def get_current_user(authorization: Optional[str] = Header(None)) -> AuthUser:
    """Resolve the caller from the `Authorization: Bearer` header."""
    try:
        return await verify_session(bearer_token(authorization))
    except AuthError as e:
        logger.info("auth: rejected session (%s)", e)
        raise HTTPException(status_code=401, detail="Unauthorized")


class ChatTurn(BaseModel):
    role: str
    content: str


class ChatPersona(BaseModel):
    """Persona fields the proxy needs. `model` is forwarded unchecked."""

    name: str = ""
    personality: str = ""
    instructions: str = ""
    model: str


class ChatRequest(BaseModel):
    """Request body for the chat proxy."""

    model_config = ConfigDict(populate_by_name=True)

    messages: List[ChatTurn]
    config: ChatPersona
    session_token: Optional[str] = Field(default=None, alias="sessionToken")


class ProfileCreate(BaseModel):
    username: str = Field(min_length=1)
    email: str = ""
    api_key: Optional[str] = None


class ApiKeyUpdate(BaseModel):
    api_key: str


class MessageCreate(BaseModel):
    role: str
    content: str


@app.post("/api/chat")
async def chat(request: Request, db: Session = Depends(get_db)):
    """Proxy one conversation turn to OpenRouter with the caller's key.

    The session is checked before anything else in the body is looked at.
    Persisting the exchanged turns is left to the caller.
    """
    try:
        body = await request.json()
    except ValueError:
        body = None
    token = body.get("sessionToken") if isinstance(body, dict) else None
    try:
        user = await verify_session(token)
    except AuthError as e:
        logger.info("/api/chat: unauthorized (%s)", e)
        return error_response(401, "Unauthorized")

    try:
        req = ChatRequest.model_validate(body)
    except ValidationError:
        return error_response(400, "Invalid request")

    profile = get_profile(db, user.id)
    if not profile:
        return error_response(404, "Profile not found")

    settings = get_settings()
    api_key = resolve_api_key(profile, settings)
    logger.info(
        "/api/chat: key resolution preset=%s has_shared_key=%s has_user_key=%s",
        bool(profile.is_preset_account),
        bool(settings.shared_api_key),
        bool(profile.api_key),
    )
    if not api_key:
        return error_response(400, "No API key found")

    messages = build_messages(
        req.config.name,
        req.config.personality,
        req.config.instructions,
        [turn.model_dump() for turn in req.messages],
    )
    try:
        content = await chat_with_openrouter(api_key, req.config.model, messages)
    except UpstreamError as e:
        return error_response(e.status_code, e.message)
    except Exception:
        logger.exception("/api/chat failed")
        return error_response(500, "Internal server error")
    return {"content": content}


@app.get("/api/shared-key")
async def shared_key(authorization: Optional[str] = Header(None), db: Session = Depends(get_db)):
    """Return the operator's shared key, to preset accounts only."""
    try:
        user = await verify_session(bearer_token(authorization))
    except AuthError:
        return error_response(401, "Unauthorized")

    profile = get_profile(db, user.id)
    if not profile:
        return error_response(404, "Profile not found")
    if not profile.is_preset_account:
        return error_response(403, "Forbidden")

    key = get_settings().shared_api_key
    if not key:
        logger.error("/api/shared-key: SHARED_API_KEY is not configured")
        return error_response(500, "Shared key is not configured")
    return {"key": key}


# --- Profiles ---
@app.post("/profiles")
def create_profile(
    req: ProfileCreate,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create the caller's profile right after sign-up."""
    if get_profile(db, user.id):
        raise HTTPException(status_code=400, detail="Profile already exists")
    if get_by_username(db, req.username):
        raise HTTPException(status_code=400, detail="Username already taken")

    is_preset = get_settings().is_preset_email(user.email)
    if req.api_key and not is_valid_api_key(req.api_key):
        raise HTTPException(status_code=400, detail="Invalid OpenRouter API key format")
    if not is_preset and not req.api_key:
        raise HTTPException(status_code=400, detail="An OpenRouter API key is required")

    profile = models.UserProfile(
        id=user.id,
        username=req.username,
        email=req.email or user.email,
        is_preset_account=is_preset,
    )
    store_api_key(profile, req.api_key)
    db.add(profile)
    db.commit()
    db.refresh(profile)
    logger.info("profiles: created %s (preset=%s)", profile.username, is_preset)
    return profile_dict(profile)


@app.get("/profiles/me")
def read_profile(user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    profile = get_profile(db, user.id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile_dict(profile)


@app.put("/profiles/me/api_key")
def update_api_key(
    req: ApiKeyUpdate,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Replace the caller's personal key. The response never echoes it."""
    profile = get_profile(db, user.id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    if not is_valid_api_key(req.api_key):
        raise HTTPException(status_code=400, detail="Invalid OpenRouter API key format")
    store_api_key(profile, req.api_key)
    db.commit()
    db.refresh(profile)
    return profile_dict(profile)


# --- Published personas ---
@app.get("/personas/options")
def persona_options():
    """Models and categories offered by the builder and the hub."""
    return {
        "models": [{"id": k, "label": v} for k, v in personas.MODELS.items()],
        "default_model": personas.DEFAULT_MODEL,
        "categories": list(personas.CATEGORIES),
    }


@app.get("/public_ais")
def list_public_ais(
    q: Optional[str] = None,
    category: Optional[str] = None,
    db: Session = Depends(get_db),
):
    rows = personas.search(db, q=q, category=category)
    return {"ais": [personas.public_ai_dict(ai) for ai in rows]}


@app.get("/public_ais/{ai_id}")
def read_public_ai(ai_id: str, db: Session = Depends(get_db)):
    ai = personas.get(db, ai_id)
    if not ai:
        raise HTTPException(status_code=404, detail="AI not found")
    return personas.public_ai_dict(ai)


@app.post("/public_ais")
def publish_ai(
    req: personas.PublishRequest,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Publish a snapshot of a persona to the community catalog."""
    profile = get_profile(db, user.id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    ai = personas.publish(db, req, creator_id=user.id, creator_username=profile.username)
    logger.info("public_ais: %s published %s (anonymous=%s)", profile.username, ai.id, ai.is_anonymous)
    return personas.public_ai_dict(ai)


@app.delete("/public_ais/{ai_id}")
def delete_public_ai(
    ai_id: str,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ai = personas.get(db, ai_id)
    if not ai:
        raise HTTPException(status_code=404, detail="AI not found")
    if ai.creator_id != user.id:
        raise HTTPException(status_code=403, detail="Only the creator can delete this AI")
    db.delete(ai)
    db.commit()
    return {"deleted": True}


# --- Conversation history ---
@app.get("/chats/{ai_id}/messages")
def get_messages(ai_id: str, user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    """Return the stored transcript for this persona, oldest first."""
    rows = history.load_recent(db, user.id, ai_id)
    return {
        "messages": [
            {"role": m.role, "content": m.content, "created_at": m.created_at.isoformat()}
            for m in rows
        ]
    }


@app.post("/chats/{ai_id}/messages")
def add_message(
    ai_id: str,
    req: MessageCreate,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if req.role not in history.ROLES:
        raise HTTPException(status_code=400, detail="Invalid role")
    msg = history.save_message(db, user.id, ai_id, req.role, req.content)
    return {"id": msg.id, "role": msg.role, "content": msg.content}


@app.delete("/chats/{ai_id}/messages")
def clear_messages(ai_id: str, user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"deleted": history.clear(db, user.id, ai_id)}
