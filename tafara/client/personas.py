"""Private and published personas behind one lookup interface.

Private personas live in a JSON file per user under the client home
directory and are addressed as `<username>-<index>`. Published personas live
on the server and are addressed by their catalog id.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote

from pydantic import ValidationError

from tafara.client.api import ApiError, SessionExpired, TafaraClient
from tafara.services.persona_fields import PersonaConfig, PersonaFields

logger = logging.getLogger(__name__)

LOCAL = "local"
PUBLIC = "public"


class PersonaNotFound(LookupError):
    """Neither store has the persona; send the user back to the catalog."""


@dataclass
class Persona:
    id: str
    fields: PersonaFields
    source: str
    category: Optional[str] = None
    creator_username: Optional[str] = None


class PersonaRepository(ABC):
    """
    Abstract lookup over one persona store.
    """

    @abstractmethod
    async def get(self, persona_id: str) -> Optional[Persona]:
        """
        Returns the persona with this id, or None if this store does not have it.
        :param persona_id: Local `<username>-<index>` id or catalog id.
        """
        pass


class LocalPersonaStore(PersonaRepository):
    """Personas authored by `username`, cached on this machine only.

    Writes replace the whole file, so the last save wins.
    """

    def __init__(self, home: Path, username: str):
        self.home = Path(home)
        self.username = username
        self.path = self.home / f"configs-{quote(username, safe='')}.json"

    def _read(self) -> List[dict]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("personas: could not read %s (%s)", self.path, e)
            return []
        return data if isinstance(data, list) else []

    def _write(self, items: List[dict]) -> None:
        self.home.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(items), encoding="utf-8")

    def persona_id(self, index: int) -> str:
        return f"{self.username}-{index}"

    def index_of(self, persona_id: str) -> Optional[int]:
        """Parse `<username>-<index>`; None if the id is not one of ours."""
        prefix = f"{self.username}-"
        if not persona_id.startswith(prefix):
            return None
        suffix = persona_id[len(prefix):]
        if not (suffix.isascii() and suffix.isdigit()):
            return None
        return int(suffix)

    def list(self) -> List[Persona]:
        personas = []
        for index, raw in enumerate(self._read()):
            try:
                fields = PersonaFields.model_validate(raw)
            except ValidationError:
                logger.warning("personas: skipping malformed entry %d in %s", index, self.path)
                continue
            personas.append(Persona(id=self.persona_id(index), fields=fields, source=LOCAL))
        return personas

    def add(self, config: PersonaConfig) -> Persona:
        items = self._read()
        items.append(config.model_dump())
        self._write(items)
        return Persona(id=self.persona_id(len(items) - 1), fields=config, source=LOCAL)

    def update(self, index: int, config: PersonaConfig) -> Persona:
        items = self._read()
        if not 0 <= index < len(items):
            raise IndexError(index)
        items[index] = config.model_dump()
        self._write(items)
        return Persona(id=self.persona_id(index), fields=config, source=LOCAL)

    def delete(self, index: int) -> None:
        """Remove one persona. Later personas shift down by one index."""
        items = self._read()
        if not 0 <= index < len(items):
            raise IndexError(index)
        del items[index]
        self._write(items)

    async def get(self, persona_id: str) -> Optional[Persona]:
        index = self.index_of(persona_id)
        if index is None:
            return None
        items = self._read()
        if index >= len(items):
            return None
        try:
            fields = PersonaFields.model_validate(items[index])
        except ValidationError:
            return None
        return Persona(id=persona_id, fields=fields, source=LOCAL)


def _from_public(data: dict) -> Persona:
    fields = PersonaFields(
        name=data.get("name", ""),
        personality=data.get("personality", ""),
        instructions=data.get("instructions", ""),
        model=data.get("model", ""),
        avatar=data.get("avatar", ""),
        background=data.get("background") or "",
    )
    return Persona(
        id=str(data["id"]),
        fields=fields,
        source=PUBLIC,
        category=data.get("category"),
        creator_username=data.get("creator_username"),
    )


class PublicPersonaStore(PersonaRepository):
    """The community catalog, read through the server API."""

    def __init__(self, client: TafaraClient):
        self.client = client

    async def get(self, persona_id: str) -> Optional[Persona]:
        data = await self.client.get_public(persona_id)
        return _from_public(data) if data else None

    async def search(self, q: Optional[str] = None, category: Optional[str] = None) -> List[Persona]:
        return [_from_public(d) for d in await self.client.list_public(q=q, category=category)]


class PersonaResolver:
    """Decide which store an id belongs to and load it from there."""

    def __init__(self, local: LocalPersonaStore, public: PersonaRepository):
        self.local = local
        self.public = public

    async def resolve(self, persona_id: str) -> Persona:
        if self.local.index_of(persona_id) is not None:
            persona = await self.local.get(persona_id)
            if persona:
                return persona
        try:
            persona = await self.public.get(persona_id)
        except SessionExpired:
            raise
        except ApiError as e:
            logger.error("personas: catalog lookup for %s failed: %s", persona_id, e)
            persona = None
        if persona is None:
            raise PersonaNotFound(persona_id)
        return persona


async def publish_persona(
    client: TafaraClient,
    config: PersonaConfig,
    category: str,
    is_anonymous: bool = False,
) -> Persona:
    """Publish a copy of a private persona. The local entry is left as is."""
    data = await client.publish(config, category=category, is_anonymous=is_anonymous)
    return _from_public(data)


async def browse(
    local: LocalPersonaStore,
    public: PublicPersonaStore,
    q: Optional[str] = None,
    category: Optional[str] = None,
) -> dict:
    """Hub listing: the user's own personas plus the filtered catalog."""
    return {
        "mine": local.list(),
        "community": await public.search(q=q, category=category),
    }
