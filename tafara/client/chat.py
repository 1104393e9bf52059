"""One chat view's state: the persona, the transcript and the send flow."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from tafara.client.api import ApiError, SessionExpired, TafaraClient
from tafara.client.personas import Persona, PersonaResolver

logger = logging.getLogger(__name__)

ERROR_REPLY = "Sorry, there was an error: {message}. Please check your API key and try again."


@dataclass
class Turn:
    role: str
    content: str
    # Error notices shown in the transcript; never sent upstream or stored.
    synthetic: bool = False


class ChatSession:
    """Drive a conversation with one persona.

    Proxy failures become a single synthetic assistant turn so the transcript
    stays consistent. An expired session raises SessionExpired, which the
    caller answers by sending the user to sign in again.
    """

    def __init__(self, client: TafaraClient, resolver: PersonaResolver, persona_id: str):
        self.client = client
        self.resolver = resolver
        self.persona_id = persona_id
        self.persona: Optional[Persona] = None
        self.turns: List[Turn] = []
        self.pending = False

    async def open(self) -> Persona:
        """Resolve the persona and load its stored transcript.

        Raises PersonaNotFound when neither store has the persona.
        """
        self.persona = await self.resolver.resolve(self.persona_id)
        rows = await self.client.load_messages(self.persona.id)
        self.turns = [Turn(role=r["role"], content=r["content"]) for r in rows]
        return self.persona

    def transcript(self) -> List[Dict[str, str]]:
        return [{"role": t.role, "content": t.content} for t in self.turns if not t.synthetic]

    async def send(self, text: str) -> Optional[Turn]:
        if not text.strip() or self.persona is None:
            return None

        user_turn = Turn(role="user", content=text)
        self.turns.append(user_turn)
        self.pending = True
        try:
            content = await self.client.chat(self.transcript(), self.persona.fields)
        except SessionExpired:
            raise
        except ApiError as e:
            logger.error("chat: proxy error %s: %s", e.status_code, e.message)
            reply = Turn(role="assistant", content=ERROR_REPLY.format(message=e.message), synthetic=True)
            self.turns.append(reply)
            return reply
        finally:
            self.pending = False

        reply = Turn(role="assistant", content=content)
        self.turns.append(reply)
        await self._persist(user_turn, reply)
        return reply

    async def _persist(self, *turns: Turn) -> None:
        for turn in turns:
            try:
                await self.client.save_message(self.persona.id, turn.role, turn.content)
            except ApiError as e:
                logger.warning("chat: could not store %s turn: %s", turn.role, e)

    async def clear(self) -> None:
        if self.persona is None:
            return
        await self.client.clear_messages(self.persona.id)
        self.turns = []
