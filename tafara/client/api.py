"""Async HTTP client for the Tafara.ai server."""

from typing import Any, Dict, List, Optional

import httpx

from tafara.services.persona_fields import PersonaFields


class ApiError(Exception):
    """A request to the server failed."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


class SessionExpired(ApiError):
    """The session token is missing or no longer valid; sign in again."""


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase
    if isinstance(body, dict):
        # Proxy endpoints answer {"error": ...}, CRUD endpoints {"detail": ...}
        for key in ("error", "detail"):
            if isinstance(body.get(key), str):
                return body[key]
    return resp.reason_phrase


class TafaraClient:
    """
    Thin wrapper over the server's HTTP API.

    :param base_url: Server root, e.g. "https://tafara.example".
    :param session_token: Bearer token issued by the auth provider.
    :param http: Optional preconfigured httpx.AsyncClient (tests pass one
        wired to the ASGI app).
    """

    def __init__(
        self,
        base_url: str,
        session_token: Optional[str],
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ):
        self.session_token = session_token
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    def _auth_headers(self) -> Dict[str, str]:
        if not self.session_token:
            return {}
        return {"Authorization": f"Bearer {self.session_token}"}

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            resp = await self.http.request(method, path, headers=self._auth_headers(), **kwargs)
        except httpx.TimeoutException as e:
            raise ApiError(504, "Request timed out") from e
        except httpx.HTTPError as e:
            raise ApiError(503, f"Could not reach server: {e.__class__.__name__}") from e
        if resp.status_code == 401:
            raise SessionExpired(401, _error_message(resp))
        if not resp.is_success:
            raise ApiError(resp.status_code, _error_message(resp))
        try:
            return resp.json()
        except ValueError as e:
            raise ApiError(resp.status_code, "Invalid response from server") from e

    # --- Chat proxy ---
    async def chat(self, messages: List[Dict[str, str]], persona: PersonaFields) -> str:
        body = {
            "messages": messages,
            "config": {
                "name": persona.name,
                "personality": persona.personality,
                "instructions": persona.instructions,
                "model": persona.model,
            },
            "sessionToken": self.session_token,
        }
        data = await self._request("POST", "/api/chat", json=body)
        return data["content"]

    async def shared_key(self) -> str:
        data = await self._request("GET", "/api/shared-key")
        return data["key"]

    # --- Profiles ---
    async def create_profile(self, username: str, email: str = "", api_key: Optional[str] = None) -> dict:
        return await self._request(
            "POST", "/profiles", json={"username": username, "email": email, "api_key": api_key}
        )

    async def me(self) -> dict:
        return await self._request("GET", "/profiles/me")

    async def update_api_key(self, api_key: str) -> dict:
        return await self._request("PUT", "/profiles/me/api_key", json={"api_key": api_key})

    # --- Published personas ---
    async def persona_options(self) -> dict:
        return await self._request("GET", "/personas/options")

    async def list_public(self, q: Optional[str] = None, category: Optional[str] = None) -> List[dict]:
        params = {k: v for k, v in (("q", q), ("category", category)) if v}
        data = await self._request("GET", "/public_ais", params=params)
        return data["ais"]

    async def get_public(self, ai_id: str) -> Optional[dict]:
        try:
            return await self._request("GET", f"/public_ais/{ai_id}")
        except ApiError as e:
            if e.status_code == 404:
                return None
            raise

    async def publish(self, persona: PersonaFields, category: str, is_anonymous: bool = False) -> dict:
        body = persona.model_dump()
        body.update({"category": category, "is_anonymous": is_anonymous})
        return await self._request("POST", "/public_ais", json=body)

    async def delete_public(self, ai_id: str) -> None:
        await self._request("DELETE", f"/public_ais/{ai_id}")

    # --- Conversation history ---
    async def load_messages(self, ai_id: str) -> List[dict]:
        data = await self._request("GET", f"/chats/{ai_id}/messages")
        return data["messages"]

    async def save_message(self, ai_id: str, role: str, content: str) -> dict:
        return await self._request(
            "POST", f"/chats/{ai_id}/messages", json={"role": role, "content": content}
        )

    async def clear_messages(self, ai_id: str) -> int:
        data = await self._request("DELETE", f"/chats/{ai_id}/messages")
        return data["deleted"]
