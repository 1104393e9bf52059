"""Utility functions for interacting with the OpenRouter API."""

import logging
from typing import Any, Dict, List

import httpx

from tafara.services.persona_fields import build_system_prompt
from tafara.services.settings import get_settings

logger = logging.getLogger("uvicorn.error")


class UpstreamError(Exception):
    """The gateway call failed. `status_code` is what the proxy returns."""

    status_code = 502

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class UpstreamTimeout(UpstreamError):
    status_code = 504


class UpstreamUnavailable(UpstreamError):
    status_code = 502


class MalformedResponse(UpstreamError):
    status_code = 502


def build_messages(
    name: str,
    personality: str,
    instructions: str,
    transcript: List[Dict[str, str]],
) -> List[Dict[str, str]]:
    """Prefix the transcript with the persona's system turn, unchanged otherwise."""
    system = {"role": "system", "content": build_system_prompt(name, personality, instructions)}
    return [system, *transcript]


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
    return f"OpenRouter error: {resp.status_code} {resp.reason_phrase}"


async def chat_with_openrouter(
    api_key: str,
    model: str,
    messages: List[Dict[str, str]],
) -> str:
    """Send one completion request to OpenRouter and return the reply text.

    A single attempt is made. Failures raise an UpstreamError subclass whose
    message never includes the key.
    """
    settings = get_settings()
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
        "HTTP-Referer": settings.app_url,
        "X-Title": settings.app_title,
    }
    data: Dict[str, Any] = {
        "model": model,
        "messages": messages,
    }

    try:
        async with httpx.AsyncClient(timeout=settings.upstream_timeout) as client:
            resp = await client.post(settings.openrouter_url, json=data, headers=headers)
    except httpx.TimeoutException as e:
        logger.warning("openrouter: request timed out after %ss", settings.upstream_timeout)
        raise UpstreamTimeout("Upstream request timed out") from e
    except httpx.HTTPError as e:
        logger.warning("openrouter: transport error %s", e.__class__.__name__)
        raise UpstreamUnavailable("Upstream request failed") from e

    if not resp.is_success:
        logger.error("openrouter: error %s: %s", resp.status_code, resp.text)
        raise UpstreamError(_error_message(resp), status_code=resp.status_code)

    try:
        content = resp.json()["choices"][0]["message"]["content"]
    except (ValueError, KeyError, IndexError, TypeError) as e:
        logger.error("openrouter: malformed response: %s", resp.text[:500])
        raise MalformedResponse("Invalid API response format") from e
    if not isinstance(content, str):
        raise MalformedResponse("Invalid API response format")
    return content
