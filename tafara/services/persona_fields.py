"""Persona fields, the model allow-list and the system prompt template.

Shared by the server and the client package; keep this module free of
database imports.
"""

from pydantic import BaseModel, field_validator


DEFAULT_MODEL = "openai/gpt-4o-mini"

# Models offered by the persona builder.
MODELS = {
    "openai/gpt-4o-mini": "GPT-4o Mini (Fast & Cheap)",
    "openai/gpt-4o": "GPT-4o (Balanced)",
    "anthropic/claude-3.5-sonnet": "Claude 3.5 Sonnet (Smart)",
    "google/gemini-pro-1.5": "Gemini Pro 1.5",
    "openrouter/aurora-alpha": "Aurora Alpha",
}

CATEGORIES = ("study", "creative", "productivity", "fun", "coding")


def build_system_prompt(name: str, personality: str, instructions: str) -> str:
    """Render the leading system turn for a persona.

    Inputs are substituted as-is; empty strings are allowed.
    """
    return f"You are {name}. Your personality is {personality}. {instructions}"


class PersonaFields(BaseModel):
    """Persona fields as stored. No allow-list check, so older rows still load."""

    name: str = "My AI Assistant"
    personality: str = "helpful and friendly"
    instructions: str = "You are a helpful AI assistant."
    model: str = DEFAULT_MODEL
    avatar: str = ""
    background: str = ""


class PersonaConfig(PersonaFields):
    """A persona as authored in the builder."""

    @field_validator("model")
    @classmethod
    def _known_model(cls, value: str) -> str:
        if value not in MODELS:
            raise ValueError(f"Unsupported model: {value}")
        return value
