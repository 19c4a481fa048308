import os
from dataclasses import dataclass


@dataclass(frozen=True)
class AIConfig:
    provider: str
    model: str
    embedding_model: str
    temperature: float


def load_ai_config() -> AIConfig:
    provider = os.getenv("AI_PROVIDER", "openai").strip().lower()
    model = os.getenv("AI_MODEL", "gpt-4.1-mini").strip()
    embedding_model = os.getenv("AI_EMBEDDING_MODEL", "text-embedding-3-small").strip()
    try:
        temperature = float(os.getenv("AI_TEMPERATURE", "0"))
    except ValueError:
        temperature = 0.0
    return AIConfig(
        provider=provider,
        model=model,
        embedding_model=embedding_model,
        temperature=temperature,
    )
