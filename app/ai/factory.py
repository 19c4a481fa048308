from app.ai.config import load_ai_config
from app.ai.types import AIClient, EmbeddingClient
from app.ai.providers.openai_provider import OpenAIProvider
from app.semantic import SimpleEmbeddingProvider

LOCAL_EMBEDDING_MODEL = "local"


def get_ai_client() -> AIClient:
    cfg = load_ai_config()

    if cfg.provider == "openai":
        return OpenAIProvider(
            model=cfg.model,
            embedding_model=cfg.embedding_model,
            temperature=cfg.temperature,
        )

    raise ValueError(f"Unsupported AI_PROVIDER='{cfg.provider}'")


def get_embedding_client() -> EmbeddingClient:
    cfg = load_ai_config()

    # Hashed bag-of-words vectors; no network, deterministic.
    if cfg.embedding_model == LOCAL_EMBEDDING_MODEL:
        return SimpleEmbeddingProvider()

    if cfg.provider == "openai":
        return OpenAIProvider(
            model=cfg.model,
            embedding_model=cfg.embedding_model,
            temperature=cfg.temperature,
        )

    raise ValueError(f"AI_PROVIDER='{cfg.provider}' does not provide embeddings")
