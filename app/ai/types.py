from typing import Protocol, Sequence


class AIClient(Protocol):
    async def complete(
        self, system_prompt: str, user_prompt: str, *, json_mode: bool = False
    ) -> str: ...


class EmbeddingClient(Protocol):
    async def embed(self, texts: Sequence[str]) -> list[list[float]]: ...
