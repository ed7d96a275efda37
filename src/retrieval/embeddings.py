"""Embedding provider adapters backed by LangChain embeddings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Protocol, Sequence

from core.config import Settings


class EmbeddingsLike(Protocol):
    def embed_query(self, text: str) -> List[float]: ...


@dataclass(frozen=True)
class EmbeddingConfig:
    model: str
    timeout: float | None = None


class LangChainEmbeddingProvider:
    """Adapts a LangChain ``Embeddings`` object to ``EmbeddingProvider.embed``."""

    def __init__(self, embeddings: EmbeddingsLike) -> None:
        self._embeddings = embeddings

    def embed(self, text: str) -> Sequence[float]:
        vector = self._embeddings.embed_query(text)
        return [float(value) for value in vector]


def build_embedding_provider(settings: Settings) -> LangChainEmbeddingProvider:
    config = EmbeddingConfig(
        model=settings.embedding_model,
        timeout=settings.embedding_timeout,
    )
    return LangChainEmbeddingProvider(_init_embeddings(config))


def _init_embeddings(config: EmbeddingConfig) -> EmbeddingsLike:
    from langchain.embeddings import init_embeddings

    kwargs: dict[str, Any] = {}
    if config.timeout is not None:
        kwargs["timeout"] = config.timeout
    return init_embeddings(config.model, **kwargs)


__all__ = [
    "EmbeddingConfig",
    "EmbeddingsLike",
    "LangChainEmbeddingProvider",
    "build_embedding_provider",
]
