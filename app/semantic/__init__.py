from .embeddings import SimpleEmbeddingProvider, cosine_similarity

__all__ = ["SimpleEmbeddingProvider", "cosine_similarity"]
