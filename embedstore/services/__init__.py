"""Services that sit between the store and external providers."""

from embedstore.services.batch_embedder import BatchEmbeddingOrchestrator

__all__ = ["BatchEmbeddingOrchestrator"]
