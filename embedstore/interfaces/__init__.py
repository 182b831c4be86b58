"""Interfaces for the external services embedstore depends on.

The only external collaborator is the embedding capability.  Concrete
adapters live in ``embedstore/providers/`` and are injected into
:class:`~embedstore.store.vector_store.VectorStore` at construction, so
tests can pass a mock provider instead of calling a real API.
"""

from embedstore.interfaces.embedding_provider import IEmbeddingProvider

__all__ = ["IEmbeddingProvider"]
