"""Abstract interfaces for every external collaborator.

Business logic depends only on these ABCs; concrete adapters in
``docingest.providers`` are injected at runtime.
"""

from docingest.interfaces.cache_provider import ICacheProvider
from docingest.interfaces.cloud_resolver import ICloudResolver
from docingest.interfaces.content_processor import IContentProcessor
from docingest.interfaces.document_store import IDocumentRepository, IDocumentStore
from docingest.interfaces.embedding_provider import IEmbeddingProvider
from docingest.interfaces.llm_provider import ILLMProvider
from docingest.interfaces.progress_subscriber import IProgressSubscriber

__all__ = [
    "ICacheProvider",
    "ICloudResolver",
    "IContentProcessor",
    "IDocumentRepository",
    "IDocumentStore",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IProgressSubscriber",
]
