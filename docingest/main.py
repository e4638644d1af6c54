"""docingest application entry point.

Wires providers and services together via constructor injection.
``build_components`` is shared by the FastAPI app (websocket progress
channel) and the CLI.

Run the push server with ``python -m docingest.main``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI, WebSocket

from docingest import __version__
from docingest.api.jobs import IngestionJobRunner
from docingest.api.websocket import WebSocketProgressHub, websocket_ingestion
from docingest.config.loader import load_config
from docingest.config.settings import Settings
from docingest.interfaces.cloud_resolver import ICloudResolver
from docingest.pipeline.progress_tracker import ProgressTracker
from docingest.pipeline.subscribers import LoggingProgressSubscriber
from docingest.providers.cache.memory_cache import MemoryCacheProvider
from docingest.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider
from docingest.providers.keyword_store.sqlite_fts_provider import SQLiteKeywordStore
from docingest.providers.llm.ollama_provider import OllamaLLMProvider
from docingest.providers.resolvers.dropbox_resolver import DropboxResolver
from docingest.providers.resolvers.google_drive_resolver import GoogleDriveResolver
from docingest.providers.resolvers.onedrive_resolver import OneDriveResolver
from docingest.providers.vector_store.chromadb_provider import ChromaDBVectorStore
from docingest.services.ingestion.chunker import TextChunker
from docingest.services.ingestion.content_processor import DocumentContentProcessor
from docingest.services.ingestion.ingestion_service import IngestionService
from docingest.services.ingestion.source_registry import SourceResolverRegistry
from docingest.services.rag.rag_service import RagService
from docingest.services.retrieval.hybrid_search import HybridSearchService
from docingest.utils.errors import ConfigurationError
from docingest.utils.logging import configure_logging, get_logger

settings = Settings()
configure_logging(log_level=settings.log_level, app_env=settings.app_env)
_logger: structlog.BoundLogger = get_logger(__name__)


def build_resolvers(
    names: list[str],
    http_client: httpx.AsyncClient,
    app_settings: Settings,
) -> list[ICloudResolver]:
    """Instantiate cloud resolvers in the configured precedence order.

    Raises
    ------
    ConfigurationError
        If *names* contains an unknown resolver.
    """
    factories = {
        "google_drive": lambda: GoogleDriveResolver(
            http_client, access_token=app_settings.google_drive_access_token
        ),
        "onedrive": lambda: OneDriveResolver(
            http_client, access_token=app_settings.microsoft_graph_access_token
        ),
        "dropbox": lambda: DropboxResolver(http_client),
    }
    resolvers: list[ICloudResolver] = []
    for name in names:
        factory = factories.get(name)
        if factory is None:
            raise ConfigurationError(
                message=f"Unknown resolver '{name}' (known: {', '.join(sorted(factories))})"
            )
        resolvers.append(factory())
    return resolvers


def build_components(
    app_settings: Settings | None = None,
    config_path: str = "config/config.yaml",
) -> dict[str, Any]:
    """Construct every provider and service.

    Returns a flat dict of named components, stored on ``app.state`` by
    the FastAPI lifespan and used directly by the CLI.  The caller owns
    ``http_client`` and must close it.
    """
    app_settings = app_settings or settings
    config = load_config(config_path, settings=app_settings)

    http_client = httpx.AsyncClient(timeout=app_settings.http_timeout_seconds)

    cache = MemoryCacheProvider(max_size=16, ttl=app_settings.progress_ttl_seconds)
    progress_tracker = ProgressTracker(cache, ttl=app_settings.progress_ttl_seconds)
    progress_hub = WebSocketProgressHub()
    progress_tracker.register_subscriber(LoggingProgressSubscriber())
    progress_tracker.register_subscriber(progress_hub)

    embedding_provider = OllamaEmbeddingProvider(settings=app_settings)
    vector_store = ChromaDBVectorStore(
        embedding_provider=embedding_provider,
        persist_directory=app_settings.chromadb_persist_dir,
        collection_name=app_settings.chromadb_collection,
    )
    keyword_store = SQLiteKeywordStore(
        db_path=app_settings.keyword_db_path,
        table=app_settings.keyword_table,
    )

    registry = SourceResolverRegistry(
        build_resolvers(config["ingestion"]["resolvers"], http_client, app_settings)
    )
    processor = DocumentContentProcessor(
        embedding_provider=embedding_provider,
        chunker=TextChunker(overlap=app_settings.chunk_overlap),
    )

    ingestion_service = IngestionService(
        registry=registry,
        processor=processor,
        vector_store=vector_store,
        keyword_store=keyword_store,
        progress_tracker=progress_tracker,
        document_repository=keyword_store,
        max_concurrency=app_settings.ingestion_concurrency,
    )
    search_service = HybridSearchService(vector_store, keyword_store)
    llm_provider = OllamaLLMProvider(settings=app_settings)
    rag_service = RagService(
        search_service,
        llm_provider,
        temperature=app_settings.rag_temperature,
        max_tokens=app_settings.rag_max_tokens,
    )

    _logger.info(
        "components_built",
        resolvers=[r.get_provider_name() for r in registry.resolvers],
        extensions=processor.supported_extensions(),
        embedding=embedding_provider.get_provider_name(),
        llm=llm_provider.get_provider_name(),
    )
    return {
        "settings": app_settings,
        "config": config,
        "http_client": http_client,
        "progress_tracker": progress_tracker,
        "progress_hub": progress_hub,
        "vector_store": vector_store,
        "keyword_store": keyword_store,
        "ingestion_service": ingestion_service,
        "ingestion_runner": IngestionJobRunner(ingestion_service, progress_hub),
        "search_service": search_service,
        "rag_service": rag_service,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Build all components on startup; stop any batch and close the HTTP client on shutdown."""
    components = build_components(settings)
    for key, value in components.items():
        setattr(application.state, key, value)

    _logger.info("app_startup", version=__version__, environment=settings.app_env)

    yield

    runner: IngestionJobRunner = components["ingestion_runner"]
    if runner.cancel():
        await runner.wait()

    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()
    _logger.info("app_shutdown", message="HTTP client closed")


def create_app() -> FastAPI:
    """Build the FastAPI application exposing the ingestion websocket."""
    application = FastAPI(
        title="docingest",
        version=__version__,
        description="Start ingestion batches and follow their progress over WebSocket.",
        lifespan=_lifespan,
    )

    @application.websocket("/ws/ingestion")
    async def ws_ingestion(websocket: WebSocket) -> None:
        await websocket_ingestion(websocket)

    return application


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "docingest.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
