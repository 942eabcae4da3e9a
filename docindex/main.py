"""docindex FastAPI application entry point.

Wires together all providers, services and routes via dependency injection.
Loads configuration from ``.env`` and ``config/config.yaml`` and configures
structured logging.
"""

from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from docindex.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from docindex.api.routes import router as api_router
from docindex.config.loader import load_config
from docindex.config.settings import Settings
from docindex.interfaces.embedding_provider import IEmbeddingProvider
from docindex.pipeline.orchestrator import DocumentIngestionPipeline
from docindex.pipeline.task_runner import BackgroundTaskRunner
from docindex.providers.blob_store.local_blob_provider import LocalBlobStoreProvider
from docindex.providers.chunk_index.chromadb_chunk_provider import ChromaDBChunkIndexProvider
from docindex.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from docindex.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from docindex.providers.extraction.pymupdf_provider import PyMuPDFExtractionProvider
from docindex.providers.extraction.tesseract_provider import TesseractExtractionProvider
from docindex.providers.metadata_store.sqlite_metadata_provider import (
    SQLiteMetadataStoreProvider,
)
from docindex.providers.search_index.chromadb_search_provider import (
    ChromaDBSearchIndexProvider,
    create_chroma_client,
)
from docindex.services.document_service import DocumentManagementService
from docindex.services.extraction_service import TextExtractionService
from docindex.services.ingestion.chat_ingestion_service import ChatDocumentIngestionService
from docindex.services.ingestion.chunker import TextChunker
from docindex.services.ingestion.embedding_aligner import EmbeddingAligner
from docindex.services.validation import (
    CHAT_UPLOAD_POLICY,
    DOCUMENT_UPLOAD_POLICY,
    ContentValidator,
)
from docindex.utils.errors import ConfigurationError, SearchIndexError
from docindex.utils.logging import configure_logging, get_logger

_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Embedding provider selection
# ---------------------------------------------------------------------------


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider:
    """Select the embedding provider.

    Priority: OpenAI/OpenAI-compatible (if API key set) -> Nomic/Ollama.
    The Nomic provider is returned even when Ollama is unreachable so the
    app can start; search then reports itself as not configured.
    """
    if app_settings.openai_api_key:
        provider: IEmbeddingProvider = OpenAIEmbeddingProvider(settings=app_settings)
        if provider.is_available():
            return provider
    return NomicEmbeddingProvider(settings=app_settings)


# ---------------------------------------------------------------------------
# Full DI assembly for the FastAPI application
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings, app_config: dict[str, Any] | None = None) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    app_config = app_config if app_config is not None else config

    # -- Shared resources --
    embedding_provider = _build_embedding_provider(app_settings)
    chroma_client = create_chroma_client(app_settings.chromadb_persist_dir)
    task_runner = BackgroundTaskRunner()

    # -- Stores --
    blob_store = LocalBlobStoreProvider(
        root_dir=app_settings.blob_root_dir,
        public_base_url=app_settings.blob_public_base_url,
    )
    metadata_store = SQLiteMetadataStoreProvider(db_path=app_settings.metadata_db_path)
    search_index = ChromaDBSearchIndexProvider(
        embedding_provider=embedding_provider,
        index_name=app_settings.search_index_name,
        client=chroma_client,
    )
    chunk_index = ChromaDBChunkIndexProvider(
        index_name=app_settings.chat_index_name,
        dimension=embedding_provider.get_dimension(),
        client=chroma_client,
    )

    # -- Extraction (ordered by priority within each file type) --
    tesseract_lang = app_config.get("extraction", {}).get("tesseract_lang", "eng")
    extraction_service = TextExtractionService(
        providers=[
            PyMuPDFExtractionProvider(),
            TesseractExtractionProvider(lang=tesseract_lang),
        ]
    )
    embedding_aligner = EmbeddingAligner(embedding_provider=embedding_provider)

    # -- Services --
    pipeline = DocumentIngestionPipeline(
        validator=ContentValidator(
            DOCUMENT_UPLOAD_POLICY.with_max_bytes(app_settings.document_max_bytes)
        ),
        blob_store=blob_store,
        metadata_store=metadata_store,
        extraction_service=extraction_service,
        embedding_aligner=embedding_aligner,
        search_index=search_index,
        task_runner=task_runner,
    )
    document_service = DocumentManagementService(
        blob_store=blob_store,
        metadata_store=metadata_store,
        search_index=search_index,
        embedding_provider=embedding_provider,
        default_top=app_settings.search_default_top,
    )
    chat_service = ChatDocumentIngestionService(
        validator=ContentValidator(CHAT_UPLOAD_POLICY.with_max_bytes(app_settings.chat_max_bytes)),
        extraction_service=extraction_service,
        chunker=TextChunker(
            chunk_size=app_settings.chunk_size,
            overlap_ratio=app_settings.chunk_overlap_ratio,
        ),
        embedding_aligner=embedding_aligner,
        embedding_provider=embedding_provider,
        chunk_index=chunk_index,
        metadata_store=metadata_store,
    )

    # -- Provider registry for /health --
    provider_registry: dict[str, Any] = {
        "embedding": embedding_provider.is_available(),
        "embedding_provider": embedding_provider.get_provider_name(),
        "extraction": extraction_service.get_available_providers(),
        "blob_store": blob_store.get_provider_name(),
        "metadata_store": metadata_store.get_provider_name(),
    }

    return {
        "embedding_provider": embedding_provider,
        "blob_store": blob_store,
        "metadata_store": metadata_store,
        "search_index": search_index,
        "chunk_index": chunk_index,
        "task_runner": task_runner,
        "pipeline": pipeline,
        "document_service": document_service,
        "chat_service": chat_service,
        "provider_registry": provider_registry,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    components = _build_all(settings)

    for key, value in components.items():
        setattr(application.state, key, value)

    await components["metadata_store"].initialize()

    # The API still serves metadata and downloads when an index cannot open.
    try:
        await components["document_service"].ensure_search_is_configured()
    except (ConfigurationError, SearchIndexError) as exc:
        _logger.warning("search_not_configured", error=exc.message)
    try:
        await components["chunk_index"].ensure_index_exists()
    except (ConfigurationError, SearchIndexError) as exc:
        _logger.warning("chat_index_not_configured", error=exc.message)

    sweep_task: asyncio.Task[None] | None = None
    if settings.stale_sweep_interval > 0:
        sweep_task = asyncio.create_task(
            components["pipeline"].run_stale_sweep(
                interval_seconds=settings.stale_sweep_interval,
                older_than=timedelta(seconds=settings.stale_after_seconds),
            ),
            name="stale_sweep",
        )

    _logger.info(
        "app_startup",
        version=_VERSION,
        environment=settings.app_env,
        embedding_provider=components["provider_registry"]["embedding_provider"],
        stale_sweep=sweep_task is not None,
    )

    yield

    # -- Shutdown: let in-flight documents finish, then stop the sweep --
    drain_timeout = config.get("pipeline", {}).get("drain_timeout_seconds", 30)
    task_runner: BackgroundTaskRunner = components["task_runner"]
    await task_runner.drain(timeout=drain_timeout)
    if task_runner.in_flight():
        await task_runner.cancel_all()

    if sweep_task is not None:
        sweep_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweep_task

    _logger.info("app_shutdown", tasks=task_runner.stats())


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="docindex API",
        version=_VERSION,
        description=(
            "Upload documents and images, extract their text with PyMuPDF or "
            "Tesseract, embed it, and search the collection by keyword and meaning."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    # -- API routes --
    application.include_router(api_router)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "docindex.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
