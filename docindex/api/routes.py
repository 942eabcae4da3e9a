"""FastAPI API routes for docindex.

Service dependencies are resolved from ``app.state`` via FastAPI's
``Depends`` using the ``Annotated`` pattern; ``main._build_all`` puts
them there at startup.

Endpoint                                   Method  Description
/api/v1/documents/upload                   POST    Upload a document, processing starts in background
/api/v1/documents                          GET     List live documents (filters: owner/status/type/name)
/api/v1/documents/stats                    GET     Totals by status/type plus index counts
/api/v1/documents/search                   POST    Hybrid keyword + vector search
/api/v1/documents/{id}                     GET     One document's metadata
/api/v1/documents/{id}                     DELETE  Delete blob, index entry and record
/api/v1/documents/{id}/download            GET     Original bytes
/api/v1/documents/{id}/tags                PUT     Replace tags
/api/v1/documents/{id}/categories          PUT     Replace categories
/api/v1/documents/{id}/description         PUT     Replace description
/api/v1/chat/{thread}/documents            POST    Attach a file to a chat thread
/api/v1/chat/{thread}/documents            GET     List a thread's attachments
/api/v1/chat/{thread}/documents            DELETE  Remove a thread's attachments
/api/v1/chat/{thread}/search               POST    Similarity search within a thread
/api/v1/health                             GET     Health check + provider status

Authentication is out of scope; the caller identifies itself with the
``X-User-Id`` header.
"""

from __future__ import annotations

from typing import Annotated, Any
from urllib.parse import quote

import structlog
from fastapi import APIRouter, Depends, Header, Query, Request, Response, UploadFile

from docindex.api.schemas import (
    ChatDocumentsResponse,
    ChatSearchRequest,
    ChatSearchResponse,
    ChatUploadResponse,
    DeleteResponse,
    DocumentListResponse,
    ErrorResponse,
    HealthResponse,
    SearchRequest,
    SearchResponse,
    StatsResponse,
    UpdateCategoriesRequest,
    UpdateDescriptionRequest,
    UpdateTagsRequest,
    UploadResponse,
)
from docindex.models.document import DocumentInfo, DocumentStatus, UploadedFile
from docindex.pipeline.orchestrator import DocumentIngestionPipeline
from docindex.services.document_service import DocumentManagementService
from docindex.services.ingestion.chat_ingestion_service import ChatDocumentIngestionService
from docindex.services.validation import FILE_TOO_LARGE, UNSUPPORTED_TYPE
from docindex.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

# Uploads are read in 64 KB increments and reading stops one byte past the
# policy limit, so an oversized file is never fully buffered.
_UPLOAD_CHUNK_SIZE = 64 * 1024

_VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Dependency helpers
# ---------------------------------------------------------------------------


def _get_pipeline(request: Request) -> DocumentIngestionPipeline:
    return request.app.state.pipeline


def _get_document_service(request: Request) -> DocumentManagementService:
    return request.app.state.document_service


def _get_chat_service(request: Request) -> ChatDocumentIngestionService:
    return request.app.state.chat_service


PipelineDep = Annotated[DocumentIngestionPipeline, Depends(_get_pipeline)]
DocumentServiceDep = Annotated[DocumentManagementService, Depends(_get_document_service)]
ChatServiceDep = Annotated[ChatDocumentIngestionService, Depends(_get_chat_service)]
UserIdHeader = Annotated[str, Header(alias="X-User-Id")]


async def _read_upload(file: UploadFile, max_bytes: int) -> bytes:
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await file.read(_UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        chunks.append(chunk)
        total += len(chunk)
        if total > max_bytes:
            break
    return b"".join(chunks)


# ---------------------------------------------------------------------------
# Document endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/documents/upload",
    response_model=UploadResponse,
    status_code=202,
    responses={413: {"model": UploadResponse}, 415: {"model": UploadResponse}},
    summary="Upload a document for extraction and indexing",
)
async def upload_document(
    file: UploadFile,
    response: Response,
    pipeline: PipelineDep,
    x_user_id: UserIdHeader = "anonymous",
) -> UploadResponse:
    """Store the file and queue processing; poll the document for its status."""
    data = await _read_upload(file, pipeline.max_upload_bytes)
    result = await pipeline.upload(
        UploadedFile(
            file_name=file.filename or "upload",
            content_type=file.content_type or "application/octet-stream",
            data=data,
            uploaded_by=x_user_id,
        )
    )
    if not result.success:
        response.status_code = {UNSUPPORTED_TYPE: 415, FILE_TOO_LARGE: 413}.get(
            result.error or "", 500
        )
    return UploadResponse(**result.model_dump())


@router.get(
    "/documents",
    response_model=DocumentListResponse,
    summary="List documents",
)
async def list_documents(
    service: DocumentServiceDep,
    uploaded_by: str | None = None,
    status: DocumentStatus | None = None,
    file_type: str | None = None,
    name: Annotated[str | None, Query(max_length=200)] = None,
) -> DocumentListResponse:
    documents = await service.list_documents(
        uploaded_by=uploaded_by, status=status, file_type=file_type, name_contains=name
    )
    return DocumentListResponse(documents=documents, total=len(documents))


@router.get(
    "/documents/stats",
    response_model=StatsResponse,
    summary="Document and index statistics",
)
async def document_stats(service: DocumentServiceDep) -> StatsResponse:
    stats = await service.stats()
    return StatsResponse(**stats.model_dump())


@router.post(
    "/documents/search",
    response_model=SearchResponse,
    summary="Hybrid keyword and semantic search",
)
async def search_documents(body: SearchRequest, service: DocumentServiceDep) -> SearchResponse:
    results = await service.search(body.query, filters=body.filters, top=body.top)
    return SearchResponse(query=body.query, results=results, total=len(results))


@router.get(
    "/documents/{document_id}",
    response_model=DocumentInfo,
    responses={404: {"model": ErrorResponse}},
    summary="Get one document",
)
async def get_document(document_id: str, service: DocumentServiceDep) -> DocumentInfo:
    return await service.get_document(document_id)


@router.delete(
    "/documents/{document_id}",
    response_model=DeleteResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Delete a document",
)
async def delete_document(document_id: str, service: DocumentServiceDep) -> DeleteResponse:
    await service.delete(document_id)
    return DeleteResponse(success=True, document_id=document_id)


@router.get(
    "/documents/{document_id}/download",
    responses={404: {"model": ErrorResponse}},
    summary="Download the original file",
)
async def download_document(document_id: str, service: DocumentServiceDep) -> Response:
    result = await service.download(document_id)
    return Response(
        content=result.data,
        media_type=result.content_type,
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(result.file_name)}"
        },
    )


@router.put("/documents/{document_id}/tags", response_model=DocumentInfo)
async def update_tags(
    document_id: str, body: UpdateTagsRequest, service: DocumentServiceDep
) -> DocumentInfo:
    return await service.update_tags(document_id, body.tags)


@router.put("/documents/{document_id}/categories", response_model=DocumentInfo)
async def update_categories(
    document_id: str, body: UpdateCategoriesRequest, service: DocumentServiceDep
) -> DocumentInfo:
    return await service.update_categories(document_id, body.categories)


@router.put("/documents/{document_id}/description", response_model=DocumentInfo)
async def update_description(
    document_id: str, body: UpdateDescriptionRequest, service: DocumentServiceDep
) -> DocumentInfo:
    return await service.update_description(document_id, body.description)


# ---------------------------------------------------------------------------
# Chat attachment endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/chat/{chat_thread_id}/documents",
    response_model=ChatUploadResponse,
    summary="Attach a file to a chat thread",
)
async def upload_chat_document(
    chat_thread_id: str,
    file: UploadFile,
    response: Response,
    chat_service: ChatServiceDep,
    x_user_id: UserIdHeader = "anonymous",
) -> ChatUploadResponse:
    data = await _read_upload(file, chat_service.max_upload_bytes)
    result = await chat_service.ingest(
        UploadedFile(
            file_name=file.filename or "upload",
            content_type=file.content_type or "application/octet-stream",
            data=data,
            uploaded_by=x_user_id,
        ),
        chat_thread_id,
    )
    if not result.success:
        response.status_code = 400
    return ChatUploadResponse(
        success=result.success,
        chat_thread_id=chat_thread_id,
        chunks=len(result.chunks),
        error=result.error,
    )


@router.get("/chat/{chat_thread_id}/documents", response_model=ChatDocumentsResponse)
async def list_chat_documents(
    chat_thread_id: str, chat_service: ChatServiceDep
) -> ChatDocumentsResponse:
    documents = await chat_service.find_chat_documents(chat_thread_id)
    return ChatDocumentsResponse(chat_thread_id=chat_thread_id, documents=documents)


@router.delete("/chat/{chat_thread_id}/documents")
async def delete_chat_documents(
    chat_thread_id: str, chat_service: ChatServiceDep
) -> dict[str, Any]:
    deleted = await chat_service.delete_thread_documents(chat_thread_id)
    return {"chat_thread_id": chat_thread_id, "deleted_chunks": deleted}


@router.post("/chat/{chat_thread_id}/search", response_model=ChatSearchResponse)
async def search_chat_documents(
    chat_thread_id: str,
    body: ChatSearchRequest,
    chat_service: ChatServiceDep,
    x_user_id: Annotated[str | None, Header(alias="X-User-Id")] = None,
) -> ChatSearchResponse:
    matches = await chat_service.similarity_search(body.query, body.k, chat_thread_id, x_user_id)
    return ChatSearchResponse(chat_thread_id=chat_thread_id, matches=matches)


# ---------------------------------------------------------------------------
# System endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Application health check",
)
async def health_check(request: Request) -> HealthResponse:
    """Return application health, version, and provider availability."""
    providers: dict[str, Any] = dict(getattr(request.app.state, "provider_registry", {}))

    search_index = getattr(request.app.state, "search_index", None)
    if search_index is not None:
        try:
            index_stats = await search_index.count()
            providers["search_index"] = True
            providers["indexed_documents"] = index_stats.document_count
        except Exception as exc:
            _logger.warning("health_index_check_failed", error=str(exc))
            providers["search_index"] = False

    task_runner = getattr(request.app.state, "task_runner", None)
    if task_runner is not None:
        providers["background_tasks"] = task_runner.stats()

    critical_ok = providers.get("embedding", False) and providers.get("search_index", False)
    status = "healthy" if critical_ok else "degraded"
    return HealthResponse(status=status, version=_VERSION, providers=providers)
