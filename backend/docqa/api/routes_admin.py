"""Administrative routes for docqa."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from docqa.api.dependencies import get_app_settings, get_runtime, get_vector_store
from docqa.core.config import Settings
from docqa.core.metrics import metrics_response
from docqa.models.dto import DeleteResponse, DocumentResponse, StatusResponse
from docqa.retrieval.runtime import KnowledgeRuntime, RuntimeState
from docqa.retrieval.vector_store import VectorStore

router = APIRouter()


@router.get("/status", response_model=StatusResponse, summary="Runtime lifecycle state")
def status(
    runtime: KnowledgeRuntime = Depends(get_runtime),
    settings: Settings = Depends(get_app_settings),
) -> StatusResponse:
    documents = runtime.store.count() if runtime.state is RuntimeState.READY else 0
    return StatusResponse(
        state=runtime.state.value,
        ready=runtime.is_ready,
        documents=documents,
        embedding_backend=settings.embedding_backend,
    )


@router.get("/documents/{document_id}", response_model=DocumentResponse, summary="Fetch a stored document")
def get_document(document_id: str, store: VectorStore = Depends(get_vector_store)) -> DocumentResponse:
    document = store.get_document(document_id)
    if document is None:
        raise HTTPException(status_code=404, detail="Document not found")
    chunk_ids = [chunk.id for chunk in store.get_chunks(document.id)] if document.is_full_text else []
    return DocumentResponse(
        id=document.id,
        content=document.content,
        created_at=document.created_at,
        parent_id=document.parent_id,
        is_full_text=document.is_full_text,
        chunk_ids=chunk_ids,
    )


@router.delete(
    "/documents/{document_id}",
    response_model=DeleteResponse,
    summary="Delete a document and its chunks",
)
def delete_document(document_id: str, store: VectorStore = Depends(get_vector_store)) -> DeleteResponse:
    deleted = store.delete_document(document_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Document not found")
    return DeleteResponse(status="ok", deleted=deleted)


@router.get("/metrics", summary="Prometheus metrics")
async def get_metrics():
    return metrics_response()


__all__ = ["router"]
