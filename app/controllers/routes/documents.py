"""POST/GET/DELETE /documents: tenant-scoped document writes and reads with cache invalidation."""

from fastapi import APIRouter, Depends

from app.controllers.dependencies import enforce_rate_limit, get_orchestrator, get_tenant_id
from app.controllers.schema.documents import (
    DocumentCreatedResponse,
    DocumentCreateRequest,
    DocumentDeletedResponse,
)
from app.services.search.errors import NotFoundError
from app.services.search.models import Document
from app.services.search.orchestrator import SearchOrchestrator

router = APIRouter(prefix="/documents", tags=["documents"], dependencies=[Depends(enforce_rate_limit)])


@router.post("", response_model=DocumentCreatedResponse, status_code=201)
async def create_document(
    body: DocumentCreateRequest,
    tenant_id: str = Depends(get_tenant_id),
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
) -> DocumentCreatedResponse:
    """Index (create or replace) a document, then drop the tenant's cached searches."""
    document = Document(
        id=body.id,
        tenant_id=tenant_id,
        title=body.title,
        content=body.content,
        tags=body.tags,
        metadata=body.metadata.model_dump(exclude_none=True),
    )
    stored = await orchestrator.index_document(tenant_id, document)
    return DocumentCreatedResponse(id=stored.id, tenant_id=tenant_id)


@router.get("/{doc_id}", response_model=Document)
async def get_document(
    doc_id: str,
    tenant_id: str = Depends(get_tenant_id),
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
) -> Document:
    """Read one document. Another tenant's document is reported exactly like a missing one."""
    document = await orchestrator.get_document(tenant_id, doc_id)
    if document is None:
        raise NotFoundError("Document not found")
    return document


@router.delete("/{doc_id}", response_model=DocumentDeletedResponse)
async def delete_document(
    doc_id: str,
    tenant_id: str = Depends(get_tenant_id),
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
) -> DocumentDeletedResponse:
    """Delete a document. A missing id is a distinct 'not_found' outcome, not a failure."""
    deleted = await orchestrator.delete_document(tenant_id, doc_id)
    return DocumentDeletedResponse(id=doc_id, tenant_id=tenant_id, status="deleted" if deleted else "not_found")
