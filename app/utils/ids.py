"""Id generation for documents. Index-side ids are deterministic per (tenant, document)."""

import uuid

from app.utils.time import epoch_ms


def generate_document_id() -> str:
    """Generate a document id for create requests that omit one, e.g. doc_1718000000000_3f9a2c1."""
    return f"doc_{int(epoch_ms())}_{uuid.uuid4().hex[:7]}"


def index_document_id(tenant_id: str, doc_id: str) -> str:
    """
    OpenSearch _id for a tenant's document. ':' cannot appear in a tenant id, so two tenants
    never map to the same _id (an '_' separator would let tenant "a" doc "b_c" clash with tenant "a_b" doc "c").
    """
    return f"{tenant_id}:{doc_id}"
