"""Entity-attached document API endpoints."""

import re
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..auth.context import RequestContext
from ..auth.dependencies import require_tenant
from ..db.database import get_db
from ..db.models import Document
from ..services.audit import emit_activity, emit_audit
from ..services.counts import adjust_count
from ..services.serialization import model_to_dict
from .middleware import ProblemDetailsException
from .schemas import DocumentCreate, DocumentResponse, ProblemDetails

router = APIRouter(prefix="/v1/documents", tags=["documents"])

EXTENSION_PATTERN = re.compile(r"[A-Za-z0-9]{1,16}")


def storage_path_for(account_id: UUID, entity_type: str, entity_id: UUID, filename: str) -> str:
    """``<account>/<entity_type>/<entity_id>/<uuid>.<ext>`` for a new document."""
    ext = filename.rsplit(".", 1)[-1] if "." in filename else ""
    if not EXTENSION_PATTERN.fullmatch(ext):
        ext = "bin"
    return f"{account_id}/{entity_type}/{entity_id}/{uuid4()}.{ext}"


@router.get(
    "",
    responses={
        200: {"description": "Documents attached to the entity, newest first"},
        400: {"model": ProblemDetails, "description": "entity_type or entity_id missing"},
    },
)
def list_documents(
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[UUID] = Query(None),
    ctx: RequestContext = Depends(require_tenant),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """List documents attached to one entity of the tenant account."""
    if not entity_type or entity_id is None:
        raise ProblemDetailsException(
            status_code=status.HTTP_400_BAD_REQUEST,
            title="Bad Request",
            detail="entity_type and entity_id are required",
        )

    documents = (
        db.query(Document)
        .filter(
            Document.account_id == ctx.account_id,
            Document.entity_type == entity_type,
            Document.entity_id == entity_id,
        )
        .order_by(Document.created_at.desc())
        .all()
    )
    return {
        "documents": [
            DocumentResponse.model_validate(d).model_dump(mode="json") for d in documents
        ]
    }


@router.post(
    "",
    response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={201: {"description": "Document recorded"}},
)
def create_document(
    data: DocumentCreate,
    ctx: RequestContext = Depends(require_tenant),
    db: Session = Depends(get_db),
) -> DocumentResponse:
    """Record a document attached to an entity; the caller is the uploader."""
    document = Document(
        account_id=ctx.account_id,
        entity_type=data.entity_type,
        entity_id=data.entity_id,
        filename=data.filename,
        content_type=data.content_type,
        size_bytes=data.size_bytes,
        storage_path=storage_path_for(
            ctx.account_id, data.entity_type, data.entity_id, data.filename
        ),
        uploaded_by_person_id=ctx.person_id,
    )
    db.add(document)
    adjust_count(db, ctx.account_id, "documents", 1)
    db.commit()
    db.refresh(document)

    emit_audit(
        db, ctx, "document.created", "document", document.id, after=model_to_dict(document)
    )
    emit_activity(
        db,
        ctx,
        "document.created",
        f'Uploaded "{document.filename}" to {document.entity_type}',
        entity_type=document.entity_type,
        entity_id=document.entity_id,
        metadata={"document_id": document.id, "filename": document.filename},
    )
    return DocumentResponse.model_validate(document)


@router.delete(
    "/{document_id}",
    responses={
        200: {"description": "Document deleted"},
        403: {"model": ProblemDetails, "description": "Not the uploader or an admin"},
        404: {"model": ProblemDetails, "description": "Document not found"},
    },
)
def delete_document(
    document_id: UUID,
    ctx: RequestContext = Depends(require_tenant),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Delete a document. Only its uploader or an account admin may do this."""
    document = (
        db.query(Document)
        .filter(Document.id == document_id, Document.account_id == ctx.account_id)
        .first()
    )
    if document is None:
        raise ProblemDetailsException(
            status_code=status.HTTP_404_NOT_FOUND,
            title="Document Not Found",
            detail=f"Document with ID {document_id} does not exist",
        )
    if document.uploaded_by_person_id != ctx.person_id and ctx.account_role != "admin":
        raise ProblemDetailsException(
            status_code=status.HTTP_403_FORBIDDEN,
            title="Forbidden",
            detail="Only the uploader or admins can delete documents",
        )

    before = model_to_dict(document)
    db.delete(document)
    adjust_count(db, ctx.account_id, "documents", -1)
    db.commit()

    emit_audit(db, ctx, "document.deleted", "document", document_id, before=before)
    emit_activity(
        db,
        ctx,
        "document.deleted",
        f'Deleted "{before["filename"]}" from {before["entity_type"]}',
        entity_type=before["entity_type"],
        entity_id=before["entity_id"],
    )
    return {"success": True}
