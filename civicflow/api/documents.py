"""Tender document endpoints."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from civicflow.api.deps import get_actor
from civicflow.db import get_db
from civicflow.models import Actor
from civicflow.schemas import DocumentCreate, DocumentResponse
from civicflow.services.document_service import document_service
from civicflow.services.query_service import query_service

router = APIRouter()


@router.post(
    "/tenders/{tender_id}/documents",
    response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_document(
    tender_id: int,
    data: DocumentCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Record a document already stored in object storage."""
    return await document_service.upload(db, tender_id, actor, **data.model_dump())


@router.get("/tenders/{tender_id}/documents", response_model=list[DocumentResponse])
async def list_documents(
    tender_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await query_service.list_documents(db, actor, tender_id)


@router.get("/documents/{document_id}/versions", response_model=list[DocumentResponse])
async def list_document_versions(
    document_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Version chain of a document, oldest first."""
    return await query_service.document_versions(db, actor, document_id)
