"""Tender document Pydantic schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from civicflow.models.document import DocumentType


class DocumentCreate(BaseModel):
    """Metadata of a file already stored in object storage."""

    document_type: DocumentType
    file_name: str = Field(..., max_length=500)
    file_url: str = Field(..., max_length=2000)
    file_size: Optional[int] = None
    mime_type: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    is_public: bool = False
    replaces_document_id: Optional[int] = None


class DocumentResponse(BaseModel):
    """Document response schema."""

    id: int
    tender_id: int
    uploaded_by: int
    document_type: DocumentType
    file_name: str
    file_url: str
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    description: Optional[str] = None
    is_public: bool
    version_number: int
    replaces_document_id: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
