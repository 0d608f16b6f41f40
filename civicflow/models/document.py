"""Tender document model."""

from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, enum_column

if TYPE_CHECKING:
    from .tender import Tender


class DocumentType(str, Enum):
    """Kind of tender document."""

    SPECIFICATION = "specification"
    DRAWING = "drawing"
    CONTRACT = "contract"
    PROGRESS_REPORT = "progress_report"
    COMPLETION_CERTIFICATE = "completion_certificate"
    INVOICE = "invoice"
    OTHER = "other"


# Types an awarded contractor may upload on behalf of the tender
CONTRACTOR_DOCUMENT_TYPES = frozenset(
    {
        DocumentType.PROGRESS_REPORT,
        DocumentType.COMPLETION_CERTIFICATE,
        DocumentType.INVOICE,
    }
)


class Document(BaseModel):
    """
    Document attached to a tender.

    The file itself lives in external object storage; only its URL is kept.
    Documents are immutable. A new version points at the one it replaces.
    """

    __tablename__ = "tender_documents"

    tender_id: Mapped[int] = mapped_column(
        ForeignKey("tenders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    uploaded_by: Mapped[int] = mapped_column(ForeignKey("profiles.id"), nullable=False)

    document_type: Mapped[DocumentType] = mapped_column(
        enum_column(DocumentType, "documenttype"),
        nullable=False,
    )
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    file_url: Mapped[str] = mapped_column(String(2000), nullable=False)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mime_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Version chain
    version_number: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    replaces_document_id: Mapped[int | None] = mapped_column(
        ForeignKey("tender_documents.id"),
        nullable=True,
        unique=True,
    )

    # Relationships
    tender: Mapped["Tender"] = relationship("Tender", back_populates="documents")

    def __repr__(self) -> str:
        return (
            f"<Document(id={self.id}, tender_id={self.tender_id}, "
            f"type={self.document_type}, version={self.version_number})>"
        )
