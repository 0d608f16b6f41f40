"""Tender document service.

Files live in external object storage; this service records the returned
URL and keeps each document's version chain linear.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from civicflow.db import atomic, lock_row, scopes
from civicflow.errors import ConflictingState, ReferentialViolation, ValidationError
from civicflow.models import Actor, Document, DocumentType, Tender

from .access_control import Action, ensure_authorized
from .dispatcher import EntityKind, TransitionEvent, dispatcher

logger = logging.getLogger(__name__)


class DocumentService:
    """Records tender documents and their versions."""

    async def upload(
        self,
        db: AsyncSession,
        tender_id: int,
        uploader: Actor,
        document_type: DocumentType,
        file_name: str,
        file_url: str,
        file_size: int | None = None,
        mime_type: str | None = None,
        description: str | None = None,
        is_public: bool = False,
        replaces_document_id: int | None = None,
    ) -> Document:
        """
        Record an uploaded document, optionally as a new version of another.

        A replacement must belong to the same tender and replace the latest
        version; each version is replaced at most once.

        Args:
            db: Database session
            tender_id: Tender the document belongs to
            uploader: Acting actor, recorded as uploaded_by
            document_type: Kind of document
            file_name: Original file name
            file_url: URL returned by object storage
            file_size: Size in bytes
            mime_type: MIME type
            description: Free-text description
            is_public: Visible to every actor
            replaces_document_id: Previous version, if any

        Returns:
            The stored document
        """
        if not file_name or not file_url:
            raise ValidationError("file_name and file_url are required")
        if file_size is not None and file_size < 0:
            raise ValidationError("file_size cannot be negative")

        async with scopes.hold("tender", tender_id):
            async with atomic(db):
                tender = await db.get(Tender, tender_id)
                if tender is None:
                    raise ReferentialViolation(f"Tender {tender_id} not found", rule="tender_exists")

                document = Document(
                    tender_id=tender.id,
                    uploaded_by=uploader.id,
                    document_type=document_type,
                    file_name=file_name,
                    file_url=file_url,
                    file_size=file_size,
                    mime_type=mime_type,
                    description=description,
                    is_public=is_public,
                    version_number=1,
                    replaces_document_id=replaces_document_id,
                )
                ensure_authorized(uploader, document, Action.DOCUMENT_UPLOAD, tender=tender)

                if replaces_document_id is not None:
                    previous = await lock_row(db, Document, replaces_document_id)
                    if previous is None:
                        raise ReferentialViolation(
                            f"Document {replaces_document_id} not found",
                            rule="document_exists",
                        )
                    if previous.tender_id != tender.id:
                        raise ValidationError(
                            f"Document {previous.id} belongs to tender {previous.tender_id}, not {tender.id}"
                        )
                    successor = await self.successor(db, previous.id)
                    if successor is not None:
                        raise ConflictingState(
                            f"Document {previous.id} was already replaced by document {successor.id}"
                        )
                    document.version_number = previous.version_number + 1

                db.add(document)
                try:
                    await db.flush()
                except IntegrityError as e:
                    raise ConflictingState(
                        f"Document {replaces_document_id} was replaced concurrently"
                    ) from e

                await dispatcher.dispatch(
                    db,
                    TransitionEvent(
                        EntityKind.DOCUMENT,
                        document.id,
                        None,
                        f"v{document.version_number}",
                        uploader.id,
                    ),
                )

        logger.info(
            f"Document {document.id} ({document_type.value} v{document.version_number}) "
            f"uploaded to tender {tender_id} by actor {uploader.id}"
        )
        return document

    async def successor(self, db: AsyncSession, document_id: int) -> Document | None:
        """The version replacing ``document_id``, if any."""
        result = await db.execute(select(Document).where(Document.replaces_document_id == document_id))
        return result.scalar_one_or_none()

    async def version_chain(self, db: AsyncSession, document_id: int) -> list[Document]:
        """
        Every version of a document, oldest first.

        Args:
            db: Database session
            document_id: Any version in the chain

        Returns:
            The full chain the document belongs to
        """
        document = await db.get(Document, document_id)
        if document is None:
            raise ReferentialViolation(f"Document {document_id} not found", rule="document_exists")

        chain = [document]
        while chain[0].replaces_document_id is not None:
            chain.insert(0, await db.get(Document, chain[0].replaces_document_id))
        newer = await self.successor(db, document.id)
        while newer is not None:
            chain.append(newer)
            newer = await self.successor(db, newer.id)
        return chain


# Singleton instance
document_service = DocumentService()
