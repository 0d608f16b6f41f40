"""Tests for tender documents and their version chains."""

import pytest

from civicflow.errors import ConflictingState, ReferentialViolation, Unauthorized, ValidationError
from civicflow.models import DocumentType
from civicflow.services.document_service import document_service


async def _upload(flow, tender_id, uploader=None, document_type=DocumentType.SPECIFICATION, **kwargs):
    uploader = uploader or flow.w.dept_admin
    name = kwargs.pop("file_name", "scope.pdf")
    return await document_service.upload(
        flow.db, tender_id, uploader, document_type, name,
        f"https://storage.example.org/tenders/{tender_id}/{name}", **kwargs,
    )


class TestUpload:

    @pytest.mark.asyncio
    async def test_department_admin_uploads(self, flow, world):
        tender = await flow.tender(open_bidding=False)

        document = await _upload(flow, tender.id, file_size=2048, mime_type="application/pdf", is_public=True)

        assert document.version_number == 1
        assert document.replaces_document_id is None
        assert document.uploaded_by == world.dept_admin.id
        assert document.is_public is True

    @pytest.mark.asyncio
    async def test_awarded_contractor_uploads_reports(self, flow, world):
        tender, _ = await flow.tender_in_progress()

        report = await _upload(flow, tender.id, world.contractor, DocumentType.PROGRESS_REPORT, file_name="week1.pdf")

        assert report.document_type == DocumentType.PROGRESS_REPORT

    @pytest.mark.asyncio
    async def test_contractor_cannot_upload_contracts(self, flow, world):
        tender, _ = await flow.tender_in_progress()

        with pytest.raises(Unauthorized) as exc_info:
            await _upload(flow, tender.id, world.contractor, DocumentType.CONTRACT)
        assert exc_info.value.rule == "not_document_uploader"

    @pytest.mark.asyncio
    async def test_losing_bidder_cannot_upload(self, flow, world):
        tender, _ = await flow.awarded_tender()

        with pytest.raises(Unauthorized):
            await _upload(flow, tender.id, world.contractor2, DocumentType.INVOICE)

    @pytest.mark.asyncio
    async def test_file_url_required(self, flow, world):
        tender = await flow.tender(open_bidding=False)

        with pytest.raises(ValidationError):
            await document_service.upload(flow.db, tender.id, world.dept_admin, DocumentType.OTHER, "x.pdf", "")

    @pytest.mark.asyncio
    async def test_unknown_tender(self, flow, world):
        with pytest.raises(ReferentialViolation) as exc_info:
            await _upload(flow, 5050)
        assert exc_info.value.rule == "tender_exists"


class TestVersions:

    @pytest.mark.asyncio
    async def test_new_version_extends_the_chain(self, flow, world):
        tender = await flow.tender(open_bidding=False)
        v1 = await _upload(flow, tender.id)

        v2 = await _upload(flow, tender.id, file_name="scope-v2.pdf", replaces_document_id=v1.id)
        v3 = await _upload(flow, tender.id, file_name="scope-v3.pdf", replaces_document_id=v2.id)

        assert (v2.version_number, v3.version_number) == (2, 3)
        for member in (v1, v2, v3):
            chain = await document_service.version_chain(flow.db, member.id)
            assert [d.id for d in chain] == [v1.id, v2.id, v3.id]

    @pytest.mark.asyncio
    async def test_a_version_is_replaced_once(self, flow, world):
        tender = await flow.tender(open_bidding=False)
        v1 = await _upload(flow, tender.id)
        await _upload(flow, tender.id, file_name="scope-v2.pdf", replaces_document_id=v1.id)

        with pytest.raises(ConflictingState):
            await _upload(flow, tender.id, file_name="scope-v2b.pdf", replaces_document_id=v1.id)

    @pytest.mark.asyncio
    async def test_replacement_stays_on_its_tender(self, flow, world):
        first = await flow.tender(open_bidding=False)
        second = await flow.tender(open_bidding=False)
        original = await _upload(flow, first.id)

        with pytest.raises(ValidationError):
            await _upload(flow, second.id, replaces_document_id=original.id)

    @pytest.mark.asyncio
    async def test_replacing_unknown_document(self, flow, world):
        tender = await flow.tender(open_bidding=False)

        with pytest.raises(ReferentialViolation) as exc_info:
            await _upload(flow, tender.id, replaces_document_id=999)
        assert exc_info.value.rule == "document_exists"

    @pytest.mark.asyncio
    async def test_unknown_chain(self, db):
        with pytest.raises(ReferentialViolation):
            await document_service.version_chain(db, 404)
