"""Тесты координатора выдачи документа."""
import asyncio
import threading
from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from acarreos.core.exceptions import (
    DeliveryUnavailable,
    InvalidCompletionInput,
    IssuanceInProgress,
    NotFoundException,
    PersistenceFailed,
    ValidationException,
    VerificationImageFailed,
)
from acarreos.models.history import VoucherEvent
from acarreos.models.voucher import RentalDetail, Voucher, VoucherState
from acarreos.services.delivery import DeliveryReceipt, DownloadDelivery, PrintSpoolDelivery
from acarreos.services.issuance_service import IssuanceCoordinator
from acarreos.services.rental_completion import ClosureInput, rental_subtotal
from acarreos.services.verification import VerificationCodeEmbedder
from acarreos.services.voucher_service import VoucherService
from tests.conftest import make_material, make_rental


class FlakyDelivery:
    """Доставка, которая недоступна, пока не включат."""
    name = "print"

    def __init__(self):
        self.available = False
        self.delivered = []

    def is_available(self) -> bool:
        return self.available

    async def deliver(self, artifact):
        self.delivered.append(artifact)
        return DeliveryReceipt(filename=artifact.filename, channel=self.name, location="cola")


def _event_types(db, voucher_id):
    return [
        e.event_type
        for e in db.query(VoucherEvent).filter(VoucherEvent.voucher_id == voucher_id).order_by(VoucherEvent.id)
    ]


class TestIssue:

    @pytest.mark.asyncio
    async def test_issue_material_download(self, db_session, catalog, coordinator):
        voucher = make_material(db_session)
        result = await coordinator.issue(db_session, voucher.id, "roja", DownloadDelivery())
        assert result.artifact.content.startswith(b"%PDF")
        assert result.receipt.filename == "CD-140-00001_Roja.pdf"
        assert result.receipt.channel == "download"
        assert result.state == VoucherState.ISSUED
        assert not result.reused
        assert _event_types(db_session, voucher.id) == ["document_issued"]

    @pytest.mark.asyncio
    async def test_close_by_hour_persists_before_render(self, db_session, catalog, coordinator):
        voucher = make_rental(db_session)
        closure = ClosureInput(end_time=datetime(2026, 3, 2, 10, 30), trips=3)
        result = await coordinator.issue(db_session, voucher.id, "blanco", DownloadDelivery(), closure)

        assert result.state == VoucherState.COMPLETED
        db_session.expire_all()
        detail = db_session.get(RentalDetail, voucher.id)
        assert detail.total_hours == 2.5
        assert detail.total_days == 0
        assert detail.end_time == datetime(2026, 3, 2, 10, 30)
        assert detail.trips == 3
        assert rental_subtotal(detail) == Decimal("1125.00")
        assert db_session.get(Voucher, voucher.id).state == VoucherState.COMPLETED.value
        assert _event_types(db_session, voucher.id) == ["rental_closed", "document_issued"]

    @pytest.mark.asyncio
    async def test_close_by_day(self, db_session, catalog, coordinator):
        voucher = make_rental(db_session)
        closure = ClosureInput(close_by_day=True, end_time=datetime(2026, 3, 2, 18, 0))
        await coordinator.issue(db_session, voucher.id, "blanco", DownloadDelivery(), closure)

        db_session.expire_all()
        detail = db_session.get(RentalDetail, voucher.id)
        assert (detail.total_hours, detail.total_days, detail.end_time) == (0.0, 1, None)
        assert rental_subtotal(detail) == Decimal("3200.00")

    @pytest.mark.asyncio
    async def test_reissue_of_completed_voucher_is_byte_identical(self, db_session, catalog, coordinator):
        voucher = make_rental(db_session)
        closure = ClosureInput(end_time=datetime(2026, 3, 2, 10, 30))
        first = await coordinator.issue(db_session, voucher.id, "verde", DownloadDelivery(), closure)
        second = await coordinator.issue(db_session, voucher.id, "verde", DownloadDelivery(), closure)
        third = await coordinator.issue(db_session, voucher.id, "verde", DownloadDelivery())
        assert first.artifact.content == second.artifact.content == third.artifact.content

    @pytest.mark.asyncio
    async def test_invalid_closure_writes_nothing(self, db_session, catalog, coordinator):
        voucher = make_rental(db_session)
        with pytest.raises(InvalidCompletionInput):
            await coordinator.issue(
                db_session, voucher.id, "blanco", DownloadDelivery(),
                ClosureInput(end_time=datetime(2026, 3, 2, 7, 0)),
            )
        db_session.expire_all()
        assert db_session.get(RentalDetail, voucher.id).end_time is None
        assert not coordinator.is_issuing(voucher.id)

    @pytest.mark.asyncio
    async def test_draft_becomes_issued(self, db_session, catalog, coordinator):
        voucher = make_material(db_session, state="draft")
        result = await coordinator.issue(db_session, voucher.id, "blanco", DownloadDelivery())
        assert result.state == VoucherState.ISSUED
        assert _event_types(db_session, voucher.id) == ["state_changed", "document_issued"]

    @pytest.mark.asyncio
    async def test_unknown_voucher(self, db_session, catalog, coordinator):
        with pytest.raises(NotFoundException):
            await coordinator.issue(db_session, 999, "blanco", DownloadDelivery())

    @pytest.mark.asyncio
    async def test_temporary_folio_is_not_printed(self, db_session, catalog, coordinator):
        voucher = make_material(db_session, folio="TEMP-12345678")
        with pytest.raises(ValidationException):
            await coordinator.issue(db_session, voucher.id, "blanco", DownloadDelivery())


class TestFailures:

    @pytest.mark.asyncio
    async def test_second_issuance_while_in_flight_is_rejected(self, db_session, catalog, coordinator):
        voucher = make_material(db_session)
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_embed(url):
            started.set()
            await release.wait()
            raise VerificationImageFailed("cancelado")

        coordinator.embedder.embed = slow_embed
        first = asyncio.create_task(coordinator.issue(db_session, voucher.id, "blanco", DownloadDelivery()))
        await started.wait()

        assert coordinator.is_issuing(voucher.id)
        with pytest.raises(IssuanceInProgress):
            await coordinator.issue(db_session, voucher.id, "roja", DownloadDelivery())

        release.set()
        with pytest.raises(VerificationImageFailed):
            await first
        assert not coordinator.is_issuing(voucher.id)

    @pytest.mark.asyncio
    async def test_qr_failure_after_commit_keeps_closure_and_retry_works(self, db_session, catalog, coordinator):
        voucher = make_rental(db_session)
        closure = ClosureInput(end_time=datetime(2026, 3, 2, 10, 30))
        real_embed = coordinator.embedder.embed
        coordinator.embedder.embed = AsyncMock(side_effect=VerificationImageFailed("sin QR"))

        with pytest.raises(VerificationImageFailed):
            await coordinator.issue(db_session, voucher.id, "blanco", DownloadDelivery(), closure)

        db_session.expire_all()
        assert db_session.get(RentalDetail, voucher.id).total_hours == 2.5

        coordinator.embedder.embed = real_embed
        result = await coordinator.issue(db_session, voucher.id, "blanco", DownloadDelivery(), closure)
        assert result.state == VoucherState.COMPLETED

    @pytest.mark.asyncio
    async def test_persistence_failure_is_surfaced(self, db_session, catalog, coordinator):
        voucher = make_rental(db_session)
        with patch.object(db_session, "commit", side_effect=OperationalError("UPDATE", {}, Exception("locked"))):
            with pytest.raises(PersistenceFailed):
                await coordinator.issue(
                    db_session, voucher.id, "blanco", DownloadDelivery(),
                    ClosureInput(close_by_day=True),
                )
        db_session.expire_all()
        assert db_session.get(RentalDetail, voucher.id).total_days == 0

    @pytest.mark.asyncio
    async def test_mismatched_verification_url_fails_closed(self, db_session, catalog, coordinator):
        voucher = make_material(db_session)
        voucher.verification_url = "https://verify.controldeacarreos.com/vale/CD-140-00099"
        db_session.commit()
        with pytest.raises(VerificationImageFailed):
            await coordinator.issue(db_session, voucher.id, "blanco", DownloadDelivery())


class TestDelivery:

    @pytest.mark.asyncio
    async def test_unavailable_delivery_keeps_document_pending(self, db_session, catalog, coordinator):
        voucher = make_material(db_session)
        delivery = FlakyDelivery()
        with pytest.raises(DeliveryUnavailable):
            await coordinator.issue(db_session, voucher.id, "azul", delivery)
        pending = coordinator.pending_for(voucher.id, "azul", "print")
        assert pending is not None

        render = coordinator.renderer.render
        coordinator.renderer.render = lambda *args, **kwargs: pytest.fail("document regenerated")
        delivery.available = True
        result = await coordinator.retry_delivery(db_session, voucher.id, "azul", delivery)
        coordinator.renderer.render = render

        assert result.reused
        assert result.artifact is pending
        assert delivery.delivered == [pending]
        assert coordinator.pending_for(voucher.id, "azul", "print") is None

    @pytest.mark.asyncio
    async def test_reissue_reuses_pending_document(self, db_session, catalog, coordinator):
        voucher = make_material(db_session)
        delivery = FlakyDelivery()
        with pytest.raises(DeliveryUnavailable):
            await coordinator.issue(db_session, voucher.id, "azul", delivery)

        delivery.available = True
        result = await coordinator.issue(db_session, voucher.id, "azul", delivery)
        assert result.reused

    @pytest.mark.asyncio
    async def test_retry_without_pending_document(self, db_session, catalog, coordinator):
        voucher = make_material(db_session)
        with pytest.raises(NotFoundException):
            await coordinator.retry_delivery(db_session, voucher.id, "blanco", DownloadDelivery())

    @pytest.mark.asyncio
    async def test_print_spool_writes_file(self, db_session, catalog, coordinator, tmp_path):
        voucher = make_material(db_session)
        result = await coordinator.issue(db_session, voucher.id, "naranja", PrintSpoolDelivery(tmp_path))
        spooled = tmp_path / "CD-140-00001_Naranja.pdf"
        assert spooled.read_bytes() == result.artifact.content
        assert result.receipt.location == str(spooled)

    @pytest.mark.asyncio
    async def test_print_spool_write_error(self, db_session, catalog, coordinator, tmp_path):
        voucher = make_material(db_session)
        delivery = PrintSpoolDelivery(tmp_path)
        with patch.object(PrintSpoolDelivery, "_write", side_effect=OSError("disk full")):
            with pytest.raises(DeliveryUnavailable):
                await coordinator.issue(db_session, voucher.id, "blanco", delivery)
        assert coordinator.pending_for(voucher.id, "blanco", "print") is not None


class TestPendingDocuments:

    @pytest.mark.asyncio
    async def test_weight_recorded_after_failed_print_is_rendered(self, db_session, catalog, coordinator):
        voucher = make_material(db_session)
        delivery = FlakyDelivery()
        with pytest.raises(DeliveryUnavailable):
            await coordinator.issue(db_session, voucher.id, "azul", delivery)
        outdated = coordinator.pending_for(voucher.id, "azul", "print")

        VoucherService(db_session).record_weight(voucher, Decimal("14.5"))
        db_session.commit()

        delivery.available = True
        result = await coordinator.issue(db_session, voucher.id, "azul", delivery)
        assert not result.reused
        assert result.artifact.content != outdated.content
        assert delivery.delivered == [result.artifact]

        fresh = await IssuanceCoordinator(embedder=VerificationCodeEmbedder(settle_delay=0)).issue(
            db_session, voucher.id, "azul", DownloadDelivery()
        )
        assert result.artifact.content == fresh.artifact.content

    @pytest.mark.asyncio
    async def test_retry_of_outdated_document_is_rejected(self, db_session, catalog, coordinator):
        voucher = make_material(db_session)
        delivery = FlakyDelivery()
        with pytest.raises(DeliveryUnavailable):
            await coordinator.issue(db_session, voucher.id, "verde", delivery)

        VoucherService(db_session).record_weight(voucher, Decimal("9.75"))
        db_session.commit()

        delivery.available = True
        with pytest.raises(ValidationException):
            await coordinator.retry_delivery(db_session, voucher.id, "verde", delivery)
        assert delivery.delivered == []
        assert coordinator.pending_for(voucher.id, "verde", "print") is None

    @pytest.mark.asyncio
    async def test_oldest_pending_document_is_dropped_over_limit(self, db_session, catalog):
        coordinator = IssuanceCoordinator(embedder=VerificationCodeEmbedder(settle_delay=0), pending_limit=2)
        vouchers = [make_material(db_session, folio=f"CD-140-0000{n}") for n in (1, 2, 3)]
        delivery = FlakyDelivery()
        for voucher in vouchers:
            with pytest.raises(DeliveryUnavailable):
                await coordinator.issue(db_session, voucher.id, "blanco", delivery)

        assert coordinator.pending_for(vouchers[0].id, "blanco", "print") is None
        assert coordinator.pending_for(vouchers[1].id, "blanco", "print") is not None
        assert coordinator.pending_for(vouchers[2].id, "blanco", "print") is not None


class ThreadRecordingDelivery(FlakyDelivery):
    """Запоминает поток, в котором проверялась доступность."""

    def __init__(self):
        super().__init__()
        self.available = True
        self.checked_in = None

    def is_available(self) -> bool:
        self.checked_in = threading.current_thread()
        return True


@pytest.mark.asyncio
async def test_blocking_work_runs_outside_event_loop(db_session, catalog, coordinator):
    voucher = make_material(db_session)
    delivery = ThreadRecordingDelivery()
    render_threads = []
    render = coordinator.renderer.render

    def recording_render(*args, **kwargs):
        render_threads.append(threading.current_thread())
        return render(*args, **kwargs)

    coordinator.renderer.render = recording_render
    await coordinator.issue(db_session, voucher.id, "blanco", delivery)

    loop_thread = threading.current_thread()
    assert delivery.checked_in is not loop_thread
    assert render_threads and render_threads[0] is not loop_thread
