"""
Координатор выдачи документа вала.

Порядок: проверка перехода → расчёт закрытия → запись детали и состояния
(единственная точка фиксации) → QR → PDF → доставка. Всё после фиксации
строится заново из сохранённых данных, поэтому повтор после ошибки безопасен.

Работа с БД, файлами и рендер идут через asyncio.to_thread: сессия
используется последовательно, но не в потоке event loop.
"""
import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from acarreos.core.config import settings
from acarreos.core.exceptions import (
    DeliveryUnavailable,
    IssuanceInProgress,
    NotFoundException,
    PersistenceFailed,
    ValidationException,
    VerificationImageFailed,
)
from acarreos.models.voucher import Voucher, VoucherState
from acarreos.services.delivery import DeliveryReceipt, DocumentDelivery
from acarreos.services.document_renderer import (
    CopyColor,
    DocumentArtifact,
    DocumentRenderer,
    resolve_copy,
)
from acarreos.services.folio_service import is_temporary
from acarreos.services.rental_completion import ClosureInput
from acarreos.services.verification import (
    VerificationCodeEmbedder,
    build_verification_url,
    extract_folio,
)
from acarreos.services.voucher_service import VoucherService
from acarreos.services.voucher_state import VoucherStateMachine, effective_state

logger = logging.getLogger(__name__)

PendingKey = tuple[int, CopyColor, str]


def voucher_fingerprint(voucher: Voucher) -> tuple:
    """Снимок сохранённых полей вала и его детали, из которых строится документ."""
    detail = voucher.detail
    detail_values = ()
    if detail is not None:
        detail_values = tuple(
            (attr.key, getattr(detail, attr.key))
            for attr in inspect(detail).mapper.column_attrs
        )
    return (
        voucher.folio,
        voucher.state,
        voucher.verification_url,
        voucher.site_id,
        voucher.operator_name,
        voucher.vehicle_plate,
        voucher.notes,
        voucher.created_at,
        detail_values,
    )


@dataclass(frozen=True)
class IssuanceResult:
    artifact: DocumentArtifact
    receipt: DeliveryReceipt
    state: VoucherState
    reused: bool = False


@dataclass(frozen=True)
class PendingDocument:
    artifact: DocumentArtifact
    fingerprint: tuple


class IssuanceCoordinator:
    """
    Один экземпляр на приложение.

    _in_flight: локальная защита от повторного запуска для одного вала
    (не распределённая блокировка). _pending хранит готовые документы,
    доставка которых не удалась, вместе со снимком вала. Документ
    переиспользуется, только пока снимок совпадает с тем, что в БД.
    Самые старые записи вытесняются сверх pending_limit.
    """

    def __init__(
        self,
        state_machine: Optional[VoucherStateMachine] = None,
        embedder: Optional[VerificationCodeEmbedder] = None,
        renderer: Optional[DocumentRenderer] = None,
        pending_limit: Optional[int] = None,
    ):
        self.state_machine = state_machine or VoucherStateMachine()
        self.embedder = embedder or VerificationCodeEmbedder()
        self.renderer = renderer or DocumentRenderer()
        self.pending_limit = settings.PENDING_DOCUMENTS_LIMIT if pending_limit is None else pending_limit
        self._in_flight: set[int] = set()
        self._pending: OrderedDict[PendingKey, PendingDocument] = OrderedDict()

    def is_issuing(self, voucher_id: int) -> bool:
        return voucher_id in self._in_flight

    def pending_for(self, voucher_id: int, copy_color, delivery_name: str) -> Optional[DocumentArtifact]:
        pending = self._pending.get((voucher_id, resolve_copy(copy_color).color, delivery_name))
        return pending.artifact if pending else None

    async def issue(
        self,
        db: Session,
        voucher_id: int,
        copy_color,
        delivery: DocumentDelivery,
        closure: Optional[ClosureInput] = None,
        user_id: Optional[int] = None,
    ) -> IssuanceResult:
        if voucher_id in self._in_flight:
            logger.warning("Issuance already in flight for voucher %s", voucher_id)
            raise IssuanceInProgress(voucher_id)

        self._in_flight.add(voucher_id)
        try:
            return await self._issue(db, voucher_id, copy_color, delivery, closure, user_id)
        finally:
            self._in_flight.discard(voucher_id)

    async def _issue(self, db, voucher_id, copy_color, delivery, closure, user_id) -> IssuanceResult:
        service = VoucherService(db)
        copy = resolve_copy(copy_color)
        key = (voucher_id, copy.color, delivery.name)

        persisted = await asyncio.to_thread(self._commit_transition, service, voucher_id, closure, user_id)
        if persisted:
            self._discard_pending(voucher_id)

        # Рендер строится из того, что записано в БД, а не из объекта в памяти
        voucher, fingerprint = await asyncio.to_thread(self._snapshot, service, voucher_id)
        artifact = self._fresh_pending(key, fingerprint)
        reused = artifact is not None
        if artifact is None:
            artifact = await self._build(voucher, copy)

        receipt = await self._deliver(key, PendingDocument(artifact, fingerprint), delivery)

        await asyncio.to_thread(service.log_document_issued, voucher, copy.color.value, delivery.name, user_id)
        return IssuanceResult(
            artifact=artifact,
            receipt=receipt,
            state=effective_state(voucher),
            reused=reused,
        )

    def _commit_transition(self, service: VoucherService, voucher_id: int, closure, user_id) -> bool:
        """Проверить и записать переход. True, если что-то записано."""
        voucher = service.get_by_id(voucher_id)
        if voucher is None:
            raise NotFoundException("Vale", voucher_id)
        if is_temporary(voucher.folio):
            raise ValidationException(
                f"El vale tiene el folio temporal {voucher.folio}; asigna un folio definitivo antes de imprimir"
            )

        plan = self.state_machine.plan(voucher, closure)
        if not plan.persist:
            return False
        try:
            service.apply_transition(voucher, plan, user_id)
            service.db.commit()
        except SQLAlchemyError as e:
            service.db.rollback()
            logger.error("Failed to persist transition for %s: %s", voucher.folio, e)
            raise PersistenceFailed(
                f"No se pudo guardar el vale {voucher.folio}, intenta de nuevo"
            ) from e
        logger.info("Voucher %s moved %s -> %s", voucher.folio, plan.current.value, plan.target.value)
        return True

    @staticmethod
    def _snapshot(service: VoucherService, voucher_id: int) -> tuple[Voucher, tuple]:
        voucher = service.reload(voucher_id)
        return voucher, voucher_fingerprint(voucher)

    def _fresh_pending(self, key: PendingKey, fingerprint: tuple) -> Optional[DocumentArtifact]:
        """Готовый документ, если вал не менялся с момента его построения."""
        pending = self._pending.get(key)
        if pending is None:
            return None
        if pending.fingerprint != fingerprint:
            del self._pending[key]
            logger.info("Pending %s is outdated, rebuilding", pending.artifact.filename)
            return None
        return pending.artifact

    async def _build(self, voucher, copy) -> DocumentArtifact:
        url = voucher.verification_url or build_verification_url(voucher.folio)
        if extract_folio(url) != voucher.folio:
            raise VerificationImageFailed(
                f"La URL de verificación {url} no corresponde al folio {voucher.folio}"
            )
        image = await self.embedder.embed(url)
        return await asyncio.to_thread(self.renderer.render, voucher, voucher.detail, copy, image)

    async def _deliver(self, key: PendingKey, pending: PendingDocument, delivery: DocumentDelivery) -> DeliveryReceipt:
        artifact = pending.artifact
        if not await asyncio.to_thread(delivery.is_available):
            self._keep_pending(key, pending)
            logger.warning("Delivery %s unavailable, %s kept pending", delivery.name, artifact.filename)
            raise DeliveryUnavailable(f"El canal de entrega '{delivery.name}' no está disponible")
        try:
            receipt = await delivery.deliver(artifact)
        except DeliveryUnavailable:
            self._keep_pending(key, pending)
            raise
        self._pending.pop(key, None)
        return receipt

    def _keep_pending(self, key: PendingKey, pending: PendingDocument) -> None:
        self._pending[key] = pending
        self._pending.move_to_end(key)
        while len(self._pending) > self.pending_limit:
            _, old = self._pending.popitem(last=False)
            logger.warning("Pending document %s dropped, limit %s reached", old.artifact.filename, self.pending_limit)

    async def retry_delivery(
        self,
        db: Session,
        voucher_id: int,
        copy_color,
        delivery: DocumentDelivery,
        user_id: Optional[int] = None,
    ) -> IssuanceResult:
        """Повторить только доставку уже построенного документа."""
        service = VoucherService(db)
        copy = resolve_copy(copy_color)
        key = (voucher_id, copy.color, delivery.name)

        voucher, fingerprint = await asyncio.to_thread(self._snapshot, service, voucher_id)

        pending = self._pending.get(key)
        if pending is None:
            raise NotFoundException("Documento pendiente", f"{voucher_id}/{copy.color.value}")
        if self._fresh_pending(key, fingerprint) is None:
            raise ValidationException(
                f"El vale {voucher.folio} cambió desde que se generó el documento; genera la copia de nuevo"
            )

        receipt = await self._deliver(key, pending, delivery)
        logger.info("Delivery retried for %s", pending.artifact.filename)
        await asyncio.to_thread(service.log_document_issued, voucher, copy.color.value, delivery.name, user_id)
        return IssuanceResult(artifact=pending.artifact, receipt=receipt, state=effective_state(voucher), reused=True)

    def _discard_pending(self, voucher_id: int) -> None:
        for key in [k for k in self._pending if k[0] == voucher_id]:
            del self._pending[key]


coordinator = IssuanceCoordinator()


def get_coordinator() -> IssuanceCoordinator:
    return coordinator
