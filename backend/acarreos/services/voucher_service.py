"""
Сервис для работы с валами: создание, выборки, вес, сверка фолио, запись закрытия.
"""
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import and_, desc, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from acarreos.core.exceptions import DuplicateError, NotFoundException, ValidationException
from acarreos.core.security import SessionContext
from acarreos.core.utils import sanitize_text, to_local_naive
from acarreos.models.catalog import BankSiteDistance, Material, MaterialBank, RentalRate, Union
from acarreos.models.history import VoucherEvent
from acarreos.models.site import Site
from acarreos.models.voucher import (
    MaterialDetail,
    RentalDetail,
    Voucher,
    VoucherState,
    VoucherType,
)
from acarreos.schemas.voucher import MaterialVoucherCreate, RentalVoucherCreate
from acarreos.services.folio_service import FolioService, is_temporary
from acarreos.services.verification import build_verification_url
from acarreos.services.voucher_state import TransitionPlan

logger = logging.getLogger(__name__)


class VoucherService:
    """Сервис для управления валами."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, voucher_id: int) -> Optional[Voucher]:
        """Получить вал по ID (с деталями и стройкой)."""
        return self.db.query(Voucher).filter(Voucher.id == voucher_id).first()

    def get_by_folio(self, folio: str) -> Optional[Voucher]:
        return self.db.query(Voucher).filter(Voucher.folio == folio).first()

    def reload(self, voucher_id: int) -> Voucher:
        """Перечитать вал из БД, а не из identity map."""
        self.db.expire_all()
        voucher = self.get_by_id(voucher_id)
        if voucher is None:
            raise NotFoundException("Vale", voucher_id)
        return voucher

    def get_site(self, site_id: int) -> Site:
        site = self.db.query(Site).filter(Site.id == site_id).first()
        if site is None:
            raise NotFoundException("Obra", site_id)
        return site

    def get_all(
        self,
        site_id: int,
        voucher_type: Optional[str] = None,
        state: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[Voucher], int]:
        """Валы стройки с фильтром по типу и эффективному состоянию."""
        query = self.db.query(Voucher).filter(Voucher.site_id == site_id)
        if voucher_type:
            query = query.filter(Voucher.voucher_type == voucher_type)
        if state:
            query = self._filter_state(query, VoucherState(state))

        total = query.with_entities(func.count(Voucher.id)).scalar()
        items = (
            query.order_by(desc(Voucher.created_at), desc(Voucher.id))
            .offset(skip)
            .limit(limit)
            .all()
        )
        return items, total

    @staticmethod
    def _filter_state(query, state: VoucherState):
        if state in (VoucherState.DRAFT, VoucherState.VERIFIED, VoucherState.PAID):
            return query.filter(Voucher.state == state.value)

        query = query.outerjoin(RentalDetail, RentalDetail.voucher_id == Voucher.id).filter(
            Voucher.state.in_([VoucherState.ISSUED.value, VoucherState.COMPLETED.value])
        )
        is_rental = Voucher.voucher_type == VoucherType.RENTAL.value
        closed = or_(RentalDetail.end_time.isnot(None), RentalDetail.total_days == 1)
        open_ = and_(RentalDetail.end_time.is_(None), RentalDetail.total_days == 0)

        if state == VoucherState.IN_PROCESS:
            return query.filter(is_rental, open_, RentalDetail.start_time.isnot(None))
        if state == VoucherState.COMPLETED:
            return query.filter(is_rental, closed)
        return query.filter(
            or_(
                Voucher.voucher_type == VoucherType.MATERIAL.value,
                and_(is_rental, open_, RentalDetail.start_time.is_(None)),
            )
        )

    def _require(self, model, object_id: int, resource: str):
        obj = self.db.query(model).filter(model.id == object_id).first()
        if obj is None:
            raise NotFoundException(resource, object_id)
        return obj

    def _new_voucher(self, site: Site, voucher_type: VoucherType, data, ctx: SessionContext) -> Voucher:
        folio = FolioService(self.db).generate(site)
        voucher = Voucher(
            folio=folio,
            voucher_type=voucher_type.value,
            state=(VoucherState.DRAFT if data.as_draft else VoucherState.ISSUED).value,
            site_id=site.id,
            created_by=ctx.user_id,
            operator_name=sanitize_text(data.operator_name, max_length=200),
            vehicle_plate=sanitize_text(data.vehicle_plate, max_length=20).upper(),
            notes=sanitize_text(data.notes) or None,
            verification_url=build_verification_url(folio),
        )
        self.db.add(voucher)
        return voucher

    def _flush_new(self, voucher: Voucher) -> None:
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            logger.warning("Duplicate folio on insert: %s", voucher.folio)
            raise DuplicateError(f"El folio {voucher.folio} ya existe")

    def create_material(self, data: MaterialVoucherCreate, ctx: SessionContext) -> Voucher:
        """Вал на материал: выдаётся сразу, вес приходит позже."""
        site = self.get_site(ctx.site_id)
        self._require(Material, data.material_id, "Material")
        self._require(MaterialBank, data.bank_id, "Banco")

        distance = data.distance_km
        if distance is None:
            distance = (
                self.db.query(BankSiteDistance.distance_km)
                .filter(BankSiteDistance.bank_id == data.bank_id, BankSiteDistance.site_id == site.id)
                .scalar()
            )
            if distance is None:
                raise ValidationException(
                    "No hay una distancia registrada para este banco y obra. Contacta al administrador."
                )

        voucher = self._new_voucher(site, VoucherType.MATERIAL, data, ctx)
        logger.info("Creating material voucher: folio=%s", voucher.folio)
        self._flush_new(voucher)

        self.db.add(MaterialDetail(
            voucher_id=voucher.id,
            material_id=data.material_id,
            bank_id=data.bank_id,
            capacity_m3=data.capacity_m3,
            distance_km=Decimal(str(distance)),
            requested_volume_m3=data.requested_volume_m3,
            weight_tons=None,
        ))
        self._log(voucher.id, "voucher_created", {
            "folio": voucher.folio,
            "voucher_type": voucher.voucher_type,
            "state": voucher.state,
        }, ctx.user_id)

        self.db.flush()
        self.db.refresh(voucher)
        logger.info("Material voucher created: id=%s, folio=%s", voucher.id, voucher.folio)
        return voucher

    def create_rental(self, data: RentalVoucherCreate, ctx: SessionContext) -> Voucher:
        """Вал на аренду: тариф профсоюза копируется в деталь, hora fin пустая."""
        site = self.get_site(ctx.site_id)
        self._require(Material, data.material_id, "Material")
        self._require(Union, data.union_id, "Sindicato")

        rate = self.db.query(RentalRate).filter(RentalRate.union_id == data.union_id).first()
        if rate is None:
            raise ValidationException("No se encontró precio para el sindicato seleccionado")

        voucher = self._new_voucher(site, VoucherType.RENTAL, data, ctx)
        logger.info("Creating rental voucher: folio=%s", voucher.folio)
        self._flush_new(voucher)

        self.db.add(RentalDetail(
            voucher_id=voucher.id,
            material_id=data.material_id,
            union_id=data.union_id,
            rental_rate_id=rate.id,
            capacity_m3=data.capacity_m3,
            trips=1,
            start_time=to_local_naive(data.start_time),
            end_time=None,
            total_hours=0.0,
            total_days=0,
            hourly_rate=rate.hourly_rate,
            daily_rate=rate.daily_rate,
        ))
        self._log(voucher.id, "voucher_created", {
            "folio": voucher.folio,
            "voucher_type": voucher.voucher_type,
            "state": voucher.state,
            "start_time": to_local_naive(data.start_time).isoformat(),
        }, ctx.user_id)

        self.db.flush()
        self.db.refresh(voucher)
        logger.info("Rental voucher created: id=%s, folio=%s", voucher.id, voucher.folio)
        return voucher

    def record_weight(self, voucher: Voucher, weight_tons: Decimal, user_id: Optional[int] = None) -> Voucher:
        """Записать вес материала. Состояние вала не меняется."""
        if voucher.voucher_type != VoucherType.MATERIAL.value or voucher.material_detail is None:
            raise ValidationException("Solo los vales de material registran peso")
        old_weight = voucher.material_detail.weight_tons
        voucher.material_detail.weight_tons = weight_tons
        self._log(voucher.id, "weight_recorded", {
            "old_weight_tons": str(old_weight) if old_weight is not None else None,
            "weight_tons": str(weight_tons),
        }, user_id)
        self.db.flush()
        self.db.refresh(voucher)
        return voucher

    def reconcile_folio(self, voucher: Voucher, user_id: Optional[int] = None) -> Voucher:
        """Заменить временный фолио TEMP- на очередной фолио стройки."""
        if not is_temporary(voucher.folio):
            raise ValidationException(f"El folio {voucher.folio} no es temporal")

        new_folio = FolioService(self.db).generate(voucher.site)
        if is_temporary(new_folio):
            raise ValidationException("No se pudo obtener un folio definitivo, intenta más tarde")

        old_folio = voucher.folio
        voucher.folio = new_folio
        voucher.verification_url = build_verification_url(new_folio)
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateError(f"El folio {new_folio} ya existe")

        self._log(voucher.id, "folio_reconciled", {"old_folio": old_folio, "folio": new_folio}, user_id)
        self.db.flush()
        self.db.refresh(voucher)
        logger.info("Folio reconciled: %s -> %s", old_folio, new_folio)
        return voucher

    def apply_transition(self, voucher: Voucher, plan: TransitionPlan, user_id: Optional[int] = None) -> None:
        """
        Записать деталь и состояние одной операцией (flush, без commit).
        Коммит делает вызывающий: это точка фиксации выдачи.
        """
        completion = plan.completion
        if completion is not None:
            detail = voucher.rental_detail
            detail.total_hours = completion.hours
            detail.total_days = completion.days
            detail.end_time = completion.end_time
            detail.trips = completion.trips

        # in_process не хранится: в БД остаётся issued
        target = VoucherState.ISSUED if plan.target == VoucherState.IN_PROCESS else plan.target
        voucher.state = target.value

        if completion is not None:
            self._log(voucher.id, "rental_closed", {
                "total_hours": completion.hours,
                "total_days": completion.days,
                "end_time": completion.end_time.isoformat() if completion.end_time else None,
                "trips": completion.trips,
            }, user_id)
        else:
            self._log(voucher.id, "state_changed", {
                "from": plan.current.value,
                "to": target.value,
            }, user_id)
        self.db.flush()

    def log_document_issued(self, voucher: Voucher, copy_color: str, channel: str, user_id: Optional[int] = None) -> None:
        self._log(voucher.id, "document_issued", {
            "folio": voucher.folio,
            "copy_color": copy_color,
            "channel": channel,
        }, user_id)
        self.db.flush()

    def _log(self, voucher_id: int, event_type: str, payload: dict, user_id: Optional[int]) -> None:
        self.db.add(VoucherEvent(
            voucher_id=voucher_id,
            event_type=event_type,
            payload=payload,
            user_id=user_id,
        ))
