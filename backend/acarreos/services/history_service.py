"""
Сервис для работы с историей событий валов.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy import asc, desc, func

from acarreos.models.history import VoucherEvent
from acarreos.schemas.history import VoucherEventCreate

logger = logging.getLogger(__name__)


class HistoryService:
    """Сервис для управления историей событий."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_voucher(
        self,
        voucher_id: int,
        skip: int = 0,
        limit: int = 100,
    ) -> list[VoucherEvent]:
        """Получить историю событий по валу (старые сначала)."""
        return (
            self.db.query(VoucherEvent)
            .filter(VoucherEvent.voucher_id == voucher_id)
            .order_by(asc(VoucherEvent.created_at), asc(VoucherEvent.id))
            .offset(skip)
            .limit(limit)
            .all()
        )

    def count_by_voucher(self, voucher_id: int) -> int:
        return (
            self.db.query(func.count(VoucherEvent.id))
            .filter(VoucherEvent.voucher_id == voucher_id)
            .scalar()
        )

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        event_type: Optional[str] = None,
    ) -> list[VoucherEvent]:
        """Все события с возможной фильтрацией по типу, новые сначала."""
        query = self.db.query(VoucherEvent)
        if event_type:
            query = query.filter(VoucherEvent.event_type == event_type)
        return (
            query.order_by(desc(VoucherEvent.created_at), desc(VoucherEvent.id))
            .offset(skip)
            .limit(limit)
            .all()
        )

    def count_all(self, event_type: Optional[str] = None) -> int:
        query = self.db.query(func.count(VoucherEvent.id))
        if event_type:
            query = query.filter(VoucherEvent.event_type == event_type)
        return query.scalar()

    def get_by_id(self, event_id: int) -> Optional[VoucherEvent]:
        return self.db.query(VoucherEvent).filter(VoucherEvent.id == event_id).first()

    def create(self, data: VoucherEventCreate) -> VoucherEvent:
        """Создать новое событие истории."""
        logger.info("Creating voucher event: voucher_id=%s, type=%s", data.voucher_id, data.event_type)
        event = VoucherEvent(
            voucher_id=data.voucher_id,
            event_type=data.event_type,
            payload=data.payload,
            user_id=data.user_id,
        )
        self.db.add(event)
        self.db.flush()
        self.db.refresh(event)
        return event
