"""
API endpoints для работы с историей событий валов.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from acarreos.core.database import get_db
from acarreos.core.exceptions import NotFoundException
from acarreos.core.security import verify_api_key
from acarreos.schemas.history import (
    VoucherEventCreate,
    VoucherEventResponse,
    VoucherEventListResponse,
)
from acarreos.services.history_service import HistoryService
from acarreos.services.voucher_service import VoucherService

router = APIRouter(
    prefix="/history",
    tags=["history"],
    dependencies=[Depends(verify_api_key)],
)


@router.get("", response_model=VoucherEventListResponse)
def list_history(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    event_type: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Получить список событий истории."""
    service = HistoryService(db)
    events = service.get_all(skip=skip, limit=limit, event_type=event_type)
    total = service.count_all(event_type=event_type)

    return VoucherEventListResponse(
        items=[VoucherEventResponse.model_validate(e) for e in events],
        total=total,
    )


@router.get("/{event_id}", response_model=VoucherEventResponse)
def get_history_event(event_id: int, db: Session = Depends(get_db)):
    event = HistoryService(db).get_by_id(event_id)
    if not event:
        raise NotFoundException("Evento", event_id)
    return VoucherEventResponse.model_validate(event)


@router.post("", response_model=VoucherEventResponse, status_code=status.HTTP_201_CREATED)
def add_history_event(
    data: VoucherEventCreate,
    db: Session = Depends(get_db),
):
    """Добавить событие в историю (например, проверка на стройке)."""
    if VoucherService(db).get_by_id(data.voucher_id) is None:
        raise NotFoundException("Vale", data.voucher_id)
    event = HistoryService(db).create(data)
    return VoucherEventResponse.model_validate(event)
