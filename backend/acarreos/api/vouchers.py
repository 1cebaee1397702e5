"""
API endpoints для валов: создание, выборки, вес, сверка фолио, выдача копий.
"""
import asyncio
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from acarreos.core.database import get_db
from acarreos.core.exceptions import NotFoundException
from acarreos.core.security import SessionContext, get_session_context, verify_api_key
from acarreos.models.voucher import Voucher, VoucherState, VoucherType
from acarreos.schemas.history import VoucherEventListResponse, VoucherEventResponse
from acarreos.schemas.voucher import (
    IssuanceResponse,
    IssueRequest,
    MaterialVoucherCreate,
    RentalVoucherCreate,
    VoucherListResponse,
    VoucherResponse,
    WeightUpdate,
)
from acarreos.services.delivery import get_delivery
from acarreos.services.document_renderer import COPY_SPECS
from acarreos.services.history_service import HistoryService
from acarreos.services.issuance_service import IssuanceCoordinator, IssuanceResult, get_coordinator
from acarreos.services.voucher_service import VoucherService

router = APIRouter(
    prefix="/vouchers",
    tags=["vouchers"],
    dependencies=[Depends(verify_api_key)],
)


def _get_site_voucher(service: VoucherService, voucher_id: int, ctx: SessionContext) -> Voucher:
    voucher = service.get_by_id(voucher_id)
    # Чужая стройка выглядит как отсутствующий вал
    if not voucher or voucher.site_id != ctx.site_id:
        raise NotFoundException("Vale", voucher_id)
    return voucher


def _issuance_response(result: IssuanceResult) -> Response | IssuanceResponse:
    artifact = result.artifact
    if result.receipt.channel == "download":
        return Response(
            content=artifact.content,
            media_type=artifact.media_type,
            headers={
                "Content-Disposition": f'attachment; filename="{artifact.filename}"',
                "X-Voucher-State": result.state.value,
            },
        )
    return IssuanceResponse(
        folio=artifact.folio,
        copy_color=artifact.copy.color.value,
        recipient=artifact.copy.recipient,
        filename=result.receipt.filename,
        channel=result.receipt.channel,
        location=result.receipt.location,
        state=result.state.value,
    )


@router.get("/copies")
def list_copies():
    """Каталог копий: цвет, оттенок фона, получатель."""
    return [
        {"color": spec.color.value, "tint": spec.tint, "recipient": spec.recipient}
        for spec in COPY_SPECS.values()
    ]


@router.get("", response_model=VoucherListResponse)
def list_vouchers(
    voucher_type: Optional[VoucherType] = Query(None),
    state: Optional[VoucherState] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    ctx: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    """Валы текущей стройки."""
    service = VoucherService(db)
    items, total = service.get_all(
        site_id=ctx.site_id,
        voucher_type=voucher_type.value if voucher_type else None,
        state=state.value if state else None,
        skip=skip,
        limit=limit,
    )
    return VoucherListResponse(
        items=[VoucherResponse.from_voucher(v) for v in items],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/folio/{folio}", response_model=VoucherResponse)
def get_voucher_by_folio(
    folio: str,
    ctx: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    voucher = VoucherService(db).get_by_folio(folio.strip().upper())
    if not voucher or voucher.site_id != ctx.site_id:
        raise NotFoundException("Vale", folio)
    return VoucherResponse.from_voucher(voucher)


@router.get("/{voucher_id}", response_model=VoucherResponse)
def get_voucher(
    voucher_id: int,
    ctx: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    voucher = _get_site_voucher(VoucherService(db), voucher_id, ctx)
    return VoucherResponse.from_voucher(voucher)


@router.post("/material", response_model=VoucherResponse, status_code=status.HTTP_201_CREATED)
def create_material_voucher(
    data: MaterialVoucherCreate,
    ctx: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    """Создать вал на материал."""
    voucher = VoucherService(db).create_material(data, ctx)
    return VoucherResponse.from_voucher(voucher)


@router.post("/rental", response_model=VoucherResponse, status_code=status.HTTP_201_CREATED)
def create_rental_voucher(
    data: RentalVoucherCreate,
    ctx: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    """Создать вал на аренду техники."""
    voucher = VoucherService(db).create_rental(data, ctx)
    return VoucherResponse.from_voucher(voucher)


@router.patch("/{voucher_id}/weight", response_model=VoucherResponse)
def record_weight(
    voucher_id: int,
    data: WeightUpdate,
    ctx: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    service = VoucherService(db)
    voucher = _get_site_voucher(service, voucher_id, ctx)
    voucher = service.record_weight(voucher, data.weight_tons, ctx.user_id)
    return VoucherResponse.from_voucher(voucher)


@router.post("/{voucher_id}/reconcile-folio", response_model=VoucherResponse)
def reconcile_folio(
    voucher_id: int,
    ctx: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    """Заменить временный фолио на фолио стройки."""
    service = VoucherService(db)
    voucher = _get_site_voucher(service, voucher_id, ctx)
    voucher = service.reconcile_folio(voucher, ctx.user_id)
    return VoucherResponse.from_voucher(voucher)


@router.post(
    "/{voucher_id}/documents",
    response_model=None,
    responses={200: {"content": {"application/pdf": {}}}},
)
async def issue_document(
    voucher_id: int,
    data: IssueRequest,
    ctx: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
    coordinator: IssuanceCoordinator = Depends(get_coordinator),
):
    """
    Выдать копию вала. Если передано закрытие аренды, оно записывается
    до построения документа. download отдаёт PDF в теле ответа, print кладёт в очередь печати.
    """
    await asyncio.to_thread(_get_site_voucher, VoucherService(db), voucher_id, ctx)
    result = await coordinator.issue(
        db,
        voucher_id,
        data.copy_color,
        get_delivery(data.delivery),
        closure=data.closure.to_input() if data.closure else None,
        user_id=ctx.user_id,
    )
    return _issuance_response(result)


@router.post("/{voucher_id}/documents/retry", response_model=None)
async def retry_delivery(
    voucher_id: int,
    copy_color: str = Query("blanco"),
    delivery: Literal["download", "print"] = Query("print"),
    ctx: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
    coordinator: IssuanceCoordinator = Depends(get_coordinator),
):
    """Повторить доставку документа, который уже построен."""
    await asyncio.to_thread(_get_site_voucher, VoucherService(db), voucher_id, ctx)
    result = await coordinator.retry_delivery(
        db, voucher_id, copy_color, get_delivery(delivery), user_id=ctx.user_id
    )
    return _issuance_response(result)


@router.get("/{voucher_id}/history", response_model=VoucherEventListResponse)
def get_voucher_history(
    voucher_id: int,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    ctx: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    _get_site_voucher(VoucherService(db), voucher_id, ctx)
    service = HistoryService(db)
    events = service.get_by_voucher(voucher_id, skip=skip, limit=limit)
    return VoucherEventListResponse(
        items=[VoucherEventResponse.model_validate(e) for e in events],
        total=service.count_by_voucher(voucher_id),
    )
