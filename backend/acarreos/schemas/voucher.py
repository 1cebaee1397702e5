"""
Pydantic схемы для валов.
"""
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from acarreos.services.rental_completion import ClosureInput, rental_subtotal
from acarreos.services.voucher_state import effective_state


class VoucherBase(BaseModel):
    """Общие поля вала: оператор и машина."""
    operator_name: str
    vehicle_plate: str
    notes: Optional[str] = None

    @field_validator("operator_name")
    @classmethod
    def _check_operator(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("El nombre del operador es requerido")
        if len(v) < 3:
            raise ValueError("El nombre debe tener al menos 3 caracteres")
        return v

    @field_validator("vehicle_plate")
    @classmethod
    def _check_plate(cls, v: str) -> str:
        v = (v or "").strip().upper()
        if not v:
            raise ValueError("Las placas del vehículo son requeridas")
        if len(v) < 5:
            raise ValueError("Las placas deben tener al menos 5 caracteres")
        return v


class MaterialVoucherCreate(VoucherBase):
    """Схема создания вала на материал."""
    material_id: int
    bank_id: int
    capacity_m3: Decimal = Field(gt=0)
    requested_volume_m3: Decimal = Field(gt=0)
    distance_km: Optional[Decimal] = Field(default=None, gt=0)
    as_draft: bool = False


class RentalVoucherCreate(VoucherBase):
    """Схема создания вала на аренду. hora fin остаётся пустой до закрытия."""
    material_id: int
    union_id: int
    capacity_m3: Decimal = Field(gt=0)
    start_time: datetime
    as_draft: bool = False


class ClosureRequest(BaseModel):
    """Закрытие аренды: по часам (end_time) или за день."""
    close_by_day: bool = False
    end_time: Optional[datetime] = None
    trips: Optional[int] = None

    def to_input(self) -> ClosureInput:
        return ClosureInput(
            close_by_day=self.close_by_day,
            end_time=self.end_time,
            trips=self.trips,
        )


class IssueRequest(BaseModel):
    """Запрос на выдачу копии документа."""
    copy_color: str = "blanco"
    closure: Optional[ClosureRequest] = None
    delivery: Literal["download", "print"] = "download"


class WeightUpdate(BaseModel):
    weight_tons: Decimal = Field(gt=0)


class MaterialDetailResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    material_id: int
    bank_id: int
    capacity_m3: Decimal
    distance_km: Decimal
    requested_volume_m3: Decimal
    weight_tons: Optional[Decimal] = None


class RentalDetailResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    material_id: int
    union_id: int
    capacity_m3: Decimal
    trips: int
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    total_hours: float
    total_days: int
    hourly_rate: Optional[Decimal] = None
    daily_rate: Optional[Decimal] = None
    subtotal: Optional[Decimal] = None


class VoucherResponse(BaseModel):
    """Схема ответа с данными вала. state: эффективное состояние (с in_process)."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    folio: str
    voucher_type: str
    state: str
    site_id: int
    operator_name: str
    vehicle_plate: str
    notes: Optional[str] = None
    verification_url: Optional[str] = None
    created_at: datetime
    material_detail: Optional[MaterialDetailResponse] = None
    rental_detail: Optional[RentalDetailResponse] = None

    @classmethod
    def from_voucher(cls, voucher) -> "VoucherResponse":
        response = cls.model_validate(voucher)
        update = {"state": effective_state(voucher).value}
        if voucher.rental_detail is not None:
            update["rental_detail"] = response.rental_detail.model_copy(
                update={"subtotal": rental_subtotal(voucher.rental_detail)}
            )
        return response.model_copy(update=update)


class VoucherListResponse(BaseModel):
    """Схема списка валов."""
    items: list[VoucherResponse]
    total: int
    skip: int = 0
    limit: int = 100


class IssuanceResponse(BaseModel):
    """Результат выдачи копии, когда документ ушёл на печать."""
    folio: str
    copy_color: str
    recipient: str
    filename: str
    channel: str
    location: Optional[str] = None
    state: str
