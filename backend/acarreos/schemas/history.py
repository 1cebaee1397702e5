"""
Pydantic схемы для истории событий вала.
"""
from datetime import datetime
from typing import Optional, Any

from pydantic import BaseModel, ConfigDict


class VoucherEventBase(BaseModel):
    """Базовая схема события истории."""
    voucher_id: int
    event_type: str
    payload: Optional[dict[str, Any]] = None
    user_id: Optional[int] = None


class VoucherEventCreate(VoucherEventBase):
    """Схема создания события истории."""
    pass


class VoucherEventResponse(VoucherEventBase):
    """Схема ответа с данными события истории."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime


class VoucherEventListResponse(BaseModel):
    """Схема списка событий истории."""
    items: list[VoucherEventResponse]
    total: int
