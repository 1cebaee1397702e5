"""
Модели вала (vale) и его деталей: материал или аренда.
"""
import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Integer, String, Float, DateTime, Text, Numeric, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from acarreos.core.database import Base
from acarreos.core.utils import now_local


class VoucherType(str, enum.Enum):
    MATERIAL = "material"
    RENTAL = "rental"


class VoucherState(str, enum.Enum):
    """
    Состояния вала. IN_PROCESS не хранится в БД: он выводится
    из полей аренды (см. services/voucher_state.py).
    """
    DRAFT = "draft"
    ISSUED = "issued"
    IN_PROCESS = "in_process"
    COMPLETED = "completed"
    VERIFIED = "verified"
    PAID = "paid"


class Voucher(Base):
    """Вал: одна поставка материала или одна аренда техники."""
    __tablename__ = "vouchers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    folio: Mapped[str] = mapped_column(String, unique=True, nullable=False, index=True)
    voucher_type: Mapped[str] = mapped_column(String, nullable=False)
    state: Mapped[str] = mapped_column(String, nullable=False, default=VoucherState.DRAFT.value)
    site_id: Mapped[int] = mapped_column(ForeignKey("sites.id"), nullable=False, index=True)
    created_by: Mapped[int] = mapped_column(Integer, nullable=True)
    operator_name: Mapped[str] = mapped_column(String, nullable=False)
    vehicle_plate: Mapped[str] = mapped_column(String, nullable=False)
    notes: Mapped[str] = mapped_column(Text, nullable=True)
    verification_url: Mapped[str] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=now_local)

    site = relationship("Site", lazy="joined")
    material_detail = relationship(
        "MaterialDetail", uselist=False, lazy="joined", back_populates="voucher"
    )
    rental_detail = relationship(
        "RentalDetail", uselist=False, lazy="joined", back_populates="voucher"
    )

    @property
    def is_rental(self) -> bool:
        return self.voucher_type == VoucherType.RENTAL.value

    @property
    def detail(self):
        """Единственная деталь вала по его типу."""
        return self.rental_detail if self.is_rental else self.material_detail


class MaterialDetail(Base):
    """Детали поставки материала. Вес приходит позже, None = «Pendiente»."""
    __tablename__ = "material_details"

    voucher_id: Mapped[int] = mapped_column(ForeignKey("vouchers.id"), primary_key=True)
    material_id: Mapped[int] = mapped_column(ForeignKey("materials.id"), nullable=False)
    bank_id: Mapped[int] = mapped_column(ForeignKey("material_banks.id"), nullable=False)
    capacity_m3: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    distance_km: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    requested_volume_m3: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    weight_tons: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=True)

    voucher = relationship("Voucher", back_populates="material_detail")
    material = relationship("Material", lazy="joined")
    bank = relationship("MaterialBank", lazy="joined")


class RentalDetail(Base):
    """
    Детали аренды. Закрывается ровно один раз:
    по часам (end_time, hours > 0, days == 0) или за день (days == 1, hours == 0, end_time = None).
    """
    __tablename__ = "rental_details"

    voucher_id: Mapped[int] = mapped_column(ForeignKey("vouchers.id"), primary_key=True)
    material_id: Mapped[int] = mapped_column(ForeignKey("materials.id"), nullable=False)
    union_id: Mapped[int] = mapped_column(ForeignKey("unions.id"), nullable=False)
    rental_rate_id: Mapped[int] = mapped_column(ForeignKey("rental_rates.id"), nullable=True)
    capacity_m3: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    trips: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    total_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=True)
    daily_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=True)

    voucher = relationship("Voucher", back_populates="rental_detail")
    material = relationship("Material", lazy="joined")
    union = relationship("Union", lazy="joined")

    @property
    def is_closed_by_hour(self) -> bool:
        return self.end_time is not None and (self.total_hours or 0) > 0 and not self.total_days

    @property
    def is_closed_by_day(self) -> bool:
        return self.total_days == 1 and not self.total_hours and self.end_time is None

    @property
    def is_closed(self) -> bool:
        return self.is_closed_by_hour or self.is_closed_by_day
