"""
Справочники: материалы, профсоюзы, карьеры, тарифы аренды, расстояния.
"""
from decimal import Decimal

from sqlalchemy import Integer, String, Numeric, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from acarreos.core.database import Base


class Material(Base):
    """Перевозимый материал."""
    __tablename__ = "materials"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)


class Union(Base):
    """Профсоюз (sindicato) владельцев техники."""
    __tablename__ = "unions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)


class MaterialBank(Base):
    """Карьер (banco de material)."""
    __tablename__ = "material_banks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)


class RentalRate(Base):
    """Тариф аренды профсоюза: за час и за день."""
    __tablename__ = "rental_rates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    union_id: Mapped[int] = mapped_column(ForeignKey("unions.id"), nullable=False, index=True)
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=True)
    daily_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=True)

    union = relationship("Union", lazy="select")


class BankSiteDistance(Base):
    """Расстояние от карьера до стройки."""
    __tablename__ = "bank_site_distances"
    __table_args__ = (UniqueConstraint("bank_id", "site_id", name="uq_bank_site"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    bank_id: Mapped[int] = mapped_column(ForeignKey("material_banks.id"), nullable=False)
    site_id: Mapped[int] = mapped_column(ForeignKey("sites.id"), nullable=False)
    distance_km: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
