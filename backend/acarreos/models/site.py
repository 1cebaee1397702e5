"""
Модели компании и стройки (obra).
"""
from sqlalchemy import Integer, String, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from acarreos.core.database import Base


class Company(Base):
    """Компания-подрядчик. Суффикс открывает фолио всех её валов."""
    __tablename__ = "companies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    suffix: Mapped[str] = mapped_column(String(8), nullable=False)


class Site(Base):
    """Стройка. Нумерация фолио идёт отдельно по каждой стройке."""
    __tablename__ = "sites"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    cost_center: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False)

    company = relationship("Company", lazy="joined")

    @property
    def folio_prefix(self) -> str:
        """Префикс вида СУФФИКС-ЦЕНТР_ЗАТРАТ-."""
        suffix = (self.company.suffix if self.company else None) or "XX"
        return f"{suffix}-{self.cost_center or 0}-"
