"""
Закрытие аренды: расчёт часов/дней и стоимости.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from acarreos.core.exceptions import InvalidCompletionInput
from acarreos.core.utils import to_local_naive

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class ClosureInput:
    """Данные, которые прораб вводит при закрытии аренды."""
    close_by_day: bool = False
    end_time: Optional[datetime] = None
    trips: Optional[int] = None


@dataclass(frozen=True)
class CompletionResult:
    hours: float
    days: int
    end_time: Optional[datetime]
    trips: int

    @property
    def by_day(self) -> bool:
        return self.days == 1


def elapsed_hours(start: datetime, end: datetime) -> float:
    """Разница в часах, округлённая до 2 знаков (half-up)."""
    seconds = Decimal(str((to_local_naive(end) - to_local_naive(start)).total_seconds()))
    return float((seconds / Decimal(3600)).quantize(_CENTS, rounding=ROUND_HALF_UP))


def rental_subtotal(detail) -> Optional[Decimal]:
    """
    Стоимость аренды. Одна реализация для расчёта и для PDF.
    За день ровно дневной тариф, по часам часы × часовой тариф.
    None, если аренда не закрыта или тарифа нет.
    """
    days = detail.total_days or 0
    hours = detail.total_hours or 0
    if days == 1 and not hours:
        if detail.daily_rate is None:
            return None
        return Decimal(detail.daily_rate).quantize(_CENTS)
    if hours > 0 and not days:
        if detail.hourly_rate is None:
            return None
        return (Decimal(str(hours)) * Decimal(detail.hourly_rate)).quantize(_CENTS, rounding=ROUND_HALF_UP)
    return None


class RentalCompletionCalculator:
    """Проверяет ввод закрытия и выводит часы/дни."""

    def close(self, detail, closure: ClosureInput) -> CompletionResult:
        trips = closure.trips if closure.trips is not None else (detail.trips or 1)
        if trips < 1:
            raise InvalidCompletionInput("El número de viajes debe ser al menos 1")

        if closure.close_by_day:
            return CompletionResult(hours=0.0, days=1, end_time=None, trips=trips)

        if closure.end_time is None:
            raise InvalidCompletionInput("Debes seleccionar una hora de fin")
        if detail.start_time is None:
            raise InvalidCompletionInput("El vale no tiene hora de inicio registrada")

        end_time = to_local_naive(closure.end_time)
        if end_time <= to_local_naive(detail.start_time):
            raise InvalidCompletionInput("La hora de fin debe ser posterior a la hora de inicio")

        hours = elapsed_hours(detail.start_time, end_time)
        if hours <= 0:
            raise InvalidCompletionInput("El total de horas debe ser mayor a 0")

        logger.debug("Rental closed by hour: %.2f h, %s trips", hours, trips)
        return CompletionResult(hours=hours, days=0, end_time=end_time, trips=trips)
