"""
Машина состояний вала.

draft → issued → in_process → completed → verified → paid для аренды,
draft → issued для материала. in_process в БД не хранится: аренда
«в процессе», пока есть start_time, а закрытия нет. verified/paid
ставит администрация: здесь они только читаются.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from acarreos.core.exceptions import InvalidTransition, ValidationException
from acarreos.models.voucher import VoucherState, VoucherType
from acarreos.services.rental_completion import (
    ClosureInput,
    CompletionResult,
    RentalCompletionCalculator,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Draft:
    state = VoucherState.DRAFT


@dataclass(frozen=True)
class Issued:
    state = VoucherState.ISSUED


@dataclass(frozen=True)
class AwaitingClosure:
    start_time: datetime
    state = VoucherState.IN_PROCESS


@dataclass(frozen=True)
class Completed:
    hours: float
    days: int
    end_time: Optional[datetime] = None
    trips: int = 1
    state = VoucherState.COMPLETED


@dataclass(frozen=True)
class Verified:
    state = VoucherState.VERIFIED


@dataclass(frozen=True)
class Paid:
    state = VoucherState.PAID


VoucherPhase = Draft | Issued | AwaitingClosure | Completed | Verified | Paid


def _rental_phase(detail) -> VoucherPhase:
    if detail is None:
        raise ValidationException("El vale de renta no tiene detalle")
    hours = detail.total_hours or 0
    days = detail.total_days or 0

    if detail.end_time is not None and hours > 0 and days == 0:
        return Completed(hours=hours, days=0, end_time=detail.end_time, trips=detail.trips)
    if days == 1 and hours == 0 and detail.end_time is None:
        return Completed(hours=0.0, days=1, end_time=None, trips=detail.trips)
    if detail.end_time is None and hours == 0 and days == 0:
        if detail.start_time is not None:
            return AwaitingClosure(start_time=detail.start_time)
        return Issued()
    raise ValidationException(
        f"Detalle de renta inconsistente: horas={hours}, días={days}, hora fin={detail.end_time}"
    )


def phase_of(voucher) -> VoucherPhase:
    """Явная фаза вала из сохранённого состояния и полей аренды."""
    stored = VoucherState(voucher.state)
    if stored == VoucherState.VERIFIED:
        return Verified()
    if stored == VoucherState.PAID:
        return Paid()
    if stored == VoucherState.DRAFT:
        return Draft()
    if voucher.voucher_type == VoucherType.RENTAL.value:
        return _rental_phase(voucher.rental_detail)
    return Issued()


def effective_state(voucher) -> VoucherState:
    return phase_of(voucher).state


@dataclass(frozen=True)
class TransitionPlan:
    """Что нужно записать для перехода. persist=False: выдача без изменений."""
    current: VoucherState
    target: VoucherState
    completion: Optional[CompletionResult] = None
    persist: bool = False


class VoucherStateMachine:
    """Проверяет переход до любой записи."""

    def __init__(self, calculator: Optional[RentalCompletionCalculator] = None):
        self.calculator = calculator or RentalCompletionCalculator()

    def plan(self, voucher, closure: Optional[ClosureInput] = None) -> TransitionPlan:
        phase = phase_of(voucher)
        current = phase.state

        if closure is None:
            if isinstance(phase, Draft):
                return TransitionPlan(current, VoucherState.ISSUED, persist=True)
            return TransitionPlan(current, current)

        if voucher.voucher_type != VoucherType.RENTAL.value:
            raise InvalidTransition(
                current.value, VoucherState.COMPLETED.value,
                "Los vales de material no requieren cierre",
            )

        if isinstance(phase, AwaitingClosure):
            completion = self.calculator.close(voucher.rental_detail, closure)
            logger.info(
                "Closure accepted for voucher %s: hours=%s days=%s",
                voucher.folio, completion.hours, completion.days,
            )
            return TransitionPlan(current, VoucherState.COMPLETED, completion, persist=True)

        if isinstance(phase, Completed):
            completion = self.calculator.close(voucher.rental_detail, closure)
            if self._same_closure(phase, completion):
                return TransitionPlan(current, current, completion)
            raise InvalidTransition(
                current.value, VoucherState.COMPLETED.value,
                f"El vale {voucher.folio} ya fue cerrado y no puede modificarse",
            )

        raise InvalidTransition(current.value, VoucherState.COMPLETED.value)

    @staticmethod
    def _same_closure(phase: Completed, completion: CompletionResult) -> bool:
        return (
            phase.days == completion.days
            and round(phase.hours, 2) == round(completion.hours, 2)
            and phase.end_time == completion.end_time
            and phase.trips == completion.trips
        )
