"""
Состояния FSM для Telegram бота.
"""
from aiogram.fsm.state import State, StatesGroup


class VoucherCopy(StatesGroup):
    """Выбор копии вала."""
    select_copy = State()


class CloseRental(StatesGroup):
    """Закрытие аренды."""
    waiting_for_folio = State()
    select_mode = State()
    enter_end_time = State()
    enter_trips = State()
