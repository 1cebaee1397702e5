"""
Клавиатуры для Telegram бота.
"""
from acarreos_bot.keyboards.vouchers import (
    get_copy_keyboard,
    get_closure_mode_keyboard,
    get_cancel_keyboard,
)

__all__ = [
    "get_copy_keyboard",
    "get_closure_mode_keyboard",
    "get_cancel_keyboard",
]
