"""
Клавиатуры для Telegram бота.
"""
from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton

# Цвета копий в порядке печати
COPY_BUTTONS = [
    ("blanco", "⚪ Blanco · Operador"),
    ("roja", "🔴 Roja · Banco"),
    ("verde", "🟢 Verde · Residente"),
    ("azul", "🔵 Azul · Admin 1"),
    ("amarilla", "🟡 Amarilla · Admin 2"),
    ("naranja", "🟠 Naranja · Admin 3"),
]


def get_copy_keyboard(voucher_id: int) -> InlineKeyboardMarkup:
    """Выбор цвета копии, по две кнопки в ряд."""
    buttons = [
        InlineKeyboardButton(text=text, callback_data=f"copy:{voucher_id}:{color}")
        for color, text in COPY_BUTTONS
    ]
    rows = [buttons[i:i + 2] for i in range(0, len(buttons), 2)]
    rows.append([InlineKeyboardButton(text="❌ Cancelar", callback_data="cancel")])
    return InlineKeyboardMarkup(inline_keyboard=rows)


def get_closure_mode_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(text="🕒 Por hora", callback_data="close:hour"),
                InlineKeyboardButton(text="📅 Por día", callback_data="close:day"),
            ],
            [InlineKeyboardButton(text="❌ Cancelar", callback_data="cancel")],
        ]
    )


def get_cancel_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text="❌ Cancelar", callback_data="cancel")]
        ]
    )
