"""
Обработчики /start, /help и отмены.
"""
import logging
from aiogram import Router, F
from aiogram.types import CallbackQuery, Message
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext

logger = logging.getLogger(__name__)
router = Router()

HELP_TEXT = (
    "📋 Comandos disponibles:\n"
    "/vale <FOLIO> - Obtener una copia del vale en PDF\n"
    "/cerrar - Cerrar un vale de renta (por hora o por día)\n"
    "/help - Mostrar esta ayuda"
)


@router.message(Command("start"))
async def cmd_start(message: Message, state: FSMContext) -> None:
    user = message.from_user
    logger.info(f"User {user.id} ({user.username}) started the bot")
    await state.clear()
    await message.answer(
        text=f"👋 Hola, {user.first_name}!\n\n"
             "Soy el bot de Control de Acarreos.\n\n" + HELP_TEXT
    )


@router.message(Command("help"))
async def cmd_help(message: Message) -> None:
    await message.answer(text=HELP_TEXT)


@router.callback_query(F.data == "cancel")
async def handle_cancel(callback: CallbackQuery, state: FSMContext) -> None:
    """Обработка отмены действия."""
    await state.clear()
    await callback.message.edit_text(text="Acción cancelada.\n\n" + HELP_TEXT)
    await callback.answer("Cancelado")
