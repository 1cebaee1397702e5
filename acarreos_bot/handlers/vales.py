"""
Обработчики выдачи копий вала: /vale <FOLIO> → цвет копии → PDF.
"""
import logging
from aiogram import Router, F
from aiogram.filters import Command, CommandObject
from aiogram.fsm.context import FSMContext
from aiogram.types import BufferedInputFile, CallbackQuery, Message

from acarreos_bot.keyboards.vouchers import get_copy_keyboard
from acarreos_bot.services.api_client import APIError, get_api_client
from acarreos_bot.states import VoucherCopy
from acarreos_bot.utils import normalize_folio

logger = logging.getLogger(__name__)
router = Router()

STATE_LABELS = {
    "draft": "Borrador",
    "issued": "Emitido",
    "in_process": "En proceso",
    "completed": "Completado",
    "verified": "Verificado",
    "paid": "Pagado",
}


def voucher_summary(voucher: dict) -> str:
    kind = "Renta" if voucher.get("voucher_type") == "rental" else "Material"
    state = STATE_LABELS.get(voucher.get("state"), voucher.get("state"))
    return (
        f"📄 Vale {voucher.get('folio')}\n"
        f"Tipo: {kind}\n"
        f"Estado: {state}\n"
        f"Operador: {voucher.get('operator_name')}\n"
        f"Placas: {voucher.get('vehicle_plate')}"
    )


@router.message(Command("vale"))
async def cmd_vale(message: Message, command: CommandObject, state: FSMContext) -> None:
    folio = normalize_folio(command.args)
    if not folio:
        await message.answer("❌ Indica el folio: /vale CD-140-00001")
        return

    try:
        voucher = await get_api_client().get_voucher_by_folio(folio, telegram_id=message.from_user.id)
    except APIError as e:
        logger.info(f"Voucher {folio} lookup failed: {e.detail}")
        await message.answer(f"❌ {e.detail}")
        return

    await state.set_state(VoucherCopy.select_copy)
    await message.answer(
        text=voucher_summary(voucher) + "\n\nElige la copia:",
        reply_markup=get_copy_keyboard(voucher["id"]),
    )


@router.callback_query(F.data.startswith("copy:"))
async def select_copy(callback: CallbackQuery, state: FSMContext) -> None:
    """Запросить PDF выбранной копии и отправить файлом."""
    _, voucher_id, color = callback.data.split(":", 2)
    await callback.answer("Generando PDF...")

    try:
        content, filename = await get_api_client().issue_document(
            int(voucher_id), copy_color=color, telegram_id=callback.from_user.id
        )
    except APIError as e:
        await callback.message.answer(f"❌ No se pudo generar el PDF: {e.detail}")
        return

    await state.clear()
    await callback.message.answer_document(
        BufferedInputFile(content, filename=filename),
        caption=f"✅ Copia {color}",
    )
