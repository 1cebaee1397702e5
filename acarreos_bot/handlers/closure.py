"""
Закрытие аренды из бота: /cerrar → фолио → по часам (HH:MM + рейсы) или за день.
После закрытия приходит копия blanco.
"""
import logging
from datetime import datetime
from aiogram import Router, F
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.types import BufferedInputFile, CallbackQuery, Message

from acarreos_bot.keyboards.vouchers import get_cancel_keyboard, get_closure_mode_keyboard
from acarreos_bot.services.api_client import APIClient, APIError, get_api_client
from acarreos_bot.states import CloseRental
from acarreos_bot.utils import format_datetime, normalize_folio, parse_end_time, parse_trips

logger = logging.getLogger(__name__)
router = Router()


@router.message(Command("cerrar"))
async def cmd_close(message: Message, state: FSMContext) -> None:
    await state.clear()
    await message.answer(
        text="🔒 Cerrar vale de renta\n\nEscribe el folio:",
        reply_markup=get_cancel_keyboard(),
    )
    await state.set_state(CloseRental.waiting_for_folio)


@router.message(CloseRental.waiting_for_folio)
async def process_folio(message: Message, state: FSMContext) -> None:
    folio = normalize_folio(message.text)
    if not folio:
        await message.answer(
            text="❌ Folio inválido. Ejemplo: CD-140-00001\n\nIntenta de nuevo:",
            reply_markup=get_cancel_keyboard(),
        )
        return

    try:
        voucher = await get_api_client().get_voucher_by_folio(folio, telegram_id=message.from_user.id)
    except APIError as e:
        await message.answer(text=f"❌ {e.detail}", reply_markup=get_cancel_keyboard())
        return

    if voucher.get("voucher_type") != "rental" or voucher.get("state") != "in_process":
        await message.answer(
            text=f"❌ El vale {folio} no es una renta en proceso.",
            reply_markup=get_cancel_keyboard(),
        )
        return

    detail = voucher.get("rental_detail") or {}
    await state.update_data(
        voucher_id=voucher["id"],
        folio=folio,
        start_time=detail.get("start_time"),
        trips=detail.get("trips", 1),
    )
    await message.answer(
        text=f"🔒 Vale {folio}\n"
             f"Hora inicio: {format_datetime(detail.get('start_time'))}\n\n"
             "¿Cómo se cierra?",
        reply_markup=get_closure_mode_keyboard(),
    )
    await state.set_state(CloseRental.select_mode)


@router.callback_query(CloseRental.select_mode, F.data == "close:hour")
async def close_by_hour(callback: CallbackQuery, state: FSMContext) -> None:
    await callback.message.edit_text(
        text="🕒 Escribe la hora de fin (HH:MM):",
        reply_markup=get_cancel_keyboard(),
    )
    await state.set_state(CloseRental.enter_end_time)
    await callback.answer()


@router.message(CloseRental.enter_end_time)
async def process_end_time(message: Message, state: FSMContext) -> None:
    data = await state.get_data()
    end_time = parse_end_time(message.text, data["start_time"])
    if end_time is None:
        await message.answer(
            text="❌ Formato inválido. Usa HH:MM, por ejemplo 17:30:",
            reply_markup=get_cancel_keyboard(),
        )
        return

    await state.update_data(end_time=end_time.isoformat())
    await message.answer(
        text="🚚 Número de viajes:",
        reply_markup=get_cancel_keyboard(),
    )
    await state.set_state(CloseRental.enter_trips)


@router.message(CloseRental.enter_trips)
async def process_trips(message: Message, state: FSMContext) -> None:
    trips = parse_trips(message.text)
    if trips is None:
        await message.answer(
            text="❌ El número de viajes debe ser un entero mayor a 0:",
            reply_markup=get_cancel_keyboard(),
        )
        return

    data = await state.get_data()
    closure = APIClient.closure_by_hour(datetime.fromisoformat(data["end_time"]), trips)
    await _issue_closed(message, state, data, closure, message.from_user.id)


@router.callback_query(CloseRental.select_mode, F.data == "close:day")
async def close_by_day(callback: CallbackQuery, state: FSMContext) -> None:
    await callback.answer("Cerrando por día...")
    data = await state.get_data()
    await _issue_closed(
        callback.message, state, data, APIClient.closure_by_day(), callback.from_user.id
    )


async def _issue_closed(message: Message, state: FSMContext, data: dict, closure: dict, telegram_id: int) -> None:
    try:
        content, filename = await get_api_client().issue_document(
            data["voucher_id"],
            copy_color="blanco",
            closure=closure,
            telegram_id=telegram_id,
        )
    except APIError as e:
        # Ошибка ввода (422): можно исправить и повторить, остальное завершает диалог
        if e.status_code == 422:
            await message.answer(text=f"❌ {e.detail}", reply_markup=get_cancel_keyboard())
            return
        await state.clear()
        await message.answer(text=f"❌ No se pudo cerrar el vale: {e.detail}")
        return

    await state.clear()
    logger.info(f"Rental {data['folio']} closed via bot by {telegram_id}")
    await message.answer_document(
        BufferedInputFile(content, filename=filename),
        caption=f"✅ Vale {data['folio']} cerrado",
    )
