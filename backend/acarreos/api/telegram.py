"""
API endpoint для webhook Telegram бота (aiogram 3.x).
"""
import logging

from fastapi import APIRouter, Request, HTTPException, status
from fastapi.responses import JSONResponse

from acarreos_bot.bot import setup_webhook, process_update, get_bot
from acarreos_bot.config import bot_config
from acarreos.core.config import settings

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/telegram", tags=["telegram"])

# Флаг для отслеживания инициализации бота
_bot_initialized = False


async def startup_bot() -> None:
    """Инициализация бота при старте приложения. Ошибка бота не роняет API."""
    global _bot_initialized

    if not bot_config.TOKEN:
        logger.warning("TELEGRAM_BOT_TOKEN not set, bot will not be initialized")
        return

    try:
        await setup_webhook()
    except Exception as e:
        logger.error("Failed to configure Telegram webhook: %s", e)
        return

    _bot_initialized = True
    logger.info("Telegram bot startup completed")


async def shutdown_bot() -> None:
    global _bot_initialized

    if _bot_initialized:
        logger.info("Shutting down Telegram bot...")
        await get_bot().session.close()
        _bot_initialized = False


@router.post("/webhook")
async def telegram_webhook(request: Request) -> JSONResponse:
    """
    Endpoint для получения обновлений от Telegram.
    Ответ всегда 200, иначе Telegram повторяет запрос.
    """
    secret = request.headers.get("X-Telegram-Bot-Api-Secret-Token")
    if secret != settings.TELEGRAM_WEBHOOK_SECRET:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid webhook secret")

    try:
        update_data = await request.json()
        logger.debug("Received webhook data: %s", update_data)
        await process_update(update_data)
        return JSONResponse(content={"status": "ok"})
    except Exception as e:
        logger.error("Error processing webhook: %s", e)
        return JSONResponse(
            content={"status": "error", "message": str(e)},
            status_code=status.HTTP_200_OK,
        )
