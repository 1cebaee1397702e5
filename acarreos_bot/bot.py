"""
Главный файл Telegram бота на aiogram 3.x.
"""
import logging
import asyncio
from datetime import timedelta
from typing import Any, Awaitable, Callable

from aiogram import BaseMiddleware, Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.fsm.storage.redis import RedisStorage
from aiogram.types import TelegramObject, Update

from acarreos_bot.config import bot_config
from acarreos_bot.handlers import start, vales, closure

# Настройка логирования
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger(__name__)


class AccessMiddleware(BaseMiddleware):
    """Пропускает только пользователей из whitelist."""

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        user = data.get("event_from_user")
        if user is not None and not bot_config.is_allowed(user.id):
            logger.warning("Access denied for Telegram user %s", user.id)
            return None
        return await handler(event, data)


class ErrorHandlerMiddleware(BaseMiddleware):
    """Глобальный middleware для обработки ошибок в хендлерах."""

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        try:
            return await handler(event, data)
        except Exception as e:
            logger.exception("Handler error: %s", e)
            state = data.get("state")
            if state:
                await state.clear()


def create_dispatcher(storage=None) -> Dispatcher:
    """Создает и настраивает диспетчер."""
    if storage is None:
        storage = RedisStorage.from_url(
            bot_config.REDIS_URL,
            state_ttl=timedelta(hours=24),
            data_ttl=timedelta(hours=24),
        )
    dp = Dispatcher(storage=storage)

    dp.include_router(start.router)
    dp.include_router(vales.router)
    dp.include_router(closure.router)

    for observer in (dp.message, dp.callback_query):
        observer.outer_middleware(AccessMiddleware())
        observer.middleware(ErrorHandlerMiddleware())

    logger.info("Dispatcher created with all routers")
    return dp


def _create_bot() -> Bot:
    bot_config.validate()
    return Bot(token=bot_config.TOKEN, default=DefaultBotProperties())


async def start_polling():
    """Запускает бота в режиме polling (для локальной разработки)."""
    bot = _create_bot()
    dp = create_dispatcher()

    logger.info("Starting bot in polling mode...")
    try:
        await dp.start_polling(bot)
    finally:
        await bot.session.close()


# Глобальные объекты для webhook
_bot: Bot = None
_dp: Dispatcher = None


def get_bot() -> Bot:
    """Возвращает глобальный объект бота."""
    global _bot
    if _bot is None:
        _bot = _create_bot()
    return _bot


def get_dispatcher() -> Dispatcher:
    global _dp
    if _dp is None:
        _dp = create_dispatcher()
    return _dp


async def setup_webhook() -> None:
    """Настраивает webhook для бота."""
    if not bot_config.WEBHOOK_URL:
        logger.warning("WEBHOOK_URL not set, skipping webhook setup")
        return

    bot = get_bot()
    webhook_url = bot_config.webhook_endpoint()

    # secret_token → Telegram шлёт X-Telegram-Bot-Api-Secret-Token
    webhook_kwargs = {"url": webhook_url}
    if bot_config.WEBHOOK_SECRET:
        webhook_kwargs["secret_token"] = bot_config.WEBHOOK_SECRET
    await bot.set_webhook(**webhook_kwargs)
    logger.info(f"Webhook set to: {webhook_url}")


async def process_update(update_data: dict) -> None:
    """Обрабатывает обновление от Telegram (для webhook)."""
    bot = get_bot()
    dp = get_dispatcher()

    update = Update.model_validate(update_data, context={"bot": bot})
    await dp.feed_update(bot, update)


if __name__ == "__main__":
    asyncio.run(start_polling())
