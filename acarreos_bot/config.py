"""
Настройки бота выдачи валов.

Всё читается из окружения (.env подхватывается python-dotenv) один раз
при импорте. Тесты меняют атрибуты класса напрямую.
"""
import os
from dotenv import load_dotenv

load_dotenv()

WEBHOOK_PATH = "/webhook/telegram/webhook"


def _id_list(name: str) -> list[int]:
    """Список Telegram ID через запятую: "123, 456" → [123, 456]."""
    raw = os.getenv(name, "")
    return [int(part) for part in (p.strip() for p in raw.split(",")) if part]


class BotConfig:
    """Токен, доступ и адрес бэкенда для бота."""

    # --- Telegram ---
    TOKEN: str = os.getenv("TELEGRAM_BOT_TOKEN", "")
    WEBHOOK_URL: str = os.getenv("TELEGRAM_BOT_WEBHOOK_URL", "")
    WEBHOOK_SECRET: str = os.getenv("TELEGRAM_WEBHOOK_SECRET", "")

    # Кто может пользоваться ботом; пусто = все
    ALLOWED_TELEGRAM_IDS: list[int] = _id_list("TELEGRAM_ALLOWED_IDS")

    # --- Бэкенд ---
    API_KEY: str = os.getenv("API_KEY", "")
    API_BASE_URL: str = os.getenv("API_BASE_URL", "")
    # Стройка, от имени которой бот запрашивает валы
    SITE_ID: int = int(os.getenv("BOT_SITE_ID", "1"))

    # FSM хранится в Redis, чтобы диалог закрытия пережил перезапуск
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    @classmethod
    def get_api_base_url(cls) -> str:
        # Бот крутится в одном процессе с API
        return cls.API_BASE_URL or "http://localhost:8080"

    @classmethod
    def webhook_endpoint(cls) -> str:
        """Полный адрес, который регистрируется в Telegram."""
        base = cls.WEBHOOK_URL.rstrip("/")
        if base.endswith("/webhook"):
            base = base[: -len("/webhook")]
        return base + WEBHOOK_PATH

    @classmethod
    def validate(cls) -> bool:
        if not cls.TOKEN:
            raise ValueError("TELEGRAM_BOT_TOKEN no está configurado; revisa el archivo .env")
        if cls.SITE_ID <= 0:
            raise ValueError(f"BOT_SITE_ID inválido: {cls.SITE_ID}")
        return True

    @classmethod
    def is_allowed(cls, user_id: int) -> bool:
        return not cls.ALLOWED_TELEGRAM_IDS or user_id in cls.ALLOWED_TELEGRAM_IDS


bot_config = BotConfig()
