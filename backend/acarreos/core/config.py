"""
Конфигурация приложения.
"""
import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Настройки приложения."""

    # Database: без дефолта, приложение не запустится без БД
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")

    # FastAPI
    APP_TITLE: str = "Control de Acarreos"
    DEBUG: bool = False

    # API Security: без дефолтов
    API_KEY: str = os.getenv("API_KEY", "")
    TELEGRAM_WEBHOOK_SECRET: str = os.getenv("TELEGRAM_WEBHOOK_SECRET", "")

    # CORS: по умолчанию пустой (ничего не разрешено)
    ALLOWED_ORIGINS: str = os.getenv("ALLOWED_ORIGINS", "")

    # Часовой пояс, в котором показываются даты на валах
    APP_TIMEZONE: str = os.getenv("APP_TIMEZONE", "America/Mexico_City")

    # Верификация: фиксированная база URL, который кодируется в QR
    VERIFICATION_BASE_URL: str = os.getenv(
        "VERIFICATION_BASE_URL", "https://verify.controldeacarreos.com"
    )

    # QR: пауза перед захватом изображения и размер модуля
    QR_SETTLE_DELAY: float = float(os.getenv("QR_SETTLE_DELAY", "0.5"))
    QR_BOX_SIZE: int = int(os.getenv("QR_BOX_SIZE", "10"))

    # Доставка: папка очереди печати
    PRINT_SPOOL_DIR: str = os.getenv("PRINT_SPOOL_DIR", "data/print_spool")

    # Сколько недоставленных документов держать в памяти для повтора
    PENDING_DOCUMENTS_LIMIT: int = int(os.getenv("PENDING_DOCUMENTS_LIMIT", "200"))


settings = Settings()
