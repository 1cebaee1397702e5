"""
Утилиты приложения.
"""
import re
from datetime import datetime
from zoneinfo import ZoneInfo

from acarreos.core.config import settings

LOCAL_TZ = ZoneInfo(settings.APP_TIMEZONE)


def now_local() -> datetime:
    """Текущее время в часовом поясе стройки (без tzinfo, как хранится в БД)."""
    return datetime.now(LOCAL_TZ).replace(tzinfo=None)


def to_local_naive(dt: datetime | None) -> datetime | None:
    """Приводит datetime к локальному времени без tzinfo. Naive значения считаются локальными."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        return dt.astimezone(LOCAL_TZ).replace(tzinfo=None)
    return dt


def format_date(dt: datetime | None) -> str:
    """Дата в мексиканском формате ДД/ММ/ГГГГ."""
    if dt is None:
        return "—"
    return to_local_naive(dt).strftime("%d/%m/%Y")


def format_time(dt: datetime | None) -> str:
    """Время в 24-часовом формате ЧЧ:ММ."""
    if dt is None:
        return "—"
    return to_local_naive(dt).strftime("%H:%M")


def sanitize_text(text: str | None, max_length: int = 1000) -> str | None:
    """Очистить текст от управляющих символов и ограничить длину."""
    if text is None:
        return None
    text = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]', '', text)
    return text[:max_length].strip()
