"""
Утилитарные функции для Telegram-бота.
"""
import logging
import re
from datetime import datetime
from typing import Optional

logger = logging.getLogger(__name__)

_HHMM_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")
_FOLIO_RE = re.compile(r"^(?:[A-Z]+-\d+-\d+|TEMP-\d+)$")


def format_datetime(iso_string: str, fmt: str = "%d/%m/%Y %H:%M") -> str:
    """
    Парсит ISO-строку даты и возвращает отформатированную строку.
    При невалидной дате логирует warning и возвращает исходную строку.
    """
    if not iso_string:
        return "Pendiente"
    try:
        dt = datetime.fromisoformat(iso_string.replace("Z", "+00:00"))
        return dt.strftime(fmt)
    except (ValueError, TypeError) as e:
        logger.warning(f"Failed to parse datetime '{iso_string}': {e}")
        return iso_string


def normalize_folio(text: str | None) -> Optional[str]:
    """CD-140-00001 в верхнем регистре или None."""
    folio = (text or "").strip().upper()
    return folio if _FOLIO_RE.match(folio) else None


def parse_end_time(text: str, start_iso: str) -> Optional[datetime]:
    """
    HH:MM в дату начала аренды. Если время раньше начала, это всё равно
    день начала: проверку порядка делает бэкенд.
    """
    match = _HHMM_RE.match((text or "").strip())
    if not match:
        return None
    start = datetime.fromisoformat(start_iso.replace("Z", "+00:00"))
    return start.replace(hour=int(match.group(1)), minute=int(match.group(2)), second=0, microsecond=0)


def parse_trips(text: str) -> Optional[int]:
    value = (text or "").strip()
    if not value.isdigit() or int(value) < 1:
        return None
    return int(value)
