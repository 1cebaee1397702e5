"""
Генерация фолио валов.

Формат: СУФФИКС-ЦЕНТР_ЗАТРАТ-NNNNN (например CD-140-00001).
Нумерация своя у каждой стройки. Если БД недоступна, возвращается
временный фолио TEMP-XXXXXXXX: создание вала не блокируется.
"""
import logging
import re
import time
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from acarreos.core.exceptions import FolioLookupFailed
from acarreos.models.site import Site
from acarreos.models.voucher import Voucher

logger = logging.getLogger(__name__)

COUNTER_WIDTH = 5
TEMP_PREFIX = "TEMP-"
_COUNTER_RE = re.compile(r"-(\d+)$")


def format_folio(prefix: str, number: int) -> str:
    return f"{prefix}{number:0{COUNTER_WIDTH}d}"


def parse_counter(folio: str | None) -> Optional[int]:
    """Числовой счётчик в конце фолио или None."""
    if not folio:
        return None
    match = _COUNTER_RE.search(folio)
    return int(match.group(1)) if match else None


def next_folio(prefix: str, last_folio: str | None) -> str:
    """Следующий фолио после last_folio; без предыдущего: 00001."""
    counter = parse_counter(last_folio)
    return format_folio(prefix, (counter or 0) + 1)


def temporary_folio(now_ms: int | None = None) -> str:
    """Временный фолио из последних 8 цифр времени в миллисекундах."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{TEMP_PREFIX}{str(now_ms)[-8:]}"


def is_temporary(folio: str | None) -> bool:
    return bool(folio) and folio.startswith(TEMP_PREFIX)


class FolioService:
    """
    Последовательность фолио по стройке.

    Это не атомарный счётчик: чтение максимума + одна повторная
    проверка на коллизию. Два устройства на одной стройке могут
    получить одинаковый фолио; уникальный индекс по folio это ловит.
    """

    def __init__(self, db: Session):
        self.db = db

    def last_folio(self, site_id: int, prefix: str) -> Optional[str]:
        """Максимальный фолио стройки с данным префиксом."""
        try:
            return (
                self.db.query(Voucher.folio)
                .filter(
                    Voucher.site_id == site_id,
                    Voucher.folio.like(f"{prefix}%"),
                )
                .order_by(func.length(Voucher.folio).desc(), Voucher.folio.desc())
                .limit(1)
                .scalar()
            )
        except SQLAlchemyError as e:
            raise FolioLookupFailed(prefix, str(e)) from e

    def exists(self, folio: str) -> bool:
        try:
            return (
                self.db.query(Voucher.id).filter(Voucher.folio == folio).first()
                is not None
            )
        except SQLAlchemyError as e:
            raise FolioLookupFailed(folio, str(e)) from e

    def generate(self, site: Optional[Site]) -> str:
        """Следующий фолио стройки. Никогда не бросает исключений."""
        try:
            if site is None:
                raise FolioLookupFailed("?", "no hay datos de obra disponibles")

            prefix = site.folio_prefix
            last = self.last_folio(site.id, prefix)
            candidate = next_folio(prefix, last)
            logger.debug("Folio candidate for site %s: %s (last=%s)", site.id, candidate, last)

            if self.exists(candidate):
                logger.warning("Folio %s already taken, bumping once", candidate)
                candidate = format_folio(prefix, parse_counter(candidate) + 1)
            return candidate
        except FolioLookupFailed as e:
            if isinstance(e.__cause__, SQLAlchemyError):
                self.db.rollback()
            folio = temporary_folio()
            logger.warning("Folio lookup failed (%s), using temporary folio %s", e.detail, folio)
            return folio
