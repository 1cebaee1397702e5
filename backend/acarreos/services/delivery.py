"""
Каналы доставки готового документа: отдача файлом или очередь печати.
"""
import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from acarreos.core.config import settings
from acarreos.core.exceptions import DeliveryUnavailable, ValidationException
from acarreos.services.document_renderer import DocumentArtifact

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryReceipt:
    filename: str
    channel: str
    location: Optional[str] = None


class DocumentDelivery(Protocol):
    name: str

    def is_available(self) -> bool: ...

    async def deliver(self, artifact: DocumentArtifact) -> DeliveryReceipt: ...


class DownloadDelivery:
    """Документ уходит в ответе HTTP: доставка всегда доступна."""
    name = "download"

    def is_available(self) -> bool:
        return True

    async def deliver(self, artifact: DocumentArtifact) -> DeliveryReceipt:
        return DeliveryReceipt(filename=artifact.filename, channel=self.name)


class PrintSpoolDelivery:
    """Кладёт PDF в каталог очереди печати."""
    name = "print"

    def __init__(self, spool_dir: str | Path | None = None):
        self.spool_dir = Path(spool_dir or settings.PRINT_SPOOL_DIR)

    def is_available(self) -> bool:
        try:
            self.spool_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning("Print spool %s unavailable: %s", self.spool_dir, e)
            return False
        return self.spool_dir.is_dir()

    def _write(self, artifact: DocumentArtifact) -> Path:
        target = self.spool_dir / artifact.filename
        target.write_bytes(artifact.content)
        return target

    async def deliver(self, artifact: DocumentArtifact) -> DeliveryReceipt:
        try:
            path = await asyncio.to_thread(self._write, artifact)
        except OSError as e:
            logger.error("Failed to spool %s: %s", artifact.filename, e)
            raise DeliveryUnavailable(f"No se pudo enviar {artifact.filename} a impresión: {e}") from e
        logger.info("Spooled %s to %s", artifact.filename, path)
        return DeliveryReceipt(filename=artifact.filename, channel=self.name, location=str(path))


def get_delivery(mode: str) -> DocumentDelivery:
    if mode == "download":
        return DownloadDelivery()
    if mode == "print":
        return PrintSpoolDelivery()
    raise ValidationException(f"Modo de entrega desconocido: {mode}")
