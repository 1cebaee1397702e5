"""
Код верификации вала: URL и QR-изображение.

URL: <VERIFICATION_BASE_URL>/vale/<FOLIO>, FOLIO = [A-Z]+-\\d+-\\d+.
"""
import asyncio
import io
import logging
import re
from dataclasses import dataclass
from typing import Optional

import qrcode
from PIL import Image, ImageDraw, ImageFont

from acarreos.core.config import settings
from acarreos.core.exceptions import VerificationImageFailed

logger = logging.getLogger(__name__)

FOLIO_PATTERN = r"[A-Z]+-\d+-\d+"
_FOLIO_FROM_URL_RE = re.compile(r"/vale/([^/]+)$")
_CAPTION_HEIGHT = 40


def build_verification_url(folio: str, base_url: str | None = None) -> str:
    base = (base_url or settings.VERIFICATION_BASE_URL).rstrip("/")
    return f"{base}/vale/{folio}"


def extract_folio(url: str | None) -> Optional[str]:
    """Фолио из URL верификации или None."""
    if not url:
        return None
    match = _FOLIO_FROM_URL_RE.search(url)
    return match.group(1) if match else None


def is_valid_verification_url(url: str | None, base_url: str | None = None) -> bool:
    if not url:
        return False
    base = (base_url or settings.VERIFICATION_BASE_URL).rstrip("/")
    if not base.startswith("https://"):
        return False
    return re.fullmatch(rf"{re.escape(base)}/vale/{FOLIO_PATTERN}", url) is not None


@dataclass(frozen=True)
class VerificationImage:
    """Готовое PNG-изображение QR для вставки в документ."""
    url: str
    png: bytes
    width: int
    height: int


class VerificationCodeEmbedder:
    """
    Строит QR по URL верификации.
    Одна попытка, короткая пауза перед захватом; при ошибке: VerificationImageFailed,
    заглушка вместо QR не подставляется.
    """

    def __init__(self, settle_delay: float | None = None, box_size: int | None = None):
        self.settle_delay = settings.QR_SETTLE_DELAY if settle_delay is None else settle_delay
        self.box_size = box_size or settings.QR_BOX_SIZE

    def render(self, url: str) -> Image.Image:
        qr = qrcode.QRCode(
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=self.box_size,
            border=2,
        )
        qr.add_data(url)
        qr.make(fit=True)
        qr_img = qr.make_image(fill_color="black", back_color="white").convert("RGB")

        caption = extract_folio(url)
        if not caption:
            return qr_img

        final_img = Image.new("RGB", (qr_img.width, qr_img.height + _CAPTION_HEIGHT), "white")
        final_img.paste(qr_img, (0, 0))
        draw = ImageDraw.Draw(final_img)
        font = ImageFont.load_default()
        text_width = draw.textlength(caption, font=font)
        draw.text(
            ((qr_img.width - text_width) / 2, qr_img.height + 10),
            caption,
            fill="black",
            font=font,
        )
        return final_img

    @staticmethod
    def capture(image: Image.Image) -> bytes:
        buf = io.BytesIO()
        image.save(buf, format="PNG")
        data = buf.getvalue()
        # Проверяем, что PNG читается обратно
        Image.open(io.BytesIO(data)).verify()
        return data

    async def embed(self, url: str) -> VerificationImage:
        if not url:
            raise VerificationImageFailed("Código QR no generado: URL de verificación vacía")
        try:
            image = self.render(url)
            if self.settle_delay > 0:
                await asyncio.sleep(self.settle_delay)
            png = self.capture(image)
        except Exception as e:
            logger.exception("QR capture failed for %s", url)
            raise VerificationImageFailed(f"No se pudo generar el código QR: {e}") from e

        logger.debug("QR captured for %s (%d bytes)", url, len(png))
        return VerificationImage(url=url, png=png, width=image.width, height=image.height)
