"""
Рендер вала в PDF формата чека (узкая лента 226 pt).

Каждая копия имеет свой цвет фона и получателя. Рендер является чистой функцией:
одинаковые входные данные дают побайтно одинаковый PDF (reportlab invariant,
дата выдачи берётся из вала, а не из часов).
"""
import enum
import io
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from reportlab.lib import colors
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas

from acarreos.core.utils import format_date, format_time
from acarreos.services.rental_completion import rental_subtotal
from acarreos.services.verification import VerificationImage

logger = logging.getLogger(__name__)

PAGE_WIDTH = 226
PAGE_HEIGHT = 842
MARGIN = 6
FONT = "Courier"
FONT_BOLD = "Courier-Bold"
FONT_ITALIC = "Courier-Oblique"
QR_SIZE = 120
MEDIA_TYPE_PDF = "application/pdf"


class CopyColor(str, enum.Enum):
    BLANCO = "blanco"
    ROJA = "roja"
    VERDE = "verde"
    AZUL = "azul"
    AMARILLA = "amarilla"
    NARANJA = "naranja"

    @property
    def label(self) -> str:
        """Название для имени файла: Blanco, Roja..."""
        return self.value.capitalize()


@dataclass(frozen=True)
class CopySpec:
    color: CopyColor
    tint: str
    recipient: str


COPY_SPECS: dict[CopyColor, CopySpec] = {
    CopyColor.BLANCO: CopySpec(CopyColor.BLANCO, "#FFFFFF", "OPERADOR"),
    CopyColor.ROJA: CopySpec(CopyColor.ROJA, "#FFEBEE", "BANCO DE MATERIAL"),
    CopyColor.VERDE: CopySpec(CopyColor.VERDE, "#E8F5E8", "RESIDENTE"),
    CopyColor.AZUL: CopySpec(CopyColor.AZUL, "#E3F2FD", "ADMINISTRADOR 1"),
    CopyColor.AMARILLA: CopySpec(CopyColor.AMARILLA, "#FFFDE7", "ADMINISTRADOR 2"),
    CopyColor.NARANJA: CopySpec(CopyColor.NARANJA, "#FFF3E0", "ADMINISTRADOR 3"),
}


def resolve_copy(color: "str | CopyColor | None") -> CopySpec:
    """Копия по ключу цвета. Неизвестный ключ: копия оператора (blanco)."""
    try:
        key = CopyColor(str(color.value if isinstance(color, CopyColor) else color).strip().lower())
    except ValueError:
        logger.debug("Unknown copy color %r, falling back to blanco", color)
        key = CopyColor.BLANCO
    return COPY_SPECS[key]


def document_filename(folio: str, copy: CopySpec, ext: str = "pdf") -> str:
    return f"{folio}_{copy.color.label}.{ext}"


@dataclass(frozen=True)
class DocumentArtifact:
    """Готовый документ одной копии."""
    folio: str
    copy: CopySpec
    content: bytes
    media_type: str = MEDIA_TYPE_PDF

    @property
    def filename(self) -> str:
        return document_filename(self.folio, self.copy)


def _text(value, default: str = "N/A") -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def _number(value, default: str = "N/A") -> str:
    if value is None:
        return default
    number = Decimal(str(value)).normalize()
    return format(number, "f")


def _money(value, default: str = "N/A") -> str:
    if value is None:
        return default
    return f"${Decimal(str(value)):,.2f}"


class _ReceiptCanvas:
    """Курсор сверху вниз по ленте чека."""

    def __init__(self, c: canvas.Canvas, tint: str):
        self.c = c
        self.tint = colors.HexColor(tint)
        self.left = MARGIN
        self.right = PAGE_WIDTH - MARGIN
        self.width = self.right - self.left
        self.y = PAGE_HEIGHT - MARGIN

    def background(self) -> None:
        self.c.setFillColor(self.tint)
        self.c.rect(0, 0, PAGE_WIDTH, PAGE_HEIGHT, stroke=0, fill=1)
        self.c.setStrokeColor(colors.black)
        self.c.setLineWidth(2)
        self.c.rect(self.left - 2, MARGIN, self.width + 4, PAGE_HEIGHT - 2 * MARGIN, stroke=1, fill=0)

    def band(self, lines: list[tuple[str, str, float]], padding: float = 6) -> None:
        """Чёрная полоса с белым текстом по центру (заголовок, подвал, раздел)."""
        chunks = [
            (chunk, font, size)
            for text, font, size in lines
            for chunk in (simpleSplit(text, font, size, self.width - 4) or [""])[:2]
        ]
        height = padding * 2 + sum(size + 2 for _, _, size in chunks)
        self.c.setFillColor(colors.black)
        self.c.rect(self.left - 2, self.y - height, self.width + 4, height, stroke=0, fill=1)
        self.c.setFillColor(colors.white)
        cursor = self.y - padding
        for chunk, font, size in chunks:
            cursor -= size
            self.c.setFont(font, size)
            self.c.drawCentredString(PAGE_WIDTH / 2, cursor, chunk)
            cursor -= 2
        self.y -= height
        self.c.setFillColor(colors.black)

    def section(self, title: str) -> None:
        self.band([(title.upper(), FONT_BOLD, 9)], padding=4)

    def row(self, label: str, value: str, size: float = 7.5, bold_value: bool = False) -> None:
        value_font = FONT_BOLD if bold_value else FONT
        value_lines = simpleSplit(value, value_font, size, self.width / 2) or [""]
        self.y -= 3
        self.c.setFont(FONT_BOLD, size)
        self.c.drawString(self.left + 2, self.y - size, label.upper())
        self.c.setFont(value_font, size)
        for line in value_lines:
            self.y -= size + 1
            self.c.drawRightString(self.right - 2, self.y, line)
        self.y -= 3
        self._dashed()

    def full_row(self, label: str, value: str, size: float = 7.5) -> None:
        text = f"{label.upper()}: {value}"
        lines = simpleSplit(text, FONT, size, self.width - 4)
        self.y -= 3
        self.c.setFont(FONT, size)
        for line in lines:
            self.y -= size + 1
            self.c.drawString(self.left + 2, self.y, line)
        self.y -= 3
        self._dashed()

    def divider(self) -> None:
        self.y -= 3
        self.c.setLineWidth(1)
        self.c.setDash()
        self.c.line(self.left, self.y, self.right, self.y)
        self.y -= 3

    def _dashed(self) -> None:
        self.c.setLineWidth(0.5)
        self.c.setStrokeColor(colors.HexColor("#666666"))
        self.c.setDash(1, 2)
        self.c.line(self.left + 2, self.y, self.right - 2, self.y)
        self.c.setDash()
        self.c.setStrokeColor(colors.black)

    def qr_block(self, image: VerificationImage) -> None:
        self.y -= 6
        self.c.setFont(FONT_BOLD, 9)
        self.y -= 9
        self.c.drawCentredString(PAGE_WIDTH / 2, self.y, "CÓDIGO DE VERIFICACIÓN")

        draw_w = QR_SIZE
        draw_h = QR_SIZE * image.height / image.width if image.width else QR_SIZE
        self.y -= 4 + draw_h
        self.c.drawImage(
            ImageReader(io.BytesIO(image.png)),
            (PAGE_WIDTH - draw_w) / 2,
            self.y,
            width=draw_w,
            height=draw_h,
        )

        self.c.setFont(FONT_BOLD, 7)
        self.y -= 11
        self.c.drawCentredString(PAGE_WIDTH / 2, self.y, "Escanee para verificar autenticidad")
        self.divider()
        self.c.setFont(FONT, 6)
        for line in simpleSplit(image.url, FONT, 6, self.width - 4):
            self.y -= 7
            self.c.drawCentredString(PAGE_WIDTH / 2, self.y, line)
        self.y -= 6
        self.c.setLineWidth(2)
        self.c.line(self.left - 2, self.y, self.right + 2, self.y)


class DocumentRenderer:
    """
    Строит PDF одной копии вала: шапка, реквизиты, блок материала или аренды,
    оператор, QR, подвал с получателем.
    """

    def render(
        self,
        voucher,
        detail,
        copy: CopySpec,
        verification_image: VerificationImage,
    ) -> DocumentArtifact:
        buf = io.BytesIO()
        c = canvas.Canvas(buf, pagesize=(PAGE_WIDTH, PAGE_HEIGHT), invariant=1)
        c.setTitle(f"Vale {voucher.folio}")
        c.setSubject(f"Copia {copy.color.value}")

        company = _text(getattr(getattr(voucher.site, "company", None), "name", None))
        page = _ReceiptCanvas(c, copy.tint)
        page.background()

        is_rental = voucher.voucher_type == "rental"
        page.band([
            (company.upper(), FONT_BOLD, 11),
            ("VALE DE RENTA - SERVICIO" if is_rental else "VALE DE MATERIAL", FONT, 9),
        ], padding=8)

        self._identity(page, voucher, detail, is_rental)
        if is_rental:
            self._rental_block(page, detail)
        else:
            self._material_block(page, detail)
        self._general_block(page, voucher)
        page.qr_block(verification_image)

        issued = f"Emitida: {format_date(voucher.created_at)} {format_time(voucher.created_at)}"
        page.band([
            (f"COPIA {copy.color.value.upper()}", FONT_BOLD, 11),
            (copy.recipient, FONT, 9),
            (issued, FONT_ITALIC, 8),
        ], padding=8)

        c.showPage()
        c.save()
        content = buf.getvalue()
        logger.info("Rendered %s copy of %s (%d bytes)", copy.color.value, voucher.folio, len(content))
        return DocumentArtifact(folio=voucher.folio, copy=copy, content=content)

    @staticmethod
    def _identity(page: _ReceiptCanvas, voucher, detail, is_rental: bool) -> None:
        page.row("Folio", voucher.folio)
        page.row("Fecha", format_date(voucher.created_at))
        page.row("Hora", format_time(voucher.created_at))
        page.full_row("Obra", _text(getattr(voucher.site, "name", None)))
        if is_rental:
            page.row("Sindicato", _text(getattr(getattr(detail, "union", None), "name", None)))

    @staticmethod
    def _material_block(page: _ReceiptCanvas, detail) -> None:
        page.section("Datos del material")
        page.row("Material", _text(getattr(getattr(detail, "material", None), "name", None)))
        page.row("Banco", _text(getattr(getattr(detail, "bank", None), "name", None)))
        page.row("Capacidad", f"{_number(detail.capacity_m3)} m³")
        page.row("Distancia", f"{_number(detail.distance_km)} Km")
        weight = detail.weight_tons
        page.row("Peso", f"{_number(weight)} Ton" if weight is not None else "Pendiente")
        page.row("Cantidad solicitada", f"{_number(detail.requested_volume_m3)} m³")

    @staticmethod
    def _rental_block(page: _ReceiptCanvas, detail) -> None:
        page.section("Servicio de renta")
        page.row("Material movido", _text(getattr(getattr(detail, "material", None), "name", None)))
        page.row("Capacidad", f"{_number(detail.capacity_m3)} m³")
        page.row("Núm. viajes", str(detail.trips or 1))
        page.divider()
        page.row("Hora inicio", format_time(detail.start_time) if detail.start_time else "N/A")
        page.row("Hora fin", format_time(detail.end_time) if detail.end_time else "Pendiente")
        hours = detail.total_hours or 0
        page.row("Total horas", f"{hours:.2f} hrs" if hours > 0 else "N/A")
        page.row("Total días", str(detail.total_days) if detail.total_days else "N/A")
        page.divider()
        page.row("Tarifa/Hora", _money(detail.hourly_rate))
        page.row("Tarifa/Día", _money(detail.daily_rate))
        subtotal: Optional[Decimal] = rental_subtotal(detail)
        page.row(
            "Costo total",
            f"{_money(subtotal)} MXN" if subtotal is not None else "Pendiente",
            size=8.5,
            bold_value=True,
        )

    @staticmethod
    def _general_block(page: _ReceiptCanvas, voucher) -> None:
        page.section("Datos generales")
        page.row("Operador", _text(voucher.operator_name))
        page.row("Placas", _text(voucher.vehicle_plate))
        if voucher.notes:
            page.full_row("Notas", voucher.notes)
