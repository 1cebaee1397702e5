"""Тесты каналов доставки."""
import pytest

from acarreos.core.exceptions import ValidationException
from acarreos.services.delivery import DownloadDelivery, PrintSpoolDelivery, get_delivery
from acarreos.services.document_renderer import DocumentArtifact, resolve_copy


def _artifact() -> DocumentArtifact:
    return DocumentArtifact(folio="CD-140-00001", copy=resolve_copy("roja"), content=b"%PDF-1.4 test")


def test_get_delivery_by_mode():
    assert isinstance(get_delivery("download"), DownloadDelivery)
    assert isinstance(get_delivery("print"), PrintSpoolDelivery)


def test_unknown_mode():
    with pytest.raises(ValidationException):
        get_delivery("fax")


@pytest.mark.asyncio
async def test_download_receipt_has_suggested_filename():
    receipt = await DownloadDelivery().deliver(_artifact())
    assert receipt.filename == "CD-140-00001_Roja.pdf"
    assert receipt.location is None


@pytest.mark.asyncio
async def test_print_spool_creates_folder(tmp_path):
    spool = tmp_path / "cola" / "impresion"
    delivery = PrintSpoolDelivery(spool)
    assert delivery.is_available()
    receipt = await delivery.deliver(_artifact())
    assert (spool / "CD-140-00001_Roja.pdf").read_bytes() == b"%PDF-1.4 test"
    assert receipt.channel == "print"


def test_print_spool_unavailable_when_path_is_a_file(tmp_path):
    blocker = tmp_path / "spool"
    blocker.write_text("not a folder")
    assert not PrintSpoolDelivery(blocker).is_available()
