"""
Модели SQLAlchemy: импортируем все для корректной регистрации relationship.
"""
from acarreos.models.site import Company, Site  # noqa: F401
from acarreos.models.catalog import (  # noqa: F401
    Material,
    Union,
    MaterialBank,
    RentalRate,
    BankSiteDistance,
)
from acarreos.models.voucher import (  # noqa: F401
    Voucher,
    VoucherType,
    VoucherState,
    MaterialDetail,
    RentalDetail,
)
from acarreos.models.history import VoucherEvent  # noqa: F401
