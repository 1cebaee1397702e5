"""
Тестовая инфраструктура: фикстуры для SQLite in-memory и FastAPI TestClient.
"""
import os

# Отключаем Telegram бота при тестах: должно быть ДО импорта acarreos/acarreos_bot
os.environ["TELEGRAM_BOT_TOKEN"] = ""
os.environ["TELEGRAM_BOT_WEBHOOK_URL"] = ""
os.environ["API_KEY"] = "test-api-key"
os.environ["TELEGRAM_WEBHOOK_SECRET"] = "test-webhook-secret"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["QR_SETTLE_DELAY"] = "0"

# Принудительно обнуляем config бота (мог быть уже загружен с реальным TOKEN)
import acarreos_bot.config
acarreos_bot.config.bot_config.TOKEN = ""
acarreos_bot.config.bot_config.WEBHOOK_URL = ""

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from acarreos.core.database import Base, get_db
from acarreos.main import app as fastapi_app
from acarreos.models.catalog import BankSiteDistance, Material, MaterialBank, RentalRate, Union
from acarreos.models.site import Company, Site
from acarreos.models.voucher import MaterialDetail, RentalDetail, Voucher
from acarreos.services.issuance_service import IssuanceCoordinator, get_coordinator
from acarreos.services.verification import VerificationCodeEmbedder, build_verification_url

# Импортируем все модели чтобы Base.metadata знал о них
import acarreos.models  # noqa: F401


# SQLite in-memory с StaticPool: одна БД для всех connections
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Включаем поддержку FK в SQLite
@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(bind=engine)

SITE_HEADERS = {"X-Site-Id": "1", "X-User-Id": "7"}


@pytest.fixture(autouse=True)
def setup_database():
    """Создаёт все таблицы перед каждым тестом и удаляет после."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session() -> Session:
    """Фикстура тестовой сессии БД."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def catalog(db_session: Session) -> dict:
    """
    Справочники: компания CD, стройка 140 (id=1), вторая стройка (id=2),
    материал, карьер с расстоянием до стройки 1, профсоюз с тарифом и без.
    """
    company = Company(id=1, name="Constructora Demo", suffix="CD")
    site = Site(id=1, name="Torre Norte", cost_center=140, company_id=1)
    other_site = Site(id=2, name="Puente Sur", cost_center=210, company_id=1)
    material = Material(id=1, name="Grava 3/4")
    bank = MaterialBank(id=1, name="Banco El Cerrito")
    union = Union(id=1, name="Sindicato CTM")
    union_without_rate = Union(id=2, name="Sindicato Libre")
    db_session.add_all([company, site, other_site, material, bank, union, union_without_rate])
    db_session.flush()
    rate = RentalRate(id=1, union_id=1, hourly_rate=Decimal("450.00"), daily_rate=Decimal("3200.00"))
    distance = BankSiteDistance(bank_id=1, site_id=1, distance_km=Decimal("12.50"))
    db_session.add_all([rate, distance])
    db_session.commit()
    return {
        "company": company,
        "site": site,
        "other_site": other_site,
        "material": material,
        "bank": bank,
        "union": union,
        "union_without_rate": union_without_rate,
        "rate": rate,
    }


def make_rental(
    db: Session,
    folio: str = "CD-140-00001",
    start_time: datetime | None = datetime(2026, 3, 2, 8, 0),
    site_id: int = 1,
    state: str = "issued",
    **detail_fields,
) -> Voucher:
    """Вал аренды, открытый с start_time (in_process)."""
    voucher = Voucher(
        folio=folio,
        voucher_type="rental",
        state=state,
        site_id=site_id,
        operator_name="Juan Pérez",
        vehicle_plate="ABC1234",
        verification_url=build_verification_url(folio),
        created_at=datetime(2026, 3, 2, 7, 45),
    )
    db.add(voucher)
    db.flush()
    fields = dict(
        voucher_id=voucher.id,
        material_id=1,
        union_id=1,
        rental_rate_id=1,
        capacity_m3=Decimal("14.00"),
        trips=1,
        start_time=start_time,
        end_time=None,
        total_hours=0.0,
        total_days=0,
        hourly_rate=Decimal("450.00"),
        daily_rate=Decimal("3200.00"),
    )
    fields.update(detail_fields)
    db.add(RentalDetail(**fields))
    db.commit()
    db.refresh(voucher)
    return voucher


def make_material(db: Session, folio: str = "CD-140-00001", site_id: int = 1, state: str = "issued") -> Voucher:
    voucher = Voucher(
        folio=folio,
        voucher_type="material",
        state=state,
        site_id=site_id,
        operator_name="María López",
        vehicle_plate="XYZ9876",
        verification_url=build_verification_url(folio),
        created_at=datetime(2026, 3, 2, 9, 15),
    )
    db.add(voucher)
    db.flush()
    db.add(MaterialDetail(
        voucher_id=voucher.id,
        material_id=1,
        bank_id=1,
        capacity_m3=Decimal("7.00"),
        distance_km=Decimal("12.50"),
        requested_volume_m3=Decimal("7.00"),
        weight_tons=None,
    ))
    db.commit()
    db.refresh(voucher)
    return voucher


@pytest.fixture
def coordinator() -> IssuanceCoordinator:
    """Свежий координатор без паузы перед захватом QR."""
    return IssuanceCoordinator(embedder=VerificationCodeEmbedder(settle_delay=0))


def _override(db_session: Session, coordinator: IssuanceCoordinator) -> None:
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_coordinator] = lambda: coordinator


@pytest.fixture
def client_no_auth(db_session: Session, coordinator) -> TestClient:
    """FastAPI TestClient БЕЗ API-ключа (для тестов безопасности)."""
    _override(db_session, coordinator)
    with TestClient(fastapi_app, raise_server_exceptions=False) as c:
        yield c
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(db_session: Session, coordinator) -> TestClient:
    """FastAPI TestClient с подменённой БД, API-ключом и стройкой 1."""
    _override(db_session, coordinator)
    with TestClient(
        fastapi_app,
        raise_server_exceptions=False,
        headers={"X-API-Key": "test-api-key", **SITE_HEADERS},
    ) as c:
        yield c
    fastapi_app.dependency_overrides.clear()
