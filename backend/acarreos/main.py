"""
Главный файл FastAPI приложения.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from acarreos.core.config import settings
from acarreos.core.database import get_db
from acarreos.core.exceptions import AppException
from acarreos.api import api_router
from acarreos.api.telegram import router as telegram_router, shutdown_bot, startup_bot

# Настройка логирования
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup")
    await startup_bot()
    yield
    await shutdown_bot()
    logger.info("Application shutdown")


app = FastAPI(
    title=settings.APP_TITLE,
    description="API para la emisión de vales de material y renta de maquinaria en obra",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(AppException)
async def app_exception_handler(request, exc: AppException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error_code": exc.error_code},
    )


# CORS middleware: разрешённые домены из переменной окружения
origins = [o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Voucher-State"],
)


@app.get("/health")
def health(db: Session = Depends(get_db)):
    """Health check endpoint with database verification."""
    try:
        db.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected"}
    except SQLAlchemyError as e:
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": str(e)},
        )


# Webhook без префикса /api/v1
app.include_router(telegram_router, prefix="/webhook")
app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
