"""
Безопасность, аутентификация и контекст сессии.
"""
import logging
from dataclasses import dataclass

from fastapi import Header, Security, HTTPException, status
from fastapi.security import APIKeyHeader

from acarreos.core.config import settings

logger = logging.getLogger(__name__)

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(api_key: str | None = Security(api_key_header)) -> str:
    if not api_key or api_key != settings.API_KEY:
        logger.warning("Invalid API key attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
    return api_key


@dataclass(frozen=True)
class SessionContext:
    """
    Контекст текущего пользователя.
    Передаётся явно в сервисы вместо глобального профиля.
    """
    site_id: int
    user_id: int | None = None


async def get_session_context(
    x_site_id: int | None = Header(default=None),
    x_user_id: int | None = Header(default=None),
) -> SessionContext:
    """Собирает контекст из заголовков X-Site-Id / X-User-Id."""
    if x_site_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Falta el encabezado X-Site-Id",
        )
    return SessionContext(site_id=x_site_id, user_id=x_user_id)
