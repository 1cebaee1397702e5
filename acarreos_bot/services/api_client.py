"""
HTTP клиент для взаимодействия с API бэкенда.
Бот работает только через FastAPI, в БД напрямую не ходит.
"""
import httpx
import logging
from typing import Optional
from datetime import datetime
from acarreos_bot.config import bot_config
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

logger = logging.getLogger(__name__)

# Повторяем только сетевые сбои; ответы API с ошибкой не повторяем
_network_retry = retry(
    retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, max=4),
    reraise=True,
)


class APIError(Exception):
    """Ошибка API с сообщением для пользователя."""

    def __init__(self, status_code: int, detail: str, error_code: Optional[str] = None):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail
        self.error_code = error_code


class APIClient:
    """Клиент для работы с API бэкенда."""

    _instance = None
    _client: Optional[httpx.AsyncClient] = None

    def __new__(cls, base_url: str = None):
        """Singleton pattern для предотвращения создания множественных соединений."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, base_url: str = None):
        if not hasattr(self, '_initialized'):
            self.base_url = base_url or bot_config.get_api_base_url()
            if self.base_url and not self.base_url.startswith(('http://', 'https://')):
                self.base_url = 'http://' + self.base_url
            logger.info(f"API client initialized with base URL: {self.base_url}")
            self._initialized = True

    async def _get_client(self) -> httpx.AsyncClient:
        """Получает или создаёт HTTP клиент."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=30.0,
                follow_redirects=True,
                headers={"X-API-Key": bot_config.API_KEY},
            )
            logger.debug("Created new HTTP client")
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            logger.debug("HTTP client closed")
            self._client = None

    @staticmethod
    def _headers(telegram_id: Optional[int]) -> dict:
        headers = {"X-Site-Id": str(bot_config.SITE_ID)}
        if telegram_id is not None:
            headers["X-User-Id"] = str(telegram_id)
        return headers

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        try:
            body = response.json()
        except ValueError:
            body = {}
        detail = body.get("detail") if isinstance(body, dict) else None
        if not isinstance(detail, str):
            detail = response.text or f"HTTP {response.status_code}"
        raise APIError(response.status_code, detail, body.get("error_code") if isinstance(body, dict) else None)

    @_network_retry
    async def _send(
        self,
        method: str,
        endpoint: str,
        telegram_id: Optional[int] = None,
        params: Optional[dict] = None,
        json_data: Optional[dict] = None,
    ) -> httpx.Response:
        endpoint = endpoint.rstrip('/')
        client = await self._get_client()
        url = f"/api/v1{endpoint}"
        logger.debug(f"Making {method} request to {url}")
        try:
            response = await client.request(
                method=method,
                url=url,
                params=params,
                json=json_data,
                headers=self._headers(telegram_id),
            )
        except (httpx.ConnectError, httpx.TimeoutException) as e:
            logger.warning(f"Network error on {endpoint}: {e}")
            raise
        if not response.is_success:
            logger.error(f"HTTP error {response.status_code} on {endpoint}: {response.text}")
        self._raise_for_status(response)
        return response

    async def _request(self, method: str, endpoint: str, **kwargs) -> dict:
        response = await self._send(method, endpoint, **kwargs)
        return response.json()

    # ===== Vouchers =====
    async def get_voucher_by_folio(self, folio: str, telegram_id: int = None) -> dict:
        return await self._request("GET", f"/vouchers/folio/{folio}", telegram_id=telegram_id)

    async def get_voucher(self, voucher_id: int, telegram_id: int = None) -> dict:
        return await self._request("GET", f"/vouchers/{voucher_id}", telegram_id=telegram_id)

    async def issue_document(
        self,
        voucher_id: int,
        copy_color: str = "blanco",
        closure: Optional[dict] = None,
        telegram_id: int = None,
    ) -> tuple[bytes, str]:
        """
        Получить PDF копии. Возвращает (байты, имя файла).
        Если передано закрытие аренды, бэкенд сначала записывает его.
        """
        payload = {"copy_color": copy_color, "delivery": "download"}
        if closure is not None:
            payload["closure"] = closure
        response = await self._send(
            "POST",
            f"/vouchers/{voucher_id}/documents",
            telegram_id=telegram_id,
            json_data=payload,
        )
        return response.content, self._filename(response, voucher_id, copy_color)

    @staticmethod
    def _filename(response: httpx.Response, voucher_id: int, copy_color: str) -> str:
        disposition = response.headers.get("content-disposition", "")
        if 'filename="' in disposition:
            return disposition.split('filename="', 1)[1].rstrip('"')
        return f"vale_{voucher_id}_{copy_color}.pdf"

    @staticmethod
    def closure_by_hour(end_time: datetime, trips: int) -> dict:
        return {"close_by_day": False, "end_time": end_time.isoformat(), "trips": trips}

    @staticmethod
    def closure_by_day(trips: Optional[int] = None) -> dict:
        return {"close_by_day": True, "trips": trips}


# Глобальный экземпляр клиента
_api_client: Optional[APIClient] = None


def get_api_client() -> APIClient:
    """Получает глобальный экземпляр API клиента."""
    global _api_client
    if _api_client is None:
        _api_client = APIClient()
    return _api_client


async def close_api_client():
    """Закрывает глобальный API клиент."""
    global _api_client
    if _api_client:
        await _api_client.close()
        _api_client = None
