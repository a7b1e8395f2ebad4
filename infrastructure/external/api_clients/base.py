"""
外部 HTTP 服务客户端基类

- httpx.AsyncClient 惰性创建，可注入 transport（测试用 httpx.MockTransport）
- 瞬时失败（超时、网络错误、429/5xx）由 tenacity 指数退避重试
- 其余错误状态映射为 ExternalServiceError 子类
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


@dataclass
class ServiceResponse:
    status_code: int
    data: Any
    elapsed_ms: float
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def request_id(self) -> Optional[str]:
        return self.headers.get("x-request-id")


class ExternalServiceError(Exception):
    """外部服务调用失败（重试耗尽或不可重试的错误）"""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 response: Optional[ServiceResponse] = None):
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(message)

    def __str__(self):
        if self.status_code:
            return f"{self.message} (status {self.status_code})"
        return self.message


class ExternalAuthError(ExternalServiceError):
    """401/403：凭据无效，重试无意义"""


class TransientServiceError(ExternalServiceError):
    """可重试：429 或 5xx"""


def _error_message(response: ServiceResponse) -> str:
    if isinstance(response.data, dict):
        for key in ("message", "error", "detail"):
            if response.data.get(key):
                return str(response.data[key])
    return f"request failed with status {response.status_code}"


class BaseAPIClient:
    """子类只需调用 get/post；重试、错误映射与日志在这里统一处理"""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        auth_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._transport = transport
        # Content-Type 交给 httpx 按 json/files 自动设置
        self.headers = {"Accept": "application/json", "User-Agent": "DatingChat/1.0"}
        if auth_token:
            self.headers["Authorization"] = f"Bearer {auth_token}"
        self._client: Optional[httpx.AsyncClient] = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self.headers,
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _send_once(self, method: str, endpoint: str, **kwargs) -> ServiceResponse:
        started = time.perf_counter()
        raw = await self._http().request(method, "/" + endpoint.lstrip("/"), **kwargs)
        data = None
        if "application/json" in raw.headers.get("content-type", ""):
            try:
                data = raw.json()
            except ValueError:
                data = None
        response = ServiceResponse(
            status_code=raw.status_code,
            data=data,
            elapsed_ms=(time.perf_counter() - started) * 1000,
            headers=dict(raw.headers),
        )
        logger.debug("external_response method=%s endpoint=%s status=%s elapsed_ms=%.1f",
                     method, endpoint, response.status_code, response.elapsed_ms)

        if response.status_code in TRANSIENT_STATUS_CODES:
            raise TransientServiceError(_error_message(response), response.status_code, response)
        if response.status_code in (401, 403):
            raise ExternalAuthError(_error_message(response), response.status_code, response)
        if response.status_code >= 400:
            raise ExternalServiceError(_error_message(response), response.status_code, response)
        return response

    async def _request(self, method: str, endpoint: str, **kwargs) -> ServiceResponse:
        """发送请求并按需重试；失败统一抛出 ExternalServiceError"""
        retrying = AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.retry_delay, min=self.retry_delay, max=self.retry_delay * 8),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError, TransientServiceError)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._send_once(method, endpoint, **kwargs)
        except httpx.TimeoutException as exc:
            raise ExternalServiceError(f"request timed out after {self.timeout}s") from exc
        except httpx.NetworkError as exc:
            raise ExternalServiceError(f"network error: {exc}") from exc
        raise ExternalServiceError("request was not attempted")  # pragma: no cover

    async def get(self, endpoint: str, **kwargs) -> ServiceResponse:
        return await self._request("GET", endpoint, **kwargs)

    async def post(self, endpoint: str, **kwargs) -> ServiceResponse:
        return await self._request("POST", endpoint, **kwargs)
