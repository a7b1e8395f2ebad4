"""
请求/响应日志中间件
"""
import json
import time
from typing import Any, Optional
from urllib.parse import parse_qs

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from core.config import settings
from core.logging_config import get_logger


logger = get_logger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    记录每个 HTTP 请求的开始、结束与耗时

    请求体默认只在 DEBUG 下记录，可用 X-Log-Body 请求头临时开关；
    消息正文与凭据字段会被脱敏。
    """

    SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}
    SENSITIVE_FIELDS = {"api_key", "token", "secret", "password", "text"}

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.enable_body_log_default: bool = settings.LOG_REQUEST_BODY_ENABLE_BY_DEFAULT
        self.max_body_log_bytes: int = settings.LOG_REQUEST_BODY_MAX_BYTES
        self.allow_multipart_body_log: bool = settings.LOG_REQUEST_BODY_ALLOW_MULTIPART

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        start = time.perf_counter()
        info = await self._request_info(request)
        logger.info("request_started", **info)

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                duration=time.perf_counter() - start,
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
                **info,
            )
            raise

        duration = time.perf_counter() - start
        self._log_response(response, duration, info)
        response.headers["X-Process-Time"] = f"{duration:.3f}"
        return response

    async def _request_info(self, request: Request) -> dict:
        info: dict[str, Any] = {"query_params": dict(request.query_params)}
        if request.method in ("POST", "PUT", "PATCH") and self._should_log_body(request):
            body = await self._body_snippet(request)
            if body is not None:
                info["body"] = body
            else:
                info["has_body"] = True
        user_agent = request.headers.get("User-Agent")
        if user_agent:
            info["user_agent"] = user_agent
        return info

    def _should_log_body(self, request: Request) -> bool:
        header = (request.headers.get("X-Log-Body") or "").lower()
        if header in {"true", "1", "yes"}:
            return True
        if header in {"false", "0", "no"}:
            return False
        return bool(self.enable_body_log_default and settings.DEBUG)

    async def _body_snippet(self, request: Request) -> Optional[Any]:
        content_type = request.headers.get("content-type", "").lower()
        if "multipart/form-data" in content_type:
            # 不读取上传文件本身
            return {"multipart": True} if self.allow_multipart_body_log else None

        body = await request.body()
        if not body:
            return None
        text = body[: self.max_body_log_bytes].decode("utf-8", errors="ignore")
        if "application/json" in content_type:
            try:
                return self._sanitize(json.loads(text))
            except ValueError:
                return text
        if "application/x-www-form-urlencoded" in content_type:
            form = {k: v if len(v) > 1 else v[0] for k, v in parse_qs(text).items()}
            return self._sanitize(form)
        return text

    def _sanitize(self, data: Any) -> Any:
        if isinstance(data, dict):
            return {
                k: "***" if str(k).lower() in self.SENSITIVE_FIELDS else self._sanitize(v)
                for k, v in data.items()
            }
        if isinstance(data, list):
            return [self._sanitize(v) for v in data]
        return data

    def _log_response(self, response: Response, duration: float, info: dict) -> None:
        status_code = response.status_code
        if status_code < 400:
            logger.info("request_completed", status_code=status_code, duration=duration, **info)
        elif status_code < 500:
            logger.warning("request_client_error", status_code=status_code, duration=duration, **info)
        else:
            logger.error("request_server_error", status_code=status_code, duration=duration, **info)
