"""
配置文件 - 项目配置管理
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator
from typing import Optional


class DatabaseSettings(BaseModel):
    # 普通驱动名（sqlite/postgresql/mysql）会在 infrastructure.database 中升级为异步驱动
    url: str = "sqlite+aiosqlite:///./chat.db"
    echo: bool = False


class MediaHostSettings(BaseModel):
    """外部视频托管服务（对象存储/媒体服务）配置"""
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    upload_path: str = "/videos"
    timeout: float = 30.0
    max_retries: int = 2
    retry_delay: float = 0.5
    max_upload_bytes: int = 100 * 1024 * 1024  # 100MB
    allowed_types: Optional[list[str]] = None  # None 表示允许所有 video/*


class Settings(BaseSettings):
    """项目配置"""

    # 基础配置
    PROJECT_NAME: str = Field(default="Dating Chat Backend")
    VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=True)
    ENVIRONMENT: str = Field(default="development")

    # 分组配置：数据库与媒体服务采用嵌套模型
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    media: MediaHostSettings = Field(default_factory=MediaHostSettings)

    # CORS配置
    CORS_ORIGINS: list = Field(default=["http://localhost:3000", "http://localhost:8000"])

    # 分页配置（支持环境变量覆盖）
    DEFAULT_PAGE_SIZE: int = Field(default=50)
    MAX_PAGE_SIZE: int = Field(default=200)

    # 消息存储：单次操作超时（秒），超时视为 StorageError
    MESSAGE_STORE_TIMEOUT_S: float = Field(default=5.0)

    # 日志/请求体记录配置
    LOG_REQUEST_BODY_ENABLE_BY_DEFAULT: bool = Field(default=True)
    LOG_REQUEST_BODY_MAX_BYTES: int = Field(default=2048)
    LOG_REQUEST_BODY_ALLOW_MULTIPART: bool = Field(default=False)

    # Realtime/WebSocket 配置
    REALTIME_WS_SEND_QUEUE_MAX: int = Field(default=100)
    REALTIME_WS_SEND_OVERFLOW_POLICY: str = Field(
        default="drop_oldest",
        description="队列溢出策略: drop_oldest | drop_new | disconnect"
    )
    REALTIME_WS_IDLE_PING_INTERVAL_S: float = Field(default=30.0)
    REALTIME_WS_PONG_GRACE_S: float = Field(default=10.0)
    REALTIME_WS_MISSED_PING_LIMIT: int = Field(default=2)

    # pydantic-settings v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """允许 JSON 字符串或逗号分隔字符串两种格式。"""
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("[") and s.endswith("]"):
                import json
                try:
                    arr = json.loads(s)
                    if isinstance(arr, list):
                        return arr
                except ValueError:
                    pass
            if "," in s:
                return [item.strip() for item in s.split(",") if item.strip()]
            return [s]
        return v

    @field_validator("REALTIME_WS_SEND_OVERFLOW_POLICY", mode="after")
    @classmethod
    def _normalize_overflow_policy(cls, v: str) -> str:
        return (v or "drop_oldest").strip().lower()


settings = Settings()
