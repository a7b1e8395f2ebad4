"""
数据库配置和连接管理
"""
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker
from sqlalchemy.engine import make_url
from typing import Optional, Tuple

from core.config import settings
from infrastructure.models import Base


def _build_async_url(database_url: str) -> str:
    """确保数据库URL使用异步驱动"""
    url = make_url(database_url)
    drivername = url.drivername

    if "+" in drivername:
        return database_url

    driver_map = {
        "postgresql": "postgresql+asyncpg",
        "postgres": "postgresql+asyncpg",
        "sqlite": "sqlite+aiosqlite",
    }

    if drivername not in driver_map:
        raise ValueError(f"不支持的数据库驱动: {drivername}. 请使用 async 驱动或更新 DATABASE__URL")

    return url.set(drivername=driver_map[drivername]).render_as_string(hide_password=False)


def build_engine(database_url: str, *, echo: bool = False) -> Tuple[AsyncEngine, async_sessionmaker]:
    """创建异步引擎与会话工厂（测试可传入独立的数据库URL）"""
    new_engine = create_async_engine(_build_async_url(database_url), echo=echo, future=True)
    factory = async_sessionmaker(bind=new_engine, expire_on_commit=False)
    return new_engine, factory


engine, AsyncSessionLocal = build_engine(settings.database.url, echo=settings.database.echo)


async def create_tables(bind: Optional[AsyncEngine] = None):
    """
    创建所有表

    根据models中定义的所有模型创建对应的数据库表
    """
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

