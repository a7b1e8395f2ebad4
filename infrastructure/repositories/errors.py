"""将持久化层异常统一翻译为领域层 StorageError"""
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError

from core.logging_config import get_logger
from domain.common.exceptions import MessageStorageException


logger = get_logger(__name__)


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """包裹一次数据库访问；数据库不可达/写入失败时抛出 MessageStorageException"""
    try:
        yield
    except MessageStorageException:
        raise
    except (SQLAlchemyError, OSError) as exc:
        logger.error("storage_operation_failed", operation=operation, error=str(exc))
        raise MessageStorageException(operation, reason=type(exc).__name__) from exc
