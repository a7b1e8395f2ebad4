"""
用户资料仓储接口
"""
from abc import ABC, abstractmethod
from typing import List, Optional
from .entity import Profile


class ProfileRepository(ABC):

    @abstractmethod
    async def get(self, user_id: str) -> Optional[Profile]:
        pass

    @abstractmethod
    async def upsert(self, profile: Profile) -> Profile:
        """存在则更新，否则创建"""
        pass

    @abstractmethod
    async def list_in_location(self, location: str, exclude_user_id: Optional[str] = None) -> List[Profile]:
        """按地点（忽略大小写）筛选候选资料"""
        pass
