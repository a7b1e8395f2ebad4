"""
用户资料仓储实现
"""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.profile.entity import Profile
from domain.profile.repository import ProfileRepository
from infrastructure.models.profile import ProfileModel
from infrastructure.repositories.errors import storage_errors


class SQLAlchemyProfileRepository(ProfileRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: ProfileModel) -> Profile:
        return Profile(
            user_id=model.user_id,
            display_name=model.display_name,
            location=model.location,
            interests=list(model.interests or []),
        )

    async def get(self, user_id: str) -> Optional[Profile]:
        with storage_errors("get_profile"):
            db_profile = await self.session.get(ProfileModel, user_id)
        return self._to_entity(db_profile) if db_profile else None

    async def upsert(self, profile: Profile) -> Profile:
        with storage_errors("upsert_profile"):
            db_profile = await self.session.get(ProfileModel, profile.user_id)
            if db_profile is None:
                db_profile = ProfileModel(user_id=profile.user_id)
                self.session.add(db_profile)
            db_profile.display_name = profile.display_name
            db_profile.location = profile.location
            db_profile.location_key = profile.location.casefold()
            db_profile.interests = list(profile.interests)
            await self.session.flush()
        return self._to_entity(db_profile)

    async def list_in_location(self, location: str, exclude_user_id: Optional[str] = None) -> List[Profile]:
        query = select(ProfileModel).where(ProfileModel.location_key == location.strip().casefold())
        if exclude_user_id is not None:
            query = query.where(ProfileModel.user_id != exclude_user_id)
        query = query.order_by(ProfileModel.user_id.asc())
        with storage_errors("list_profiles"):
            result = await self.session.execute(query)
            rows = result.scalars().all()
        return [self._to_entity(row) for row in rows]
