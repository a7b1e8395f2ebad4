"""
用户资料与匹配应用服务（用户目录协作方）
"""
from typing import Callable, List

from application.dto import MatchDTO, ProfileDTO, ProfileUpsertDTO
from core.logging_config import get_logger
from domain.common.exceptions import ProfileNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.profile.entity import Profile


logger = get_logger(__name__)


class ProfileApplicationService:

    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]):
        self._uow_factory = uow_factory

    async def upsert_profile(self, user_id: str, data: ProfileUpsertDTO) -> ProfileDTO:
        profile = Profile(
            user_id=user_id,
            display_name=data.display_name,
            location=data.location,
            interests=data.interests,
        )
        async with self._uow_factory() as uow:
            stored = await uow.profile_repository.upsert(profile)
        logger.info("profile_upserted", user_id=user_id, interests=len(stored.interests))
        return ProfileDTO.from_entity(stored)

    async def get_profile(self, user_id: str) -> ProfileDTO:
        async with self._uow_factory(readonly=True) as uow:
            profile = await uow.profile_repository.get(user_id)
        if profile is None:
            raise ProfileNotFoundException(user_id)
        return ProfileDTO.from_entity(profile)

    async def find_matches(self, user_id: str) -> List[MatchDTO]:
        """同城且至少一个共同兴趣；共同兴趣多者优先，其次按 user_id"""
        async with self._uow_factory(readonly=True) as uow:
            me = await uow.profile_repository.get(user_id)
            if me is None:
                raise ProfileNotFoundException(user_id)
            candidates = await uow.profile_repository.list_in_location(me.location, exclude_user_id=user_id)

        matches = [
            MatchDTO(profile=ProfileDTO.from_entity(other), shared_interests=me.shared_interests(other))
            for other in candidates
            if me.matches(other)
        ]
        matches.sort(key=lambda m: (-len(m.shared_interests), m.profile.user_id))
        logger.info("matches_computed", user_id=user_id, candidates=len(candidates), matches=len(matches))
        return matches
