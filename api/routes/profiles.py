"""
用户资料与匹配路由
"""
from typing import List

from fastapi import APIRouter, Depends

from api.dependencies import get_profile_service
from application.dto import MatchDTO, ProfileDTO, ProfileUpsertDTO
from application.services.profile_service import ProfileApplicationService
from core.response import Response as ApiResponse, success_response

router = APIRouter(tags=["Matching"])


@router.put("/profiles/{user_id}", summary="创建或更新资料", response_model=ApiResponse[ProfileDTO])
async def upsert_profile(
    user_id: str,
    payload: ProfileUpsertDTO,
    service: ProfileApplicationService = Depends(get_profile_service),
):
    profile = await service.upsert_profile(user_id, payload)
    return success_response(data=profile, message="Profile saved")


@router.get("/profiles/{user_id}", summary="获取资料", response_model=ApiResponse[ProfileDTO])
async def get_profile(
    user_id: str,
    service: ProfileApplicationService = Depends(get_profile_service),
):
    return success_response(data=await service.get_profile(user_id))


@router.get("/match/{user_id}", summary="同城且兴趣相投的用户", response_model=ApiResponse[List[MatchDTO]])
async def match(
    user_id: str,
    service: ProfileApplicationService = Depends(get_profile_service),
):
    """
    返回与 user_id 同城、且至少有一个共同兴趣的其他用户

    - 共同兴趣越多越靠前
    - 请求方没有资料时返回 404
    """
    return success_response(data=await service.find_matches(user_id))
