"""视频上传路由：由应用服务器中转到外部媒体服务。"""
from fastapi import APIRouter, Depends, File, UploadFile

from api.dependencies import get_media_service
from application.dto import MediaUploadDTO
from application.services.media_service import MediaUploadService
from core.response import Response as ApiResponse, success_response


router = APIRouter(
    prefix="/media",
    tags=["Media"],
)


@router.post(
    "/videos",
    summary="上传视频，返回公开URL",
    response_model=ApiResponse[MediaUploadDTO],
)
async def upload_video(
    file: UploadFile = File(..., description="要上传的视频文件"),
    service: MediaUploadService = Depends(get_media_service),
):
    data = await service.read_upload(file, declared_size=file.size)
    result = await service.upload_video(
        data=data,
        filename=file.filename or "upload.mp4",
        content_type=file.content_type,
    )
    return success_response(data=result, message="Video uploaded")
