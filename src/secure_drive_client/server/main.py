import logging
from typing import Annotated, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, FastAPI, File, Request, UploadFile, status
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from secure_drive_client import DriveClient
from secure_drive_client.exceptions import (
    AccessDeniedError,
    ConflictError,
    DecryptionFailed,
    DriveClientError,
    NotFoundError,
    UnsupportedKindError,
    UploadFailed,
)
from secure_drive_client.models import (
    AudioMetadataIn,
    AudioMetadataInDB,
    FileListItem,
    UserInDB,
    VideoMetadataInDB,
)
from .auth import get_current_active_user, get_drive_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["Files"])

CurrentUser = Annotated[UserInDB, Depends(get_current_active_user)]
Drive = Annotated[DriveClient, Depends(get_drive_client)]


class ContentOut(BaseModel):
    id: UUID
    content: str


class ContentIn(BaseModel):
    content: str
    expected_version: Optional[int] = None


class ContentSaved(BaseModel):
    id: UUID
    version: int


class ShareOut(BaseModel):
    token: str


class JoinIn(BaseModel):
    token: str


# первое совпадение по isinstance; GrantExistsError попадает в 403
_STATUS_BY_ERROR = (
    (AccessDeniedError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (UnsupportedKindError, status.HTTP_415_UNSUPPORTED_MEDIA_TYPE),
    (DecryptionFailed, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (UploadFailed, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


async def drive_error_handler(request: Request, exc: DriveClientError) -> JSONResponse:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            break
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    if code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        # детали расшифровки и хранилища наружу не отдаём
        detail = "An internal error occurred."
    else:
        detail = str(exc)
    return JSONResponse(status_code=code, content={"detail": detail})


@router.post("/upload", response_model=FileListItem)
async def upload_file(current_user: CurrentUser, drive: Drive, file: UploadFile = File(...)):
    """
    Загружает файл от имени текущего пользователя.
    text/plain шифруется, аудио/видео получают метаданные.
    """
    data = await file.read()
    stored = await drive.handle_upload(
        data,
        file.content_type or "application/octet-stream",
        file.filename or "untitled",
        current_user.id,
    )
    return FileListItem.model_validate(stored, from_attributes=True)


@router.get("", response_model=List[FileListItem])
async def list_files(current_user: CurrentUser, drive: Drive):
    return await drive.list_files(current_user.id)


@router.get("/{file_id}/content", response_model=ContentOut)
async def read_content(file_id: UUID, current_user: CurrentUser, drive: Drive):
    content = await drive.handle_content_read(file_id, user_id=current_user.id)
    return ContentOut(id=file_id, content=content)


@router.put("/{file_id}/content", response_model=ContentSaved)
async def write_content(file_id: UUID, body: ContentIn, current_user: CurrentUser, drive: Drive):
    updated = await drive.handle_content_write(
        file_id, body.content, user_id=current_user.id, expected_version=body.expected_version
    )
    return ContentSaved(id=updated.id, version=updated.version)


@router.get("/{file_id}/download")
async def download_file(file_id: UUID, current_user: CurrentUser, drive: Drive):
    result = await drive.handle_download(file_id, user_id=current_user.id)
    return Response(
        content=result.content,
        media_type=result.content_type,
        headers={"Content-Disposition": f'attachment; filename="{result.file_name}"'},
    )


@router.delete("/{file_id}")
async def delete_file(file_id: UUID, current_user: CurrentUser, drive: Drive):
    outcome = await drive.delete_file(file_id, current_user.id)
    return {"result": outcome}


@router.post("/{file_id}/share", response_model=ShareOut)
async def share_file(file_id: UUID, current_user: CurrentUser, drive: Drive):
    return ShareOut(token=await drive.share_file(file_id, current_user.id))


@router.post("/join")
async def join_by_token(body: JoinIn, current_user: CurrentUser, drive: Drive):
    file_id = await drive.join_by_token(body.token, current_user.id)
    return {"file_id": str(file_id)}


@router.put("/{file_id}/music-metadata", response_model=AudioMetadataInDB)
async def save_music_metadata(file_id: UUID, meta: AudioMetadataIn, current_user: CurrentUser, drive: Drive):
    return await drive.save_audio_metadata(file_id, current_user.id, meta)


@router.get("/{file_id}/music-metadata", response_model=Optional[AudioMetadataInDB])
async def get_music_metadata(file_id: UUID, current_user: CurrentUser, drive: Drive):
    await drive.handle_access_check(file_id, current_user.id)
    return await drive.get_audio_metadata(file_id)


@router.get("/{file_id}/video-metadata", response_model=Optional[VideoMetadataInDB])
async def get_video_metadata(file_id: UUID, current_user: CurrentUser, drive: Drive):
    await drive.handle_access_check(file_id, current_user.id)
    return await drive.get_video_metadata(file_id)


def create_app() -> FastAPI:
    app = FastAPI(title="secure-drive")
    app.include_router(router)
    app.add_exception_handler(DriveClientError, drive_error_handler)
    return app
