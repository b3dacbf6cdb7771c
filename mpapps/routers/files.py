from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile, status

from mpapps.auth.deps import CurrentUser, get_user_provider, require_roles
from mpapps.auth.permissions import FILE_MANAGER_ROLES
from mpapps.ministry_platform.provider import MinistryPlatformProvider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["files"])

can_manage_files = require_roles(*FILE_MANAGER_ROLES)


@router.put("/{file_id}")
def update_file(
    file_id: int,
    file_name: str | None = Form(default=None),
    description: str | None = Form(default=None),
    is_default: bool | None = Form(default=None),
    file: UploadFile | None = File(default=None),
    user: CurrentUser = Depends(can_manage_files),
    mp: MinistryPlatformProvider = Depends(get_user_provider),
) -> dict:
    upload = None
    if file is not None:
        try:
            upload = (file.filename or "upload", file.file.read(), file.content_type or "application/octet-stream")
        finally:
            file.file.close()
    if upload is None and file_name is None and description is None and is_default is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update")
    updated = mp.files.update_file(
        file_id,
        upload=upload,
        file_name=file_name,
        description=description,
        is_default=is_default,
        user_id=user.user_id,
    )
    logger.info("file_updated", extra={"file_id": file_id, "replaced": upload is not None, "user_id": user.user_id})
    return updated or {}


@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_file(
    file_id: int,
    user: CurrentUser = Depends(can_manage_files),
    mp: MinistryPlatformProvider = Depends(get_user_provider),
) -> Response:
    mp.files.delete_file(file_id, user_id=user.user_id)
    logger.info("file_deleted", extra={"file_id": file_id, "user_id": user.user_id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
