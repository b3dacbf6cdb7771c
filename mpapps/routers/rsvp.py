from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import JSONResponse

from mpapps.auth.deps import CurrentUser, get_current_user
from mpapps.auth.permissions import resolve_rsvp_permissions
from mpapps.ministry_platform.provider import MinistryPlatformProvider, get_provider
from mpapps.schemas.rsvp import ConfirmationCardIn, ConfirmationCardUpdate, RsvpSubmission
from mpapps.services import rsvp as rsvp_service
from mpapps.services.app_permissions import require_app_access

router = APIRouter(prefix="/rsvp", tags=["rsvp"])

APP_KEY = "rsvp"


def require_rsvp_view(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not resolve_rsvp_permissions(user.roles).can_view:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
    return user


@router.get("/projects", dependencies=[Depends(require_rsvp_view)])
def list_projects(mp: MinistryPlatformProvider = Depends(get_provider)) -> list[dict]:
    return rsvp_service.list_active_projects(mp)


@router.get("/projects/{project_id_or_slug}", dependencies=[Depends(require_rsvp_view)])
def get_project(project_id_or_slug: str, mp: MinistryPlatformProvider = Depends(get_provider)) -> dict:
    project = rsvp_service.get_project(mp, project_id_or_slug)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return project


@router.get("/projects/{project_id}/events", dependencies=[Depends(require_rsvp_view)])
def list_project_events(project_id: int, mp: MinistryPlatformProvider = Depends(get_provider)) -> list[dict]:
    return rsvp_service.list_project_events(mp, project_id)


@router.get("/project-data")
def project_rsvp_data(
    project_rsvp_id: int = Query(..., alias="projectRsvpId"),
    campus_slug: str | None = Query(default=None, alias="campus"),
    congregation_id: int | None = Query(default=None, alias="congregationId"),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    try:
        return rsvp_service.get_project_rsvp_data(
            mp, project_rsvp_id, campus_slug=campus_slug, congregation_id=congregation_id
        )
    except rsvp_service.RsvpDataNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="RSVP project not found") from exc


@router.post("/submit", status_code=status.HTTP_201_CREATED)
def submit_rsvp(payload: RsvpSubmission, mp: MinistryPlatformProvider = Depends(get_provider)):
    try:
        return rsvp_service.submit_rsvp(mp, payload.to_submission())
    except rsvp_service.RsvpSubmissionError as exc:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": exc.message, "details": exc.details},
        )


@router.get("/amenities")
def list_amenities(mp: MinistryPlatformProvider = Depends(get_provider)) -> list[dict]:
    return rsvp_service.list_amenities(mp)


@router.get("/projects/{project_id}/files", dependencies=[Depends(require_app_access(APP_KEY))])
def list_project_files(project_id: int, mp: MinistryPlatformProvider = Depends(get_provider)) -> list[dict]:
    return rsvp_service.list_project_files(mp, project_id)


@router.post("/projects/{project_id}/files", dependencies=[Depends(require_app_access(APP_KEY, edit=True))])
def upload_project_image(
    project_id: int,
    file: UploadFile = File(...),
    file_name: str = Form(..., alias="fileName"),
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> list[dict]:
    try:
        content = file.file.read()
    finally:
        file.file.close()
    try:
        return rsvp_service.replace_project_image(
            mp,
            project_id,
            file_name,
            content,
            file.content_type or "image/jpeg",
            user.user_id,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.delete("/projects/{project_id}/files", dependencies=[Depends(require_app_access(APP_KEY, delete=True))])
def delete_project_file(
    project_id: int,
    file_id: int = Query(..., alias="fileId"),
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    rsvp_service.delete_project_file(mp, file_id, user.user_id)
    return {"success": True}


@router.post(
    "/confirmation-cards",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_app_access(APP_KEY, edit=True))],
)
def create_confirmation_card(
    payload: ConfirmationCardIn,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    card_id = rsvp_service.create_confirmation_card(mp, payload.project_id, payload.congregation_id, user.user_id)
    return {"success": True, "cardId": card_id}


@router.patch("/confirmation-cards/{card_id}", dependencies=[Depends(require_app_access(APP_KEY, edit=True))])
def update_confirmation_card(
    card_id: int,
    payload: ConfirmationCardUpdate,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    configuration = payload.model_dump(exclude_none=True)
    if not configuration:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No configuration provided")
    return {
        "success": True,
        "configuration": rsvp_service.update_confirmation_card(mp, card_id, configuration, user.user_id),
    }
