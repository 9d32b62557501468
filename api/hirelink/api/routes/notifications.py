from fastapi import APIRouter, Depends, HTTPException, Query, status

from hirelink.api.deps import check_access, require_participant
from hirelink.schemas.notifications import NotificationOut
from hirelink.services.errors import RepositoryNotFoundError, RepositoryUnavailableError
from hirelink.services.repository import get_repository

router = APIRouter()


@router.get("", response_model=list[NotificationOut])
async def list_notifications(
    principal=Depends(require_participant),
    repository=Depends(get_repository),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> list[NotificationOut]:
    participant_id = check_access(principal, scopes={"notifications:read"})

    try:
        rows = await repository.list_unread_notifications(user_id=participant_id, limit=limit, offset=offset)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return [NotificationOut(**row) for row in rows]


@router.post("/{notification_id}/read", response_model=NotificationOut)
async def mark_notification_read(
    notification_id: int,
    principal=Depends(require_participant),
    repository=Depends(get_repository),
) -> NotificationOut:
    participant_id = check_access(principal, scopes={"notifications:read"})

    try:
        row = await repository.mark_notification_read(notification_id=notification_id, user_id=participant_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return NotificationOut(**row)
