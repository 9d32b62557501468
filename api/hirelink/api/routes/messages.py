from fastapi import APIRouter, Depends, HTTPException, status

from hirelink.api.deps import check_access, get_messaging_service, require_participant
from hirelink.schemas.messages import MarkSeenOut, MarkSeenRequest, SendMessageRequest, SentMessagesOut
from hirelink.services.errors import (
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    StorageFailureError,
)

router = APIRouter()


@router.post("", response_model=SentMessagesOut, status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: SendMessageRequest,
    principal=Depends(require_participant),
    service=Depends(get_messaging_service),
) -> SentMessagesOut:
    participant_id = check_access(principal, scopes={"messages:write"})

    try:
        result = await service.send_message(
            sender_id=participant_id,
            receiver_id=payload.receiver_id,
            payload=payload.payload,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except StorageFailureError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    return SentMessagesOut(**result)


@router.post("/seen", response_model=MarkSeenOut)
async def mark_messages_seen(
    payload: MarkSeenRequest,
    principal=Depends(require_participant),
    service=Depends(get_messaging_service),
) -> MarkSeenOut:
    participant_id = check_access(principal, scopes={"messages:read"})

    try:
        result = await service.mark_seen(viewer_id=participant_id, message_ids=payload.message_ids)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except StorageFailureError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    return MarkSeenOut(**result)
