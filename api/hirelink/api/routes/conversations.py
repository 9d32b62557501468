from fastapi import APIRouter, Depends, HTTPException, Query, status

from hirelink.api.deps import check_access, get_messaging_service, require_participant
from hirelink.schemas.conversations import ConversationOut, ConversationSummaryOut, OpenConversationRequest
from hirelink.schemas.messages import MessageOut
from hirelink.services.errors import (
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    StorageFailureError,
)

router = APIRouter()


@router.post("", response_model=ConversationOut)
async def open_conversation(
    payload: OpenConversationRequest,
    principal=Depends(require_participant),
    service=Depends(get_messaging_service),
) -> ConversationOut:
    participant_id = check_access(principal, scopes={"messages:write"})

    try:
        row = await service.open_conversation(participant_id=participant_id, counterpart_id=payload.counterpart_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except StorageFailureError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    return ConversationOut(**row)


@router.get("", response_model=list[ConversationSummaryOut])
async def list_conversations(
    principal=Depends(require_participant),
    service=Depends(get_messaging_service),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> list[ConversationSummaryOut]:
    participant_id = check_access(principal, scopes={"messages:read"})

    try:
        rows = await service.list_conversations(participant_id=participant_id, limit=limit, offset=offset)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return [ConversationSummaryOut(**row) for row in rows]


@router.get("/{conversation_id}/messages", response_model=list[MessageOut])
async def list_conversation_messages(
    conversation_id: int,
    principal=Depends(require_participant),
    service=Depends(get_messaging_service),
    after_message_id: int | None = Query(default=None, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
) -> list[MessageOut]:
    participant_id = check_access(principal, scopes={"messages:read"})

    try:
        rows = await service.list_messages(
            conversation_id=conversation_id,
            participant_id=participant_id,
            after_message_id=after_message_id,
            limit=limit,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return [MessageOut(**row) for row in rows]
