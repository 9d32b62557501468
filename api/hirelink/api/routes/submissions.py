from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from hirelink.api.deps import check_access, get_messaging_service, require_participant
from hirelink.core.auth import AGENCY_CONTACT_ROLES, APPLICANT_ROLES
from hirelink.schemas.messages import ApplicationRequest, AttachmentOut, ManpowerRequestCreate, SentMessagesOut
from hirelink.services.blob_store import AttachmentTooLargeError, BlobStoreUnavailableError, get_blob_store
from hirelink.services.errors import (
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    StorageFailureError,
)

router = APIRouter()


@router.post("/applications", response_model=SentMessagesOut, status_code=status.HTTP_201_CREATED)
async def submit_application(
    payload: ApplicationRequest,
    principal=Depends(require_participant),
    service=Depends(get_messaging_service),
) -> SentMessagesOut:
    participant_id = check_access(principal, scopes={"messages:write"}, roles=APPLICANT_ROLES)

    try:
        result = await service.submit_application(sender_id=participant_id, request=payload)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except StorageFailureError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    return SentMessagesOut(**result)


@router.post("/manpower-requests", response_model=SentMessagesOut, status_code=status.HTTP_201_CREATED)
async def submit_manpower_request(
    payload: ManpowerRequestCreate,
    principal=Depends(require_participant),
    service=Depends(get_messaging_service),
) -> SentMessagesOut:
    participant_id = check_access(principal, scopes={"messages:write"}, roles=AGENCY_CONTACT_ROLES)

    try:
        result = await service.submit_manpower_request(sender_id=participant_id, request=payload)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except StorageFailureError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    return SentMessagesOut(**result)


@router.post("/attachments", response_model=AttachmentOut, status_code=status.HTTP_201_CREATED)
async def upload_attachment(
    file: UploadFile = File(...),
    principal=Depends(require_participant),
    blob_store=Depends(get_blob_store),
) -> AttachmentOut:
    participant_id = check_access(principal, scopes={"messages:write"})

    content = await file.read()
    try:
        stored = await blob_store.store(
            owner_id=participant_id,
            file_name=file.filename,
            content=content,
            content_type=file.content_type,
        )
    except AttachmentTooLargeError as exc:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except BlobStoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    finally:
        await file.close()

    return AttachmentOut(url=stored.url, file_name=stored.file_name, content_type=stored.content_type, size=stored.size)
