from fastapi import APIRouter, Depends, HTTPException, Query, status

from hirelink.api.deps import check_access, get_hiring_service, require_participant
from hirelink.core.auth import HIRING_ROLES
from hirelink.schemas.hires import (
    HireAcceptRequest,
    HireDecisionOut,
    HireDeclineRequest,
    HireOfferCreate,
    HireOfferOut,
    HireOut,
    HireStatus,
    HireWithdrawRequest,
)
from hirelink.services.errors import (
    RepositoryConflictError,
    RepositoryError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    StorageFailureError,
)

router = APIRouter()


def _raise_for(exc: RepositoryError) -> None:
    if isinstance(exc, RepositoryUnavailableError):
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if isinstance(exc, StorageFailureError):
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    if isinstance(exc, RepositoryNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, RepositoryConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, RepositoryValidationError):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    raise exc


@router.post("", response_model=HireOfferOut, status_code=status.HTTP_201_CREATED)
async def make_hire_offer(
    payload: HireOfferCreate,
    principal=Depends(require_participant),
    service=Depends(get_hiring_service),
) -> HireOfferOut:
    employer_id = check_access(principal, scopes={"hires:write"}, roles=HIRING_ROLES)

    try:
        result = await service.make_offer(employer_id=employer_id, request=payload)
    except RepositoryError as exc:
        _raise_for(exc)

    return HireOfferOut(
        hire=result["hire"],
        conversation_id=result["conversation"]["conversation_id"],
        messages=result["messages"],
        replayed=result["replayed"],
    )


@router.post("/accept", response_model=HireDecisionOut)
async def accept_hire_offer(
    payload: HireAcceptRequest,
    principal=Depends(require_participant),
    service=Depends(get_hiring_service),
) -> HireDecisionOut:
    employee_id = check_access(principal, scopes={"hires:write"})

    try:
        result = await service.accept(employee_id=employee_id, employer_id=payload.employer_id)
    except RepositoryError as exc:
        _raise_for(exc)

    return HireDecisionOut(**result)


@router.post("/decline", response_model=HireDecisionOut)
async def decline_hire_offer(
    payload: HireDeclineRequest,
    principal=Depends(require_participant),
    service=Depends(get_hiring_service),
) -> HireDecisionOut:
    employee_id = check_access(principal, scopes={"hires:write"})

    try:
        result = await service.decline(employee_id=employee_id, employer_id=payload.employer_id, reason=payload.reason)
    except RepositoryError as exc:
        _raise_for(exc)

    return HireDecisionOut(**result)


@router.post("/withdraw", response_model=HireDecisionOut)
async def withdraw_hire_offer(
    payload: HireWithdrawRequest,
    principal=Depends(require_participant),
    service=Depends(get_hiring_service),
) -> HireDecisionOut:
    employer_id = check_access(principal, scopes={"hires:write"}, roles=HIRING_ROLES)

    try:
        result = await service.withdraw(employer_id=employer_id, employee_id=payload.employee_id, reason=payload.reason)
    except RepositoryError as exc:
        _raise_for(exc)

    return HireDecisionOut(**result)


@router.post("/{hire_id}/complete", response_model=HireDecisionOut)
async def complete_hire(
    hire_id: int,
    principal=Depends(require_participant),
    service=Depends(get_hiring_service),
) -> HireDecisionOut:
    employer_id = check_access(principal, scopes={"hires:write"}, roles=HIRING_ROLES)

    try:
        result = await service.end(hire_id=hire_id, employer_id=employer_id, status="completed")
    except RepositoryError as exc:
        _raise_for(exc)

    return HireDecisionOut(**result)


@router.post("/{hire_id}/terminate", response_model=HireDecisionOut)
async def terminate_hire(
    hire_id: int,
    principal=Depends(require_participant),
    service=Depends(get_hiring_service),
) -> HireDecisionOut:
    employer_id = check_access(principal, scopes={"hires:write"}, roles=HIRING_ROLES)

    try:
        result = await service.end(hire_id=hire_id, employer_id=employer_id, status="terminated")
    except RepositoryError as exc:
        _raise_for(exc)

    return HireDecisionOut(**result)


@router.get("", response_model=list[HireOut])
async def list_hires(
    principal=Depends(require_participant),
    service=Depends(get_hiring_service),
    status_filter: HireStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> list[HireOut]:
    participant_id = check_access(principal, scopes={"hires:write"})

    try:
        rows = await service.list_hires(participant_id=participant_id, status=status_filter, limit=limit, offset=offset)
    except RepositoryError as exc:
        _raise_for(exc)

    return [HireOut(**row) for row in rows]
