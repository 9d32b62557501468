from fastapi import APIRouter, Depends, HTTPException, Query, status

from hirelink.api.deps import check_access, get_hiring_service
from hirelink.core.config import Settings, get_settings
from hirelink.core.security import get_human_principal, get_machine_principal
from hirelink.schemas.hires import EmploymentOut, EmploymentReconcileOut
from hirelink.services.errors import RepositoryNotFoundError, RepositoryUnavailableError, StorageFailureError

router = APIRouter()
maintenance_router = APIRouter()


@router.get("/{user_id}", response_model=EmploymentOut)
async def get_employment(
    user_id: int,
    principal=Depends(get_human_principal),
    service=Depends(get_hiring_service),
) -> EmploymentOut:
    check_access(principal, scopes={"employment:read"})

    try:
        row = await service.get_employment(user_id=user_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except StorageFailureError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return EmploymentOut(**row)


@maintenance_router.post("/employment/reconcile", response_model=EmploymentReconcileOut)
async def reconcile_employment(
    principal=Depends(get_machine_principal),
    service=Depends(get_hiring_service),
    limit: int = Query(default=100, ge=1),
    settings: Settings = Depends(get_settings),
) -> EmploymentReconcileOut:
    check_access(principal, scopes={"maintenance:write"})

    try:
        result = await service.reconcile_employment(limit=min(limit, settings.employment_reconcile_max_batch))
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except StorageFailureError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    return EmploymentReconcileOut(**result)
