from fastapi import Depends, HTTPException, status

from hirelink.core.auth import Principal
from hirelink.core.config import Settings, get_settings
from hirelink.core.security import get_human_principal
from hirelink.services.fanout import FanOut, SessionRegistry, get_session_registry
from hirelink.services.hiring import HiringService
from hirelink.services.mailer import Mailer, get_mailer
from hirelink.services.messaging import MessagingService
from hirelink.services.repository import get_repository


def get_fanout(
    repository=Depends(get_repository),
    registry: SessionRegistry = Depends(get_session_registry),
) -> FanOut:
    return FanOut(repository, registry)


def get_messaging_service(
    repository=Depends(get_repository),
    fanout: FanOut = Depends(get_fanout),
) -> MessagingService:
    return MessagingService(repository, fanout)


def get_hiring_service(
    repository=Depends(get_repository),
    fanout: FanOut = Depends(get_fanout),
    mailer: Mailer = Depends(get_mailer),
    settings: Settings = Depends(get_settings),
) -> HiringService:
    return HiringService(repository, fanout, mailer, client_base_url=settings.client_base_url)


def require_participant(
    principal: Principal = Depends(get_human_principal),
) -> Principal:
    """Human caller linked to a marketplace participant."""
    try:
        principal.require_participant()
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    return principal


def check_access(principal: Principal, *, scopes: set[str], roles: frozenset[str] | None = None) -> int | None:
    try:
        principal.require_scopes(scopes)
        if roles is not None:
            principal.require_role(roles)
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    return principal.participant_id
