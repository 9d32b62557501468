import hashlib
import hmac
import logging
from typing import Any

import httpx
from fastapi import Depends, Header, HTTPException, Request, status

from hirelink.core.auth import Principal, PrincipalType, Role
from hirelink.core.config import Settings, get_settings
from hirelink.services.errors import RepositoryUnavailableError
from hirelink.services.repository import get_repository

logger = logging.getLogger(__name__)

PARTICIPANT_SCOPES = {"messages:read", "messages:write", "hires:write", "notifications:read", "employment:read"}
ROLE_SCOPES: dict[str, set[str]] = {
    Role.JOBSEEKER.value: PARTICIPANT_SCOPES,
    Role.INDIVIDUAL_EMPLOYER.value: PARTICIPANT_SCOPES,
    Role.BUSINESS_EMPLOYER.value: PARTICIPANT_SCOPES,
    Role.MANPOWER_PROVIDER.value: PARTICIPANT_SCOPES,
    Role.ADMINISTRATOR.value: PARTICIPANT_SCOPES | {"maintenance:write"},
}
ANONYMOUS_SCOPES = {"employment:read"}
MODULE_ID_HEADER = "X-Module-Id"


def hash_module_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()


async def get_machine_principal(
    request: Request,
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
) -> Principal:
    """Module caller (the employment sweeper) identified by module id + API key."""
    module_id = request.headers.get(MODULE_ID_HEADER, "").strip()
    api_key = request.headers.get(settings.api_key_header, "")
    if not module_id or not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"machine auth requires {settings.api_key_header} and {MODULE_ID_HEADER}",
        )

    try:
        credentials = await repository.get_machine_credentials(module_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    presented = hash_module_key(api_key)
    for record in credentials:
        if hmac.compare_digest(record.key_hash, presented):
            return Principal(
                principal_type=PrincipalType.MACHINE,
                subject=record.module_id,
                scopes=set(record.scopes),
                actor_id=record.module_db_id,
            )

    logger.warning("module credentials rejected module_id=%s known_keys=%s", module_id, len(credentials))
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid module credentials")


async def get_human_principal(
    settings: Settings = Depends(get_settings),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> Principal:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="human auth requires bearer token",
        )
    return await authenticate_bearer_token(authorization.split(" ", maxsplit=1)[1], settings)


async def authenticate_bearer_token(token: str, settings: Settings) -> Principal:
    token = token.strip()
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="empty bearer token")

    if not settings.supabase_url or not settings.supabase_anon_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Supabase auth is not configured",
        )

    user = await _fetch_supabase_user(
        supabase_url=settings.supabase_url,
        supabase_anon_key=settings.supabase_anon_key,
        token=token,
        timeout_seconds=settings.auth_timeout_seconds,
    )
    user_id = user.get("id")
    if not isinstance(user_id, str) or not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid bearer token")

    role = _resolve_human_role(user)
    return Principal(
        principal_type=PrincipalType.HUMAN,
        subject=user_id,
        role=role,
        scopes=set(ROLE_SCOPES.get(role or "", ANONYMOUS_SCOPES)),
        actor_id=user_id,
        participant_id=_resolve_participant_id(user),
    )


async def _fetch_supabase_user(
    *,
    supabase_url: str,
    supabase_anon_key: str,
    token: str,
    timeout_seconds: float,
    client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    request_kwargs = {
        "url": f"{supabase_url.rstrip('/')}/auth/v1/user",
        "headers": {"Authorization": f"Bearer {token}", "apikey": supabase_anon_key},
    }
    try:
        if client is not None:
            response = await client.get(**request_kwargs)
        else:
            async with httpx.AsyncClient(timeout=timeout_seconds) as owned_client:
                response = await owned_client.get(**request_kwargs)
    except httpx.HTTPError as exc:
        logger.warning("supabase user lookup failed error=%s", type(exc).__name__)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Supabase auth verification unavailable",
        ) from exc

    if response.status_code == status.HTTP_200_OK:
        return response.json()
    if response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid bearer token")

    logger.warning("supabase user lookup rejected status=%s", response.status_code)
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Supabase auth verification failed")


def _app_metadata(user: dict[str, Any]) -> dict[str, Any]:
    # user_metadata is writable by the user and never trusted here.
    app_metadata = user.get("app_metadata")
    return app_metadata if isinstance(app_metadata, dict) else {}


def _resolve_human_role(user: dict[str, Any]) -> str | None:
    role = _app_metadata(user).get("role")
    if isinstance(role, str) and role in ROLE_SCOPES:
        return role
    return None


def _resolve_participant_id(user: dict[str, Any]) -> int | None:
    value = _app_metadata(user).get("participant_id")
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
        return parsed if parsed > 0 else None
    return None
