"""Superuser endpoints — delegation grants, cleanup sweep, client administration."""

import uuid

from fastapi import APIRouter, Response, status
from pydantic import BaseModel, Field

from reflets.api.deps import God, Session
from reflets.api.errors import http_error
from reflets.models.delegation_grant import DelegationCreate, DelegationIssued
from reflets.models.principal import TenantOwnerPrincipal
from reflets.models.tenant_owner import ClientStatusUpdate
from reflets.services import clients, delegation

router = APIRouter(prefix="/god", tags=["god"])


class DelegationVerifyRequest(BaseModel):
    token: str = Field(max_length=256)


class CleanupResponse(BaseModel):
    deleted_count: int


# ── Delegation grants ─────────────────────────────────────────

@router.post(
    "/delegations",
    response_model=DelegationIssued,
    status_code=status.HTTP_201_CREATED,
    summary="Issue an impersonation grant for a tenant (by tenant id, not client id)",
)
async def issue_delegation(
    body: DelegationCreate,
    god: God,
    session: Session,
) -> DelegationIssued:
    """Takes ``target_tenant_id``, unlike the ``/clients/{client_id}`` routes
    which take the owner id. The raw token is returned once.
    """
    result = await delegation.issue_delegation(
        session, god.id, body.target_tenant_id, body.max_uses,
    )
    if not result.ok:
        raise http_error(result.error)
    return result.value


@router.post(
    "/delegations/verify",
    response_model=TenantOwnerPrincipal,
    summary="Consume an impersonation grant",
)
async def verify_delegation(
    body: DelegationVerifyRequest,
    session: Session,
) -> TenantOwnerPrincipal:
    """Unauthenticated on purpose: the grant token is the credential."""
    result = await delegation.verify_delegation(session, body.token)
    if not result.ok:
        raise http_error(result.error)
    return result.value


@router.post(
    "/delegations/cleanup",
    response_model=CleanupResponse,
    summary="Delete expired impersonation grants",
)
async def cleanup_delegations(god: God, session: Session) -> CleanupResponse:
    result = await delegation.cleanup_expired_delegations(session)
    if not result.ok:
        raise http_error(result.error)
    return CleanupResponse(deleted_count=result.value.deleted_count)


# ── Client administration ─────────────────────────────────────

@router.patch(
    "/clients/{client_id}/status",
    response_model=TenantOwnerPrincipal,
    summary="Change a client's subscription status",
)
async def update_client_status(
    client_id: uuid.UUID,
    body: ClientStatusUpdate,
    god: God,
    session: Session,
) -> TenantOwnerPrincipal:
    result = await clients.update_client_status(session, god.id, client_id, body.status)
    if not result.ok:
        raise http_error(result.error)
    return result.value


@router.delete(
    "/clients/{client_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a client and their wedding space",
)
async def delete_client(
    client_id: uuid.UUID,
    god: God,
    session: Session,
) -> Response:
    result = await clients.delete_client(session, god.id, client_id)
    if not result.ok:
        raise http_error(result.error)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
