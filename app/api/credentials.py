"""Credential registry endpoints.

Mutating (bearer token required; the token's subject is the caller; the
response is the credential as the operation's own transaction left it):
- POST /v1/credentials                    (issue)
- POST /v1/credentials/{id}/revoke        (revoke)
- POST /v1/credentials/{id}/transfer      (transfer to recipient)
- PUT  /v1/credentials/{id}/uri           (replace metadata URI)

Public reads (unknown ids return null, false or 0 instead of 404):
- GET  /v1/credentials/last-id
- GET  /v1/credentials/{id}/uri
- GET  /v1/credentials/{id}/owner
- GET  /v1/credentials/{id}/revoked

Public verification (404 when never issued):
- GET  /v1/credentials/{id}/verify

Registry errors map to HTTP via each error's http_status; the body's
detail carries the error kind in `code`.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from app.api.dependencies import require_user
from app.core.errors import CredentialRegistryError
from app.models.credential import Credential
from app.models.principal import Principal
from app.services.credential_registry import credential_registry

router = APIRouter(prefix="/v1/credentials", tags=["credentials"])


class CredentialIssueIn(BaseModel):
    # Length is checked by the registry, which raises InvalidUri for
    # both issue and update.
    uri: str


class CredentialUriIn(BaseModel):
    uri: str


class CredentialTransferIn(BaseModel):
    recipient: str = Field(min_length=1)


class CredentialOut(BaseModel):
    credential_id: int
    owner: str
    uri: str
    revoked: bool


class CredentialVerifyOut(CredentialOut):
    valid: bool


class CredentialUriOut(BaseModel):
    credential_id: int
    uri: str | None


class CredentialOwnerOut(BaseModel):
    credential_id: int
    owner: str | None


class CredentialRevokedOut(BaseModel):
    credential_id: int
    revoked: bool


class LastCredentialIdOut(BaseModel):
    last_credential_id: int


def _http_error(e: CredentialRegistryError) -> HTTPException:
    return HTTPException(status_code=e.http_status, detail=e.to_dict())


def _to_out(credential: Credential) -> CredentialOut:
    return CredentialOut(
        credential_id=credential.credential_id,
        owner=credential.owner,
        uri=credential.uri,
        revoked=credential.revoked,
    )


# ========================== mutating =========================================


@router.post("", response_model=CredentialOut, status_code=status.HTTP_201_CREATED)
async def issue_credential(
    body: CredentialIssueIn,
    principal: Annotated[Principal, Depends(require_user)],
) -> CredentialOut:
    try:
        credential_id = await credential_registry.issue_credential(
            principal.user_id, body.uri
        )
    except CredentialRegistryError as e:
        raise _http_error(e) from None
    # A fresh credential is exactly what was just written.
    return CredentialOut(
        credential_id=credential_id,
        owner=principal.user_id,
        uri=body.uri,
        revoked=False,
    )


@router.post("/{credential_id}/revoke", response_model=CredentialOut)
async def revoke_credential(
    credential_id: int,
    principal: Annotated[Principal, Depends(require_user)],
) -> CredentialOut:
    try:
        credential = await credential_registry.revoke_credential(
            principal.user_id, credential_id
        )
    except CredentialRegistryError as e:
        raise _http_error(e) from None
    return _to_out(credential)


@router.post("/{credential_id}/transfer", response_model=CredentialOut)
async def transfer_credential(
    credential_id: int,
    body: CredentialTransferIn,
    principal: Annotated[Principal, Depends(require_user)],
) -> CredentialOut:
    try:
        credential = await credential_registry.transfer_credential(
            principal.user_id, credential_id, body.recipient
        )
    except CredentialRegistryError as e:
        raise _http_error(e) from None
    return _to_out(credential)


@router.put("/{credential_id}/uri", response_model=CredentialOut)
async def update_credential_uri(
    credential_id: int,
    body: CredentialUriIn,
    principal: Annotated[Principal, Depends(require_user)],
) -> CredentialOut:
    try:
        credential = await credential_registry.update_credential_uri(
            principal.user_id, credential_id, body.uri
        )
    except CredentialRegistryError as e:
        raise _http_error(e) from None
    return _to_out(credential)


# ========================== reads ============================================


@router.get("/last-id", response_model=LastCredentialIdOut)
async def get_last_credential_id() -> LastCredentialIdOut:
    return LastCredentialIdOut(
        last_credential_id=await credential_registry.get_last_credential_id()
    )


@router.get("/{credential_id}/uri", response_model=CredentialUriOut)
async def get_credential_uri(credential_id: int) -> CredentialUriOut:
    return CredentialUriOut(
        credential_id=credential_id,
        uri=await credential_registry.get_credential_uri(credential_id),
    )


@router.get("/{credential_id}/owner", response_model=CredentialOwnerOut)
async def get_credential_owner(credential_id: int) -> CredentialOwnerOut:
    return CredentialOwnerOut(
        credential_id=credential_id,
        owner=await credential_registry.get_credential_owner(credential_id),
    )


@router.get("/{credential_id}/revoked", response_model=CredentialRevokedOut)
async def get_revocation_status(credential_id: int) -> CredentialRevokedOut:
    return CredentialRevokedOut(
        credential_id=credential_id,
        revoked=await credential_registry.is_revoked(credential_id),
    )


@router.get("/{credential_id}/verify", response_model=CredentialVerifyOut)
async def verify_credential(credential_id: int) -> CredentialVerifyOut:
    credential = await credential_registry.get_credential(credential_id)
    if credential is None:
        raise HTTPException(status_code=404, detail="credential not found")

    return CredentialVerifyOut(
        credential_id=credential.credential_id,
        owner=credential.owner,
        uri=credential.uri,
        revoked=credential.revoked,
        valid=credential.valid,
    )
