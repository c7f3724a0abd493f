"""API routes for the locally stored Gemini credential."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from ..schemas.credential import CredentialStatus, CredentialUpdate
from ..services.credentials import CredentialStore, mask_key

router = APIRouter(prefix="/api/credential", tags=["credential"])


def get_credential_store(request: Request) -> CredentialStore:
    store = getattr(request.app.state, "credential_store", None)
    if store is None:  # pragma: no cover
        raise RuntimeError("Credential store is not configured")
    return store


def _status(store: CredentialStore) -> CredentialStatus:
    active = store.resolve()
    return CredentialStatus(
        configured=active is not None,
        source=store.source(),
        hint=mask_key(active),
    )


@router.get("", response_model=CredentialStatus)
async def read_credential(
    store: CredentialStore = Depends(get_credential_store),
) -> CredentialStatus:
    return _status(store)


@router.put("", response_model=CredentialStatus)
async def update_credential(
    payload: CredentialUpdate,
    store: CredentialStore = Depends(get_credential_store),
) -> CredentialStatus:
    try:
        store.save(payload.api_key)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _status(store)


@router.delete("", response_model=CredentialStatus)
async def delete_credential(
    store: CredentialStore = Depends(get_credential_store),
) -> CredentialStatus:
    store.clear()
    return _status(store)


__all__ = ["router"]
