from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from dojo.api.deps import get_vault
from dojo.features.credentials.service import CredentialVault

router = APIRouter()


class CredentialRequest(BaseModel):
    api_key: str


@router.get("/v1/credential")
def get_credential_status(vault: CredentialVault = Depends(get_vault)):
    """Presence only; the key itself is never returned."""
    return {"configured": bool(vault.load())}


@router.put("/v1/credential")
def save_credential(req: CredentialRequest, vault: CredentialVault = Depends(get_vault)):
    vault.verify_and_save(req.api_key)
    return {"configured": True}


@router.delete("/v1/credential")
def clear_credential(vault: CredentialVault = Depends(get_vault)):
    vault.clear()
    return {"configured": bool(vault.load())}
