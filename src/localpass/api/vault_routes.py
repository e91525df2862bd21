# LocalPass - Vault API
#
# Endpoints the desktop frontend calls:
# - Initialize / unlock / lock / reset
# - Account CRUD and per-account strength audit
# - Conflict listing and resolution
# - Export / import
#
# The store, transfer codec and lock manager live on app.state; nothing
# here holds vault state at module level.

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field

from ..vault import (
    FailureKind,
    ResolutionChoice,
    SessionLockManager,
    VaultError,
    VaultState,
    VaultStore,
    VaultTransfer,
)
from ..vault.generator import generate_password
from ..vault.strength import audit_password
from .security import verify_session_token

router = APIRouter(
    prefix="/api/vault",
    tags=["vault"],
    dependencies=[Depends(verify_session_token)],
)

_STATUS_BY_KIND = {
    FailureKind.AUTHENTICATION_FAILURE: status.HTTP_401_UNAUTHORIZED,
    FailureKind.IMPORT_WRONG_PASSWORD: status.HTTP_401_UNAUTHORIZED,
    FailureKind.IMPORT_FORMAT_ERROR: status.HTTP_400_BAD_REQUEST,
    FailureKind.CORRUPT_DATA: status.HTTP_422_UNPROCESSABLE_ENTITY,
    FailureKind.VAULT_LOCKED: status.HTTP_403_FORBIDDEN,
    FailureKind.NO_PERSISTED_VAULT: status.HTTP_404_NOT_FOUND,
    FailureKind.CONFLICT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    FailureKind.ACCOUNT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    FailureKind.VAULT_ALREADY_EXISTS: status.HTTP_409_CONFLICT,
}


def _http_error(exc: VaultError) -> HTTPException:
    return HTTPException(
        status_code=_STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail={"kind": exc.kind.value, "message": str(exc)},
    )


# ── Dependencies ─────────────────────────────────────────────────────


def get_store(request: Request) -> VaultStore:
    return request.app.state.store


def get_transfer(request: Request) -> VaultTransfer:
    return request.app.state.transfer


def get_lock_manager(request: Request) -> SessionLockManager:
    return request.app.state.lock_manager


async def require_unlocked(
    store: VaultStore = Depends(get_store),
    lock_manager: SessionLockManager = Depends(get_lock_manager),
) -> VaultStore:
    """Reject the call if locked; otherwise count it as user activity."""
    if not store.is_unlocked:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"kind": FailureKind.VAULT_LOCKED.value, "message": "Vault is locked"},
        )
    lock_manager.touch()
    return store


# Request/Response Models
class MasterPasswordRequest(BaseModel):
    master_password: str = Field(..., min_length=1)


class ResetRequest(BaseModel):
    confirm: bool = False


class AddAccountRequest(BaseModel):
    site: str = Field(..., min_length=1, max_length=500)
    user: str = Field(..., max_length=500)
    password: str = Field(..., min_length=1)
    notes: str = ""


class EditAccountRequest(BaseModel):
    site: Optional[str] = Field(None, min_length=1, max_length=500)
    user: Optional[str] = Field(None, max_length=500)
    password: Optional[str] = Field(None, min_length=1)
    notes: Optional[str] = None


class ResolveConflictRequest(BaseModel):
    choice: ResolutionChoice


class ImportRequest(BaseModel):
    content: str
    password: str = Field(..., min_length=1)


class GenerateRequest(BaseModel):
    length: int = Field(16, ge=4, le=128)
    uppercase: bool = True
    lowercase: bool = True
    numbers: bool = True
    symbols: bool = True


class VaultStatusResponse(BaseModel):
    state: VaultState
    is_unlocked: bool
    vault_exists: bool
    auto_lock_seconds: float


def _account_summary(account) -> dict:
    """Account fields safe to list (no password, no history)."""
    return {
        "id": account.id,
        "site": account.site,
        "user": account.user,
        "notes": account.notes,
        "createdAt": account.created_at,
        "updatedAt": account.updated_at,
        "originDeviceId": account.origin_device_id,
    }


# Endpoints


@router.get("/status", response_model=VaultStatusResponse)
async def get_vault_status(
    store: VaultStore = Depends(get_store),
    lock_manager: SessionLockManager = Depends(get_lock_manager),
):
    """Current lifecycle state of the vault."""
    return VaultStatusResponse(
        state=store.state,
        is_unlocked=store.is_unlocked,
        vault_exists=store.is_initialized,
        auto_lock_seconds=lock_manager.timeout_seconds,
    )


@router.post("/initialize")
async def initialize_vault(
    request: MasterPasswordRequest,
    store: VaultStore = Depends(get_store),
    lock_manager: SessionLockManager = Depends(get_lock_manager),
):
    """Create a new vault and leave it unlocked."""
    try:
        await store.initialize(request.master_password)
    except VaultError as exc:
        raise _http_error(exc)
    lock_manager.start()
    return {"success": True, "message": "Vault created successfully!"}


@router.post("/unlock")
async def unlock_vault(
    request: MasterPasswordRequest,
    store: VaultStore = Depends(get_store),
    lock_manager: SessionLockManager = Depends(get_lock_manager),
):
    """Unlock the vault. Wrong password and damaged file both give 401."""
    if not await store.unlock(request.master_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"kind": "unlock_failed", "message": "Could not unlock vault"},
        )
    lock_manager.start()
    return {"success": True, "message": "Vault unlocked successfully!"}


@router.post("/lock")
async def lock_vault(
    store: VaultStore = Depends(get_store),
    lock_manager: SessionLockManager = Depends(get_lock_manager),
):
    await lock_manager.stop()
    store.lock()
    return {"success": True, "message": "Vault locked"}


@router.post("/reset")
async def reset_vault(
    request: ResetRequest,
    store: VaultStore = Depends(get_store),
    lock_manager: SessionLockManager = Depends(get_lock_manager),
):
    """Delete the vault permanently. Requires ``{"confirm": true}``."""
    if not request.confirm:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"kind": "confirmation_required", "message": "Reset must be confirmed"},
        )
    await lock_manager.stop()
    await store.reset()
    return {"success": True, "message": "Vault deleted"}


@router.post("/activity")
async def record_activity(lock_manager: SessionLockManager = Depends(get_lock_manager)):
    """Frontend heartbeat for user input; restarts the auto-lock timer."""
    lock_manager.touch()
    return {"success": True, "armed": lock_manager.armed}


@router.get("/accounts")
async def list_accounts(store: VaultStore = Depends(require_unlocked)):
    """List accounts without their passwords."""
    vault = store.vault
    return {"accounts": [_account_summary(a) for a in vault.accounts]}


@router.post("/accounts")
async def add_account(
    request: AddAccountRequest,
    store: VaultStore = Depends(require_unlocked),
):
    try:
        account = await store.add_account(
            site=request.site,
            user=request.user,
            password=request.password,
            notes=request.notes,
        )
    except VaultError as exc:
        raise _http_error(exc)
    vault = store.vault
    return {
        "success": True,
        "account_id": account.id,
        "conflicts": len(vault.conflicts) if vault else 0,
    }


@router.get("/accounts/{account_id}")
async def get_account(account_id: str, store: VaultStore = Depends(require_unlocked)):
    """Full account including password and history."""
    account = store.vault.find_account(account_id)
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
    return account.to_dict()


@router.put("/accounts/{account_id}")
async def edit_account(
    account_id: str,
    request: EditAccountRequest,
    store: VaultStore = Depends(require_unlocked),
):
    try:
        account = await store.edit_account(
            account_id,
            site=request.site,
            user=request.user,
            password=request.password,
            notes=request.notes,
        )
    except VaultError as exc:
        raise _http_error(exc)
    return _account_summary(account)


@router.delete("/accounts/{account_id}")
async def delete_account(account_id: str, store: VaultStore = Depends(require_unlocked)):
    try:
        await store.delete_account(account_id)
    except VaultError as exc:
        raise _http_error(exc)
    return {"success": True, "message": "Account deleted"}


@router.get("/accounts/{account_id}/audit")
async def audit_account(account_id: str, store: VaultStore = Depends(require_unlocked)):
    """Advisory strength check of one stored password."""
    account = store.vault.find_account(account_id)
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
    return audit_password(account.password).to_dict()


@router.get("/conflicts")
async def list_conflicts(store: VaultStore = Depends(require_unlocked)):
    return {"conflicts": [c.to_dict() for c in store.vault.conflicts]}


@router.post("/conflicts/{conflict_id}/resolve")
async def resolve_conflict(
    conflict_id: str,
    request: ResolveConflictRequest,
    store: VaultStore = Depends(require_unlocked),
):
    try:
        vault = await store.resolve_conflict(conflict_id, request.choice)
    except VaultError as exc:
        raise _http_error(exc)
    return {"success": True, "conflicts": len(vault.conflicts)}


@router.get("/export")
async def export_vault(transfer: VaultTransfer = Depends(get_transfer)):
    """Encrypted export package; contains no plaintext."""
    try:
        return transfer.export_package().to_dict()
    except VaultError as exc:
        raise _http_error(exc)


@router.post("/import")
async def import_vault(
    request: ImportRequest,
    transfer: VaultTransfer = Depends(get_transfer),
    lock_manager: SessionLockManager = Depends(get_lock_manager),
):
    result = await transfer.try_import(request.content, request.password)
    if not result.ok:
        raise HTTPException(
            status_code=_STATUS_BY_KIND.get(result.failure, status.HTTP_400_BAD_REQUEST),
            detail={"kind": result.failure.value, "message": result.message},
        )
    lock_manager.start()
    return {
        "success": True,
        "accounts": len(result.vault.accounts),
        "conflicts": len(result.vault.conflicts),
    }


@router.post("/generate")
async def generate(request: GenerateRequest):
    try:
        password = generate_password(
            length=request.length,
            uppercase=request.uppercase,
            lowercase=request.lowercase,
            numbers=request.numbers,
            symbols=request.symbols,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return {"password": password}
