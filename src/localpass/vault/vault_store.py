# LocalPass - Vault Store
#
# Owns the single persisted vault blob and the in-memory session.
#
#   UNINITIALIZED --initialize--> UNLOCKED
#   LOCKED        --unlock------> UNLOCKED
#   UNLOCKED      --lock--------> LOCKED
#   any           --reset-------> UNINITIALIZED
#
# Every write goes through update(), which runs the merge engine and
# persists before the new vault becomes visible in memory.

import asyncio
import copy
import json
import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Tuple, Union

from pydantic import ValidationError

from ..core import EventSeverity, EventType, get_audit_logger, get_settings
from .encryption import EncryptionService
from .errors import (
    AccountNotFound,
    AuthenticationFailure,
    CorruptData,
    VaultAlreadyExists,
    VaultLocked,
)
from .merge import ResolutionChoice, merge, resolve
from .models import AccountEntry, PasswordHistory, VaultDecrypted, utc_now_iso
from .schemas import VaultEncryptedFile

logger = logging.getLogger(__name__)

VaultTransform = Callable[[VaultDecrypted], VaultDecrypted]


class VaultState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOCKED = "locked"
    UNLOCKED = "unlocked"


@dataclass
class _Session:
    """Secrets held while unlocked. Dropped as a whole on lock."""

    vault: VaultDecrypted
    key: bytes
    password: str


# ── Blob sealing (run in a worker thread) ────────────────────────────


def seal_vault(
    vault: VaultDecrypted, password: str, iterations: int
) -> Tuple[VaultEncryptedFile, bytes]:
    """Encrypt ``vault`` under a fresh salt and nonce.

    Returns:
        (blob, key) where key is the freshly derived vault key.
    """
    salt = EncryptionService.generate_salt()
    key = EncryptionService.derive_key(password, salt, iterations)
    payload = json.dumps(vault.to_dict(), separators=(",", ":")).encode("utf-8")
    ciphertext, nonce = EncryptionService.encrypt(payload, key)
    blob = VaultEncryptedFile(
        salt=EncryptionService.encode_for_storage(salt),
        iv=EncryptionService.encode_for_storage(nonce),
        data=EncryptionService.encode_for_storage(ciphertext),
    )
    return blob, key


def open_blob(
    blob: VaultEncryptedFile, password: str, iterations: int
) -> Tuple[bytes, bytes]:
    """Decrypt a blob.

    Returns:
        (plaintext, key)

    Raises:
        AuthenticationFailure: Wrong password or damaged ciphertext.
    """
    salt, nonce, ciphertext = blob.decoded()
    key = EncryptionService.derive_key(password, salt, iterations)
    return EncryptionService.decrypt(ciphertext, key, nonce), key


def parse_plaintext(plaintext: bytes) -> object:
    """Decode decrypted bytes as JSON.

    Raises:
        CorruptData: Not UTF-8 JSON.
    """
    try:
        return json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CorruptData(f"Decrypted vault is not valid JSON: {exc}") from None


class VaultStore:
    """
    Encrypted single-blob vault with an explicit lock/unlock lifecycle.

    Security:
    - The blob is AES-256-GCM encrypted under a PBKDF2-SHA512 key
    - Every save uses a new salt and nonce
    - The master password and key live only in the unlocked session
    - Audit logging for lifecycle events (never for secrets)

    Crypto-bearing operations are serialized by an asyncio.Lock and run in
    a worker thread, so at most one is in flight per store.
    """

    def __init__(
        self,
        vault_path: Optional[Union[str, Path]] = None,
        kdf_iterations: Optional[int] = None,
    ):
        """
        Initialize vault store.

        Args:
            vault_path: Path to the vault blob. If None, uses the configured
                        LOCALPASS_VAULT_PATH (default: data/vault.json)
            kdf_iterations: PBKDF2 rounds. If None, uses configuration.
        """
        settings = get_settings()
        self.vault_path = Path(vault_path) if vault_path is not None else settings.vault_path
        self.vault_path.parent.mkdir(parents=True, exist_ok=True)
        self.kdf_iterations = (
            kdf_iterations if kdf_iterations is not None else settings.kdf_iterations
        )

        self._session: Optional[_Session] = None
        self._crypto_lock = asyncio.Lock()
        self.logger = get_audit_logger()

    # ── State ────────────────────────────────────────────────────────

    @property
    def is_initialized(self) -> bool:
        """True when a (non-empty) blob is persisted."""
        return self.vault_path.exists() and self.vault_path.stat().st_size > 0

    @property
    def is_unlocked(self) -> bool:
        return self._session is not None

    @property
    def state(self) -> VaultState:
        if self._session is not None:
            return VaultState.UNLOCKED
        if self.is_initialized:
            return VaultState.LOCKED
        return VaultState.UNINITIALIZED

    @property
    def vault(self) -> Optional[VaultDecrypted]:
        """A copy of the unlocked vault, or None when locked."""
        session = self._session
        return session.vault.copy() if session else None

    # ── Persistence ──────────────────────────────────────────────────

    def load_blob(self) -> Optional[VaultEncryptedFile]:
        """
        Read and validate the persisted blob.

        Returns:
            The blob, or None if nothing is persisted

        Raises:
            CorruptData: The file exists but is not a valid blob
        """
        if not self.is_initialized:
            return None
        try:
            raw = self.vault_path.read_text(encoding="utf-8")
            return VaultEncryptedFile.model_validate_json(raw)
        except (UnicodeDecodeError, ValidationError) as exc:
            raise CorruptData(f"Persisted vault is unreadable: {exc}") from None

    def _write_blob(self, blob: VaultEncryptedFile) -> None:
        """Replace the blob atomically (temp file in the same dir + rename)."""
        tmp = self.vault_path.with_name(self.vault_path.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(blob.to_dict(), fh)
            fh.flush()
            os.fsync(fh.fileno())
        try:
            os.chmod(tmp, 0o600)
        except OSError:
            logger.debug("Could not restrict permissions on %s", tmp)
        os.replace(tmp, self.vault_path)

    async def _persist(
        self,
        vault: VaultDecrypted,
        password: str,
        expected: Optional[_Session] = None,
        install: bool = True,
    ) -> VaultDecrypted:
        """Encrypt + write ``vault``; install it as the session afterwards.

        Caller must hold ``_crypto_lock``. With ``install=False`` the session
        is only replaced if it is still ``expected``, so a lock that happened
        during the write is not undone.
        """
        vault = vault.copy()
        vault.updated_at = utc_now_iso()

        blob, key = await asyncio.to_thread(
            seal_vault, vault, password, self.kdf_iterations
        )
        await asyncio.to_thread(self._write_blob, blob)

        if install or (self._session is not None and self._session is expected):
            self._session = _Session(vault=vault, key=key, password=password)
        else:
            logger.info("Vault locked during save; plaintext not restored")

        self.logger.log_event(
            event_type=EventType.VAULT_SAVED,
            severity=EventSeverity.INFO,
            message="Vault saved",
            details={"accounts": len(vault.accounts), "conflicts": len(vault.conflicts)},
        )
        return vault.copy()

    # ── Lifecycle ────────────────────────────────────────────────────

    async def initialize(self, master_password: str) -> VaultDecrypted:
        """
        Create a new, empty vault and leave it unlocked.

        Raises:
            VaultAlreadyExists: A blob is already persisted
        """
        async with self._crypto_lock:
            if self.is_initialized:
                raise VaultAlreadyExists()

            # Remove stale 0-byte file if present
            if self.vault_path.exists():
                self.vault_path.unlink()

            vault = await self._persist(VaultDecrypted(), master_password)

        self.logger.log_event(
            event_type=EventType.VAULT_CREATED,
            severity=EventSeverity.INFO,
            message="Vault initialized with master password",
            details={"device_id": vault.device_id},
        )
        return vault

    async def unlock(self, master_password: str) -> bool:
        """
        Unlock the persisted vault.

        Wrong password and damaged file are reported the same way (False).

        Returns:
            True on success, False if nothing is persisted or it cannot be
            opened with this password
        """
        async with self._crypto_lock:
            try:
                blob = self.load_blob()
                if blob is None:
                    return False
                plaintext, key = await asyncio.to_thread(
                    open_blob, blob, master_password, self.kdf_iterations
                )
                vault = VaultDecrypted.from_dict(parse_plaintext(plaintext))
            except (AuthenticationFailure, CorruptData) as exc:
                logger.debug("Unlock failed: %s", exc.kind.value)
                self.logger.log_event(
                    event_type=EventType.VAULT_UNLOCK_FAILED,
                    severity=EventSeverity.ALERT,
                    message="Vault unlock failed",
                )
                return False

            self._session = _Session(vault=vault, key=key, password=master_password)

        self.logger.log_event(
            event_type=EventType.VAULT_UNLOCKED,
            severity=EventSeverity.INFO,
            message="Vault unlocked successfully",
        )
        return True

    async def save(self, vault: VaultDecrypted, master_password: str) -> VaultDecrypted:
        """
        Encrypt and persist ``vault`` under ``master_password``.

        A new salt and nonce are generated on every call. The store ends up
        unlocked with ``vault`` as its in-memory state.
        """
        async with self._crypto_lock:
            return await self._persist(vault, master_password)

    async def adopt(self, vault: VaultDecrypted, master_password: str) -> VaultDecrypted:
        """
        Persist ``vault`` as this device's first vault.

        The emptiness check and the write happen under the crypto lock, so
        an existing vault is never replaced.

        Raises:
            VaultLocked: A vault is persisted but locked
            VaultAlreadyExists: A vault is persisted and unlocked
        """
        async with self._crypto_lock:
            if self.is_initialized:
                if self._session is None:
                    raise VaultLocked("Unlock the local vault before importing into it")
                raise VaultAlreadyExists()
            return await self._persist(vault, master_password)

    def lock(self, reason: str = "manual") -> None:
        """Discard the key, password and plaintext vault."""
        if self._session is None:
            return
        self._session = None
        self.logger.log_event(
            event_type=(
                EventType.VAULT_AUTO_LOCKED if reason == "inactivity" else EventType.VAULT_LOCKED
            ),
            severity=EventSeverity.INFO,
            message="Vault locked",
            details={"reason": reason},
        )

    async def reset(self) -> None:
        """Delete the persisted blob and forget the session. Irreversible."""
        async with self._crypto_lock:
            self._session = None
            self.vault_path.unlink(missing_ok=True)
            self.vault_path.with_name(self.vault_path.name + ".tmp").unlink(missing_ok=True)

        self.logger.log_event(
            event_type=EventType.VAULT_RESET,
            severity=EventSeverity.CRITICAL,
            message="Vault deleted",
        )

    # ── Transactional updates ────────────────────────────────────────

    def _require_session(self) -> _Session:
        if self._session is None:
            raise VaultLocked()
        return self._session

    async def update(self, transform: VaultTransform) -> VaultDecrypted:
        """
        Apply ``transform`` to a copy of the vault, merge, then persist.

        The in-memory vault changes only after the new blob is written; if
        anything fails, the previous state is kept.

        Raises:
            VaultLocked: The store is not unlocked
        """
        async with self._crypto_lock:
            session = self._require_session()
            draft = transform(session.vault.copy())
            if not isinstance(draft, VaultDecrypted):
                raise TypeError("transform must return a VaultDecrypted")

            merged = merge(draft.accounts, draft.conflicts)
            draft.accounts = merged.accounts
            draft.conflicts = merged.conflicts

            committed = await self._persist(
                draft, session.password, expected=session, install=False
            )

        for conflict in merged.new_conflicts:
            self.logger.log_event(
                event_type=EventType.CONFLICT_DETECTED,
                severity=EventSeverity.ALERT,
                message=f"Conflicting passwords for {conflict.site}",
                details={"conflict_id": conflict.conflict_id, "site": conflict.site},
            )
        return committed

    async def decrypt_foreign(
        self, blob: VaultEncryptedFile, password: str
    ) -> bytes:
        """Decrypt a blob that is not this store's own (e.g. an import).

        Shares the store's crypto lock so it never overlaps a save.

        Raises:
            AuthenticationFailure: Wrong password or damaged ciphertext
        """
        async with self._crypto_lock:
            plaintext, _ = await asyncio.to_thread(
                open_blob, blob, password, self.kdf_iterations
            )
        return plaintext

    # ── Account operations ───────────────────────────────────────────

    async def add_account(
        self, site: str, user: str, password: str, notes: str = ""
    ) -> AccountEntry:
        """Add a credential. Returns the stored entry."""
        created = {}

        def _add(vault: VaultDecrypted) -> VaultDecrypted:
            account = AccountEntry(
                site=site,
                user=user,
                password=password,
                notes=notes or "",
                origin_device_id=vault.device_id,
            )
            created["account"] = account
            vault.accounts.append(account)
            return vault

        await self.update(_add)
        account = created["account"]
        self.logger.log_event(
            event_type=EventType.ACCOUNT_ADDED,
            severity=EventSeverity.INFO,
            message=f"Account added: {site}",
            details={"account_id": account.id},
        )
        return copy.deepcopy(account)

    async def edit_account(
        self,
        account_id: str,
        site: Optional[str] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> AccountEntry:
        """
        Change fields of an existing account.

        A password change pushes the previous password onto ``history``.

        Raises:
            AccountNotFound: No account with ``account_id``
        """
        edited = {}

        def _edit(vault: VaultDecrypted) -> VaultDecrypted:
            account = vault.find_account(account_id)
            if account is None:
                raise AccountNotFound(f"Account not found: {account_id}")
            if password and password != account.password:
                account.history.insert(
                    0, PasswordHistory(password=account.password, updated_at=account.updated_at)
                )
                account.password = password
            if site is not None:
                account.site = site
            if user is not None:
                account.user = user
            if notes is not None:
                account.notes = notes
            account.updated_at = utc_now_iso()
            edited["account"] = account
            return vault

        await self.update(_edit)
        self.logger.log_event(
            event_type=EventType.ACCOUNT_UPDATED,
            severity=EventSeverity.INFO,
            message="Account updated",
            details={"account_id": account_id},
        )
        return copy.deepcopy(edited["account"])

    async def delete_account(self, account_id: str) -> None:
        """
        Remove an account.

        Raises:
            AccountNotFound: No account with ``account_id``
        """

        def _delete(vault: VaultDecrypted) -> VaultDecrypted:
            if vault.find_account(account_id) is None:
                raise AccountNotFound(f"Account not found: {account_id}")
            vault.accounts = [a for a in vault.accounts if a.id != account_id]
            return vault

        await self.update(_delete)
        self.logger.log_event(
            event_type=EventType.ACCOUNT_DELETED,
            severity=EventSeverity.INFO,
            message="Account deleted",
            details={"account_id": account_id},
        )

    async def resolve_conflict(
        self, conflict_id: str, choice: Union[ResolutionChoice, str]
    ) -> VaultDecrypted:
        """
        Keep one side of a conflict and drop the other.

        Raises:
            ConflictNotFound: No conflict with ``conflict_id``
            ValueError: ``choice`` is not "local" or "imported"
        """
        choice = ResolutionChoice(choice)

        def _resolve(vault: VaultDecrypted) -> VaultDecrypted:
            result = resolve(vault.accounts, vault.conflicts, conflict_id, choice)
            vault.accounts = result.accounts
            vault.conflicts = result.conflicts
            return vault

        vault = await self.update(_resolve)
        self.logger.log_event(
            event_type=EventType.CONFLICT_RESOLVED,
            severity=EventSeverity.INFO,
            message="Conflict resolved",
            details={"conflict_id": conflict_id, "choice": choice.value},
        )
        return vault
