# LocalPass - Vault Error Taxonomy
#
# Every failure the vault core can report carries a FailureKind so callers
# branch on the kind instead of parsing message strings.

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .models import VaultDecrypted


class FailureKind(str, Enum):
    AUTHENTICATION_FAILURE = "authentication_failure"
    CORRUPT_DATA = "corrupt_data"
    IMPORT_FORMAT_ERROR = "import_format_error"
    IMPORT_WRONG_PASSWORD = "import_wrong_password"
    NO_PERSISTED_VAULT = "no_persisted_vault"
    VAULT_LOCKED = "vault_locked"
    VAULT_ALREADY_EXISTS = "vault_already_exists"
    CONFLICT_NOT_FOUND = "conflict_not_found"
    ACCOUNT_NOT_FOUND = "account_not_found"


class VaultError(Exception):
    """Base class for all vault core failures."""

    kind: FailureKind = FailureKind.CORRUPT_DATA
    default_message = "Vault operation failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)


class AuthenticationFailure(VaultError):
    """AEAD tag did not verify: wrong key, corrupted or tampered ciphertext."""

    kind = FailureKind.AUTHENTICATION_FAILURE
    default_message = "Authentication tag mismatch"


class CorruptData(VaultError):
    """Decryption succeeded (or was not reached) but the content is unusable."""

    kind = FailureKind.CORRUPT_DATA
    default_message = "Vault data is corrupted"


class ImportFormatError(VaultError):
    kind = FailureKind.IMPORT_FORMAT_ERROR
    default_message = "Import file is not a valid vault export"


class ImportWrongPassword(VaultError):
    kind = FailureKind.IMPORT_WRONG_PASSWORD
    default_message = "Could not decrypt import with the given password"


class NoPersistedVault(VaultError):
    kind = FailureKind.NO_PERSISTED_VAULT
    default_message = "No vault has been created on this device"


class VaultLocked(VaultError):
    kind = FailureKind.VAULT_LOCKED
    default_message = "Vault is locked. Unlock vault first."


class VaultAlreadyExists(VaultError):
    kind = FailureKind.VAULT_ALREADY_EXISTS
    default_message = "Vault already exists. Unlock it or reset first."


class ConflictNotFound(VaultError):
    kind = FailureKind.CONFLICT_NOT_FOUND
    default_message = "Conflict not found"


class AccountNotFound(VaultError):
    kind = FailureKind.ACCOUNT_NOT_FOUND
    default_message = "Account not found"


@dataclass
class ImportResult:
    """Outcome of an import attempt.

    ``failure`` is None on success; otherwise it names what went wrong so a
    caller can decide between re-prompting for a password and asking for a
    different file.
    """

    ok: bool
    vault: Optional["VaultDecrypted"] = None
    failure: Optional[FailureKind] = None
    message: str = ""

    @classmethod
    def success(cls, vault: "VaultDecrypted") -> "ImportResult":
        return cls(ok=True, vault=vault, message="Vault imported")

    @classmethod
    def from_error(cls, error: VaultError) -> "ImportResult":
        return cls(ok=False, failure=error.kind, message=str(error))
