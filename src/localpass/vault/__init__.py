# LocalPass - Vault Module
#
# Offline password vault: a single AES-256-GCM encrypted blob unlocked with
# a PBKDF2-derived key, plus the merge engine that keeps one account per
# (site, user) and records divergent copies as conflicts.

from .encryption import EncryptionService
from .errors import (
    AccountNotFound,
    AuthenticationFailure,
    ConflictNotFound,
    CorruptData,
    FailureKind,
    ImportFormatError,
    ImportResult,
    ImportWrongPassword,
    NoPersistedVault,
    VaultAlreadyExists,
    VaultError,
    VaultLocked,
)
from .merge import MergeResult, ResolutionChoice, merge, resolve
from .models import AccountEntry, ConflictEntry, PasswordHistory, VaultDecrypted
from .schemas import ExportPackage, VaultEncryptedFile
from .session import SessionLockManager
from .transfer import VaultTransfer
from .vault_store import VaultState, VaultStore

__all__ = [
    "EncryptionService",
    "VaultStore",
    "VaultState",
    "VaultTransfer",
    "SessionLockManager",
    "merge",
    "resolve",
    "MergeResult",
    "ResolutionChoice",
    "AccountEntry",
    "ConflictEntry",
    "PasswordHistory",
    "VaultDecrypted",
    "VaultEncryptedFile",
    "ExportPackage",
    "FailureKind",
    "ImportResult",
    "VaultError",
    "AuthenticationFailure",
    "CorruptData",
    "ImportFormatError",
    "ImportWrongPassword",
    "NoPersistedVault",
    "VaultLocked",
    "VaultAlreadyExists",
    "ConflictNotFound",
    "AccountNotFound",
]
