# LocalPass - Vault Data Model
#
# Plaintext aggregate (VaultDecrypted) and its parts. Python attributes are
# snake_case; the JSON form uses the camelCase keys of the persisted format.

import copy
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .errors import CorruptData

logger = logging.getLogger(__name__)

VAULT_VERSION = "1.0"


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and 'Z'.

    Fixed width, so timestamps compare correctly as strings.
    """
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def new_id() -> str:
    return str(uuid.uuid4())


def identity_key(site: str, user: str) -> str:
    """Case-insensitive identity of a credential slot."""
    return f"{site.lower()}|{user.lower()}"


def _require(data: Dict[str, Any], key: str, kind: type = str) -> Any:
    if key not in data:
        raise CorruptData(f"Missing field: {key}")
    value = data[key]
    if not isinstance(value, kind):
        raise CorruptData(f"Field {key} has wrong type: {type(value).__name__}")
    return value


def _as_object(data: Any, what: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise CorruptData(f"{what} must be a JSON object")
    return data


@dataclass
class PasswordHistory:
    """A previous password of an account."""

    password: str
    updated_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {"password": self.password, "updatedAt": self.updated_at}

    @classmethod
    def from_dict(cls, data: Any) -> "PasswordHistory":
        data = _as_object(data, "History entry")
        return cls(
            password=_require(data, "password"),
            updated_at=_require(data, "updatedAt"),
        )


@dataclass
class AccountEntry:
    """One stored credential."""

    site: str
    user: str
    password: str
    notes: str = ""
    id: str = field(default_factory=new_id)
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)
    origin_device_id: str = ""
    history: List[PasswordHistory] = field(default_factory=list)

    @property
    def identity(self) -> str:
        return identity_key(self.site, self.user)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "site": self.site,
            "user": self.user,
            "password": self.password,
            "notes": self.notes,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "originDeviceId": self.origin_device_id,
            "history": [h.to_dict() for h in self.history],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "AccountEntry":
        data = _as_object(data, "Account")
        notes = data.get("notes") or ""
        if not isinstance(notes, str):
            raise CorruptData("Field notes has wrong type")
        history = data.get("history") or []
        if not isinstance(history, list):
            raise CorruptData("Field history must be a list")
        return cls(
            id=_require(data, "id"),
            site=_require(data, "site"),
            user=_require(data, "user"),
            password=_require(data, "password"),
            notes=notes,
            created_at=_require(data, "createdAt"),
            updated_at=_require(data, "updatedAt"),
            origin_device_id=str(data.get("originDeviceId") or ""),
            history=[PasswordHistory.from_dict(h) for h in history],
        )


@dataclass
class ConflictEntry:
    """Unresolved divergence between two versions of the same credential."""

    site: str
    user: str
    version_local: AccountEntry
    version_imported: AccountEntry
    conflict_id: str = field(default_factory=new_id)
    detected_at: str = field(default_factory=utc_now_iso)

    @property
    def identity(self) -> str:
        return identity_key(self.site, self.user)

    def password_pair(self) -> frozenset:
        return frozenset((self.version_local.password, self.version_imported.password))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conflictId": self.conflict_id,
            "site": self.site,
            "user": self.user,
            "versionLocal": self.version_local.to_dict(),
            "versionImported": self.version_imported.to_dict(),
            "detectedAt": self.detected_at,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "ConflictEntry":
        data = _as_object(data, "Conflict")
        return cls(
            conflict_id=_require(data, "conflictId"),
            site=_require(data, "site"),
            user=_require(data, "user"),
            version_local=AccountEntry.from_dict(_require(data, "versionLocal", dict)),
            version_imported=AccountEntry.from_dict(
                _require(data, "versionImported", dict)
            ),
            detected_at=_require(data, "detectedAt"),
        )


def _parse_items(raw: Any, parser, what: str, lenient: bool) -> list:
    if not isinstance(raw, list):
        if lenient:
            return []
        raise CorruptData(f"Field {what} must be a list")
    items = []
    for item in raw:
        try:
            items.append(parser(item))
        except CorruptData as exc:
            if not lenient:
                raise
            logger.warning("Skipping unreadable %s entry: %s", what, exc)
    return items


@dataclass
class VaultDecrypted:
    """The full plaintext vault. Lives in memory only while unlocked."""

    device_id: str = field(default_factory=new_id)
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)
    accounts: List[AccountEntry] = field(default_factory=list)
    conflicts: List[ConflictEntry] = field(default_factory=list)
    vault_version: str = VAULT_VERSION

    def copy(self) -> "VaultDecrypted":
        return copy.deepcopy(self)

    def find_account(self, account_id: str) -> Optional[AccountEntry]:
        for account in self.accounts:
            if account.id == account_id:
                return account
        return None

    def find_conflict(self, conflict_id: str) -> Optional[ConflictEntry]:
        for conflict in self.conflicts:
            if conflict.conflict_id == conflict_id:
                return conflict
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vaultVersion": self.vault_version,
            "deviceId": self.device_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "accounts": [a.to_dict() for a in self.accounts],
            "conflicts": [c.to_dict() for c in self.conflicts],
        }

    @classmethod
    def from_dict(cls, data: Any, lenient: bool = False) -> "VaultDecrypted":
        """Build a vault from its JSON object.

        Args:
            data: Parsed JSON.
            lenient: Treat missing or garbled ``accounts``/``conflicts`` as
                empty and skip unreadable entries, and fill in missing
                metadata (used for imported vaults).

        Raises:
            CorruptData: If the object does not describe a vault.
        """
        data = _as_object(data, "Vault")
        if lenient:
            device_id = data.get("deviceId")
            created_at = data.get("createdAt")
            updated_at = data.get("updatedAt")
            return cls(
                device_id=device_id if isinstance(device_id, str) and device_id else new_id(),
                created_at=created_at if isinstance(created_at, str) else utc_now_iso(),
                updated_at=updated_at if isinstance(updated_at, str) else utc_now_iso(),
                accounts=_parse_items(
                    data.get("accounts"), AccountEntry.from_dict, "accounts", True
                ),
                conflicts=_parse_items(
                    data.get("conflicts"), ConflictEntry.from_dict, "conflicts", True
                ),
            )

        version = _require(data, "vaultVersion")
        if version != VAULT_VERSION:
            raise CorruptData(f"Unsupported vault version: {version}")
        return cls(
            vault_version=version,
            device_id=_require(data, "deviceId"),
            created_at=_require(data, "createdAt"),
            updated_at=_require(data, "updatedAt"),
            accounts=_parse_items(
                _require(data, "accounts", list), AccountEntry.from_dict, "accounts", False
            ),
            conflicts=_parse_items(
                _require(data, "conflicts", list), ConflictEntry.from_dict, "conflicts", False
            ),
        )
