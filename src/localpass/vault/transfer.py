# LocalPass - Vault Import / Export
#
# Export wraps the persisted (still encrypted) blob with metadata so it can
# be carried to another device. Import accepts either that package or a
# bare blob, decrypts it with the password it was sealed under and merges
# it into the local vault.

import json
import logging
from typing import Union

from pydantic import ValidationError

from ..core import EventSeverity, EventType, get_audit_logger
from .errors import (
    AuthenticationFailure,
    CorruptData,
    ImportFormatError,
    ImportResult,
    ImportWrongPassword,
    NoPersistedVault,
    VaultError,
    VaultLocked,
)
from .merge import union_conflicts
from .models import VaultDecrypted, utc_now_iso
from .schemas import ExportPackage, VaultEncryptedFile
from .vault_store import VaultState, VaultStore, parse_plaintext

logger = logging.getLogger(__name__)


def parse_import_payload(raw: Union[str, bytes]) -> VaultEncryptedFile:
    """
    Extract the encrypted blob from import file content.

    Accepts an ExportPackage (``{"vaultData": {...}}``) or a bare
    VaultEncryptedFile. No decryption is attempted here.

    Raises:
        ImportFormatError: Not JSON, or required fields missing/invalid
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            raise ImportFormatError("Import file is not UTF-8 text") from None
    text = raw.lstrip("\ufeff").strip()
    if not text:
        raise ImportFormatError("Import file is empty")

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        raise ImportFormatError("Import file is not valid JSON") from None
    if not isinstance(parsed, dict):
        raise ImportFormatError()

    try:
        if "vaultData" in parsed:
            return ExportPackage.model_validate(parsed).vault_data
        return VaultEncryptedFile.model_validate(parsed)
    except ValidationError as exc:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        raise ImportFormatError(
            f"Import file is missing or has invalid fields: {', '.join(fields)}"
        ) from None


class VaultTransfer:
    """Export and import for one VaultStore."""

    def __init__(self, store: VaultStore):
        self.store = store
        self.logger = get_audit_logger()

    # ── Export ───────────────────────────────────────────────────────

    def export_package(self) -> ExportPackage:
        """
        Wrap the persisted blob for transport.

        The vault must be unlocked so the package names its owning device.

        Raises:
            NoPersistedVault: Nothing has been saved on this device
            VaultLocked: The vault exists but is locked
        """
        blob = self.store.load_blob()
        if blob is None:
            raise NoPersistedVault()

        vault = self.store.vault
        if vault is None:
            raise VaultLocked("Unlock the vault before exporting it")
        package = ExportPackage(
            exported_at=utc_now_iso(),
            device_id=vault.device_id,
            vault_data=blob,
        )

        self.logger.log_event(
            event_type=EventType.VAULT_EXPORTED,
            severity=EventSeverity.INFO,
            message="Vault exported",
            details={"device_id": package.device_id},
        )
        return package

    def export_json(self) -> str:
        """Export as indented JSON text, ready to write to a file."""
        return json.dumps(self.export_package().to_dict(), indent=2)

    # ── Import ───────────────────────────────────────────────────────

    async def import_package(self, raw: Union[str, bytes], password: str) -> VaultDecrypted:
        """
        Decrypt an export and fold it into the local vault.

        With no local vault, the imported one is adopted and saved under
        ``password``. With an unlocked local vault, both account lists are
        merged (local first) and saved under the local master password.

        Raises:
            ImportFormatError: Payload is not an export / blob
            ImportWrongPassword: Payload cannot be decrypted with ``password``
            VaultLocked: A local vault exists but is locked
        """
        try:
            vault = await self._import(raw, password)
        except VaultError as exc:
            self.logger.log_event(
                event_type=EventType.VAULT_IMPORT_FAILED,
                severity=EventSeverity.ALERT,
                message="Vault import failed",
                details={"reason": exc.kind.value},
            )
            raise

        self.logger.log_event(
            event_type=EventType.VAULT_IMPORTED,
            severity=EventSeverity.INFO,
            message="Vault imported",
            details={"accounts": len(vault.accounts), "conflicts": len(vault.conflicts)},
        )
        return vault

    async def try_import(self, raw: Union[str, bytes], password: str) -> ImportResult:
        """Like import_package, but returns an ImportResult instead of raising."""
        try:
            vault = await self.import_package(raw, password)
        except VaultError as exc:
            return ImportResult.from_error(exc)
        return ImportResult.success(vault)

    async def _import(self, raw: Union[str, bytes], password: str) -> VaultDecrypted:
        blob = parse_import_payload(raw)

        # A locked vault would be overwritten by adoption; refuse early
        if self.store.state is VaultState.LOCKED:
            raise VaultLocked("Unlock the local vault before importing into it")

        try:
            plaintext = await self.store.decrypt_foreign(blob, password)
        except AuthenticationFailure:
            raise ImportWrongPassword() from None

        try:
            imported = VaultDecrypted.from_dict(parse_plaintext(plaintext), lenient=True)
        except CorruptData as exc:
            raise ImportFormatError(f"Imported vault is unreadable: {exc}") from None

        if not self.store.is_unlocked:
            logger.info("No local vault; adopting imported vault")
            return await self.store.adopt(imported, password)

        def _merge_in(local: VaultDecrypted) -> VaultDecrypted:
            local.accounts = local.accounts + imported.accounts
            local.conflicts = union_conflicts(local.conflicts, imported.conflicts)
            return local

        return await self.store.update(_merge_in)
