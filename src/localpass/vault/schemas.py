# LocalPass - Wire Schemas
#
# Envelopes that leave process memory: the persisted blob and the export
# package. Both are validated with pydantic before any cryptographic work
# happens, so malformed input fails fast with a typed error.

import base64
import binascii
from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .encryption import EncryptionService

EXPORT_VERSION = "1.0"


def _b64(value: str) -> bytes:
    try:
        return base64.b64decode(value.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise ValueError(f"not valid base64: {exc}") from None


class VaultEncryptedFile(BaseModel):
    """Persisted vault blob: ``{salt, iv, data, vaultVersion}``."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    salt: str
    iv: str
    data: str
    vault_version: str = Field("1.0", alias="vaultVersion")

    @field_validator("salt")
    @classmethod
    def _check_salt(cls, value: str) -> str:
        if len(_b64(value)) != EncryptionService.SALT_LENGTH:
            raise ValueError(f"salt must decode to {EncryptionService.SALT_LENGTH} bytes")
        return value

    @field_validator("iv")
    @classmethod
    def _check_iv(cls, value: str) -> str:
        if len(_b64(value)) != EncryptionService.NONCE_LENGTH:
            raise ValueError(f"iv must decode to {EncryptionService.NONCE_LENGTH} bytes")
        return value

    @field_validator("data")
    @classmethod
    def _check_data(cls, value: str) -> str:
        # GCM output always carries a 16-byte tag
        if len(_b64(value)) < 16:
            raise ValueError("data is too short to hold an authentication tag")
        return value

    def decoded(self) -> Tuple[bytes, bytes, bytes]:
        """Return raw ``(salt, iv, ciphertext)`` bytes."""
        decode = EncryptionService.decode_from_storage
        return decode(self.salt), decode(self.iv), decode(self.data)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)


class ExportPackage(BaseModel):
    """Portable export: the encrypted blob plus non-secret metadata."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    export_version: str = Field(EXPORT_VERSION, alias="exportVersion")
    exported_at: str = Field("", alias="exportedAt")
    device_id: str = Field("", alias="deviceId")
    vault_data: VaultEncryptedFile = Field(..., alias="vaultData")

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)
