# LocalPass - Vault Encryption Service
#
# Master password -> vault key (PBKDF2-HMAC-SHA512)
# Vault payload encryption (AES-256-GCM, tag appended to ciphertext)
# Fresh random salt and nonce for every save

import base64
import binascii
import os
from typing import Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .errors import AuthenticationFailure, CorruptData


class EncryptionService:
    """
    Handles key derivation and authenticated encryption for the vault blob.

    Flow:
    1. User enters master password
    2. PBKDF2-SHA512 derives a 256-bit key from password + 16-byte salt
    3. AES-256-GCM encrypts/decrypts the serialized vault
    4. Every encryption uses a fresh 96-bit nonce
    """

    PBKDF2_ITERATIONS = 210_000
    KEY_LENGTH = 32  # 256 bits for AES-256
    SALT_LENGTH = 16
    NONCE_LENGTH = 12  # 96-bit nonce for GCM

    @staticmethod
    def derive_key(
        master_password: str,
        salt: bytes,
        iterations: int = PBKDF2_ITERATIONS,
    ) -> bytes:
        """
        Derive the vault key from the master password using PBKDF2.

        Args:
            master_password: User's master password
            salt: 16-byte random salt (stored alongside the ciphertext)
            iterations: PBKDF2 rounds

        Returns:
            256-bit encryption key

        Raises:
            ValueError: If the salt is not 16 bytes or iterations < 1
        """
        if len(salt) != EncryptionService.SALT_LENGTH:
            raise ValueError(
                f"salt must be {EncryptionService.SALT_LENGTH} bytes, got {len(salt)}"
            )
        if iterations < 1:
            raise ValueError("iterations must be >= 1")

        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA512(),
            length=EncryptionService.KEY_LENGTH,
            salt=salt,
            iterations=iterations,
        )
        return kdf.derive(master_password.encode("utf-8"))

    @staticmethod
    def generate_salt() -> bytes:
        """Generate cryptographically random salt."""
        return os.urandom(EncryptionService.SALT_LENGTH)

    @staticmethod
    def encrypt(plaintext: bytes, key: bytes) -> Tuple[bytes, bytes]:
        """
        Encrypt bytes using AES-256-GCM.

        Args:
            plaintext: Serialized vault
            key: 256-bit key (from derive_key)

        Returns:
            Tuple of (ciphertext_with_tag, nonce)
        """
        EncryptionService._check_key(key)
        # A nonce is never reused with the same key
        nonce = os.urandom(EncryptionService.NONCE_LENGTH)
        ciphertext = AESGCM(key).encrypt(nonce, plaintext, None)
        return ciphertext, nonce

    @staticmethod
    def decrypt(ciphertext: bytes, key: bytes, nonce: bytes) -> bytes:
        """
        Decrypt AES-256-GCM ciphertext.

        Raises:
            AuthenticationFailure: Wrong key, corrupted or tampered ciphertext
            ValueError: Malformed key or nonce (programmer error)
        """
        EncryptionService._check_key(key)
        if len(nonce) != EncryptionService.NONCE_LENGTH:
            raise ValueError(
                f"nonce must be {EncryptionService.NONCE_LENGTH} bytes, got {len(nonce)}"
            )
        try:
            return AESGCM(key).decrypt(nonce, ciphertext, None)
        except InvalidTag:
            raise AuthenticationFailure() from None

    @staticmethod
    def _check_key(key: bytes) -> None:
        if not isinstance(key, (bytes, bytearray)) or len(key) != EncryptionService.KEY_LENGTH:
            raise ValueError(f"key must be {EncryptionService.KEY_LENGTH} bytes")

    @staticmethod
    def encode_for_storage(data: bytes) -> str:
        """Encode binary data as standard base64 text for the JSON blob."""
        return base64.b64encode(data).decode("ascii")

    @staticmethod
    def decode_from_storage(data: str) -> bytes:
        """
        Decode base64 text from the JSON blob.

        Raises:
            CorruptData: If the text is not valid base64
        """
        try:
            return base64.b64decode(data.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError, AttributeError) as exc:
            raise CorruptData(f"Invalid base64 field: {exc}") from None
