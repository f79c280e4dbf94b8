"""
Symmetric encryption utilities for stored service credentials.

This module is the credential vault: API keys and passwords are encrypted
before they are written to the configuration store and decrypted when a
service client needs them for an outbound call.

Algorithm:
- AES-256-GCM (authenticated encryption) via ``cryptography``
- A fresh 16-byte salt and a fresh 12-byte nonce are drawn for every call
- The 32-byte key is derived per call from ENCRYPTION_KEY with scrypt,
  seeded with that salt, so no single long-lived key protects every record

Blob layout (base64 encoded as one text value):
    salt (16) || nonce (12) || auth tag (16) || ciphertext

Security Notes:
- Decryption fails closed: any tag mismatch raises DecryptionFailedError
- A missing or short ENCRYPTION_KEY raises EncryptionNotConfiguredError on
  every read of the key, never silently disabling encryption
- Changing ENCRYPTION_KEY invalidates all stored credentials
- Never log or expose decrypted values

Usage:
    from mediahub.core.encryption import encrypt_secret, decrypt_secret

    encrypted = encrypt_secret("radarr-api-key")
    original = decrypt_secret(encrypted)
"""
import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from mediahub.core.config import settings, MIN_ENCRYPTION_KEY_LENGTH
from mediahub.core.exceptions import DecryptionFailedError, EncryptionNotConfiguredError
from mediahub.core.logging_config import LogCategory, log_warning

SALT_LENGTH = 16
NONCE_LENGTH = 12
TAG_LENGTH = 16
KEY_LENGTH = 32

_HEADER_LENGTH = SALT_LENGTH + NONCE_LENGTH + TAG_LENGTH


def _get_master_secret() -> bytes:
    """
    Read ENCRYPTION_KEY from settings.

    Raises:
        EncryptionNotConfiguredError: If the key is absent or too short
    """
    key = settings.encryption_key
    if not key:
        raise EncryptionNotConfiguredError(
            "ENCRYPTION_KEY environment variable is not set. "
            "Please generate a secure key using: openssl rand -base64 32"
        )
    if len(key) < MIN_ENCRYPTION_KEY_LENGTH:
        raise EncryptionNotConfiguredError(
            f"ENCRYPTION_KEY must be at least {MIN_ENCRYPTION_KEY_LENGTH} characters long "
            "for adequate security."
        )
    return key.encode('utf-8')


def _derive_key(master_secret: bytes, salt: bytes) -> bytes:
    """Derive a 256-bit AES key from the master secret with scrypt."""
    kdf = Scrypt(
        salt=salt,
        length=KEY_LENGTH,
        n=settings.encryption_scrypt_n,
        r=settings.encryption_scrypt_r,
        p=settings.encryption_scrypt_p,
    )
    return kdf.derive(master_secret)


def encrypt_secret(plaintext: str) -> str:
    """
    Encrypt a credential with AES-256-GCM.

    Args:
        plaintext: The value to encrypt (API key, password, "user:pass" pair)

    Returns:
        Base64 encoded ``salt || nonce || tag || ciphertext`` blob
    """
    if plaintext is None:
        raise ValueError("Cannot encrypt None")

    master_secret = _get_master_secret()
    salt = os.urandom(SALT_LENGTH)
    nonce = os.urandom(NONCE_LENGTH)
    key = _derive_key(master_secret, salt)

    # AESGCM appends the tag to the ciphertext
    sealed = AESGCM(key).encrypt(nonce, plaintext.encode('utf-8'), None)
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]

    return base64.b64encode(salt + nonce + tag + ciphertext).decode('ascii')


def decrypt_secret(encrypted: str) -> str:
    """
    Decrypt a blob produced by encrypt_secret.

    Raises:
        DecryptionFailedError: If the blob is malformed, was tampered with,
            or was encrypted with a different key
        EncryptionNotConfiguredError: If ENCRYPTION_KEY is unusable
    """
    master_secret = _get_master_secret()

    if not encrypted:
        raise DecryptionFailedError("Cannot decrypt an empty value")

    try:
        combined = base64.b64decode(encrypted.encode('ascii'), validate=True)
    except (binascii.Error, ValueError, UnicodeEncodeError) as e:
        raise DecryptionFailedError("Invalid encrypted data: not valid base64") from e

    if len(combined) < _HEADER_LENGTH:
        raise DecryptionFailedError("Invalid encrypted data: data too short")

    salt = combined[:SALT_LENGTH]
    nonce = combined[SALT_LENGTH:SALT_LENGTH + NONCE_LENGTH]
    tag = combined[SALT_LENGTH + NONCE_LENGTH:_HEADER_LENGTH]
    ciphertext = combined[_HEADER_LENGTH:]

    key = _derive_key(master_secret, salt)
    try:
        plaintext = AESGCM(key).decrypt(nonce, ciphertext + tag, None)
    except InvalidTag as e:
        log_warning("Credential decryption failed: authentication tag mismatch",
                    category=LogCategory.SECURITY)
        raise DecryptionFailedError(
            "Decryption failed: data may be corrupted or encrypted with a different key"
        ) from e

    try:
        return plaintext.decode('utf-8')
    except UnicodeDecodeError as e:
        raise DecryptionFailedError("Decryption failed: plaintext is not valid UTF-8") from e


def is_encryption_configured() -> bool:
    """
    Check whether ENCRYPTION_KEY is set and meets the minimum length.

    Useful for startup validation without raising.
    """
    return settings.encryption_configured
