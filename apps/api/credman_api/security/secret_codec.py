"""Client secret encryption and display masking.

SECURITY:
- AES-256-GCM (AEAD) with a fresh 96-bit nonce per encryption
- Blob layout: version(1 byte) | nonce(12) | ciphertext+tag, base64url (no padding)
- The version byte selects the key on decrypt, so keys can be rotated by adding
  CREDMAN_ENCRYPTION_KEY_V<n+1> and switching CREDMAN_ENCRYPTION_KEY_VERSION
- Decryption fails closed: any malformed blob or tag mismatch raises CodecError
- Plaintext, ciphertext and key material are never logged
"""

import base64
import binascii
import logging
import os
from typing import Callable, Mapping, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from credman_api.config.env import AES_KEY_BYTES, get_active_key_version, get_encryption_key
from credman_api.errors import CodecError

logger = logging.getLogger(__name__)

NONCE_BYTES = 12
TAG_BYTES = 16
VERSION_BYTES = 1

MASK_CHAR = "*"
MASK_VISIBLE_SUFFIX = 4
MASK_PLACEHOLDER = MASK_CHAR * MASK_VISIBLE_SUFFIX


def mask(value: Optional[str]) -> str:
    """Mask a plaintext secret for display.

    Keeps the last 4 characters and replaces everything before them with '*'.
    None or anything shorter than 4 characters becomes "****".
    """
    if value is None or len(value) < MASK_VISIBLE_SUFFIX:
        return MASK_PLACEHOLDER
    hidden = len(value) - MASK_VISIBLE_SUFFIX
    return MASK_CHAR * hidden + value[hidden:]


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64decode(blob: str) -> bytes:
    padded = blob + "=" * (-len(blob) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


class SecretCodec:
    """Symmetric AEAD codec for client secrets.

    Keys are loaded lazily per version through ``key_loader`` and cached; the
    instance is safe to share across threads because the cache only ever grows
    with immutable values and AESGCM objects are stateless.
    """

    def __init__(
        self,
        keys: Optional[Mapping[int, bytes]] = None,
        active_version: Optional[int] = None,
        key_loader: Callable[[int], bytes] = get_encryption_key,
    ):
        self._key_loader = key_loader
        self._ciphers: dict[int, AESGCM] = {}
        for version, key in (keys or {}).items():
            self._ciphers[version] = self._build_cipher(version, key)
        self.active_version = active_version if active_version is not None else get_active_key_version()
        if not 1 <= self.active_version <= 255:
            raise ValueError(f"Key version must be between 1 and 255, got {self.active_version}")
        # Active key must resolve at construction
        self._cipher_for(self.active_version)

    @staticmethod
    def _build_cipher(version: int, key: bytes) -> AESGCM:
        if len(key) != AES_KEY_BYTES:
            raise ValueError(f"Encryption key v{version} must be {AES_KEY_BYTES} bytes, got {len(key)}")
        return AESGCM(key)

    def _cipher_for(self, version: int) -> AESGCM:
        cipher = self._ciphers.get(version)
        if cipher is None:
            cipher = self._build_cipher(version, self._key_loader(version))
            self._ciphers[version] = cipher
        return cipher

    def encrypt(self, plaintext: str) -> str:
        """Encrypt ``plaintext`` into a text-safe, versioned blob."""
        if plaintext is None:
            raise CodecError()
        nonce = os.urandom(NONCE_BYTES)
        try:
            sealed = self._cipher_for(self.active_version).encrypt(nonce, plaintext.encode("utf-8"), None)
        except Exception:
            logger.error(
                "Client secret encryption failed",
                extra={"event": "codec.encrypt_failed", "key_version": self.active_version},
            )
            raise CodecError() from None
        return _b64encode(bytes([self.active_version]) + nonce + sealed)

    def decrypt(self, blob: str) -> str:
        """Decrypt a blob produced by ``encrypt``.

        Raises:
            CodecError: On malformed input, unknown key version or tag mismatch
        """
        try:
            raw = _b64decode(blob)
        except (binascii.Error, ValueError, AttributeError, UnicodeEncodeError):
            self._log_decrypt_failure("malformed_encoding")
            raise CodecError() from None

        if len(raw) < VERSION_BYTES + NONCE_BYTES + TAG_BYTES:
            self._log_decrypt_failure("too_short")
            raise CodecError()

        version = raw[0]
        nonce = raw[VERSION_BYTES:VERSION_BYTES + NONCE_BYTES]
        sealed = raw[VERSION_BYTES + NONCE_BYTES:]

        try:
            cipher = self._cipher_for(version)
        except ValueError:
            self._log_decrypt_failure("unknown_key_version", key_version=version)
            raise CodecError() from None

        try:
            plaintext = cipher.decrypt(nonce, sealed, None)
        except InvalidTag:
            self._log_decrypt_failure("tag_mismatch", key_version=version)
            raise CodecError() from None

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError:
            self._log_decrypt_failure("not_utf8", key_version=version)
            raise CodecError() from None

    @staticmethod
    def _log_decrypt_failure(reason: str, key_version: Optional[int] = None) -> None:
        logger.error(
            "Client secret decryption failed",
            extra={"event": "codec.decrypt_failed", "reason": reason, "key_version": key_version},
        )

    def mask(self, plaintext: Optional[str]) -> str:
        return mask(plaintext)
