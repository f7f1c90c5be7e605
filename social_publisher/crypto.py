"""Token encryption and OAuth flow secrets.

Tokens are stored as ``base64(nonce):base64(tag):base64(ciphertext)`` using
AES-256-GCM, so any tampering is detected on decryption. The key is loaded
once at startup and the cipher is shared read-only.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from social_publisher.errors import ConfigError, DecryptionError, EncryptionError

KEY_BYTES = 32
NONCE_BYTES = 12
TAG_BYTES = 16


def generate_key() -> str:
    """Return a fresh base64-encoded 32-byte key suitable for SOCIAL_ENCRYPTION_KEY."""
    return base64.b64encode(secrets.token_bytes(KEY_BYTES)).decode("ascii")


class TokenCipher:
    """Authenticated encryption of OAuth tokens."""

    def __init__(self, key: bytes) -> None:
        if not isinstance(key, bytes) or len(key) != KEY_BYTES:
            raise ConfigError(f"Encryption key must be exactly {KEY_BYTES} bytes")
        self._aead = AESGCM(key)

    @classmethod
    def from_base64(cls, encoded_key: str | None) -> TokenCipher:
        if not encoded_key:
            raise ConfigError("Encryption key is not configured")
        try:
            key = base64.b64decode(encoded_key, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ConfigError("Encryption key is not valid base64") from exc
        return cls(key)

    def encrypt(self, plaintext: str) -> str:
        if not plaintext:
            raise EncryptionError("Cannot encrypt an empty token")
        nonce = secrets.token_bytes(NONCE_BYTES)
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
        return ":".join(_b64(part) for part in (nonce, tag, ciphertext))

    def decrypt(self, encoded: str) -> str:
        if not encoded:
            raise DecryptionError("Encrypted token is empty")
        parts = encoded.split(":")
        if len(parts) != 3:
            raise DecryptionError("Encrypted token must have 3 colon-separated segments")
        try:
            nonce, tag, ciphertext = (base64.b64decode(p, validate=True) for p in parts)
        except (binascii.Error, ValueError) as exc:
            raise DecryptionError("Encrypted token segment is not valid base64") from exc
        if len(nonce) != NONCE_BYTES:
            raise DecryptionError(f"Nonce must be {NONCE_BYTES} bytes")
        if len(tag) != TAG_BYTES:
            raise DecryptionError(f"Auth tag must be {TAG_BYTES} bytes")
        try:
            plaintext = self._aead.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as exc:
            raise DecryptionError("Token failed authentication (tampered or wrong key)") from exc
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecryptionError("Decrypted token is not valid UTF-8") from exc

    @staticmethod
    def hash(token: str) -> str:
        """One-way digest for equality checks; never used to recover a token."""
        return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_oauth_state() -> str:
    return secrets.token_hex(32)


def verify_oauth_state(candidate: str | None, expected: str | None) -> bool:
    """Constant-time comparison of the echoed OAuth state.

    Lengths are compared first; only equal-length values reach the
    byte comparison.
    """
    if not candidate or not expected:
        return False
    candidate_bytes = candidate.encode("utf-8")
    expected_bytes = expected.encode("utf-8")
    if len(candidate_bytes) != len(expected_bytes):
        return False
    return hmac.compare_digest(candidate_bytes, expected_bytes)


def generate_pkce_pair() -> tuple[str, str]:
    """Return ``(code_verifier, code_challenge)`` for the S256 PKCE method."""
    verifier = secrets.token_urlsafe(64)[:128]
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return verifier, challenge


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")
