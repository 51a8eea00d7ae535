"""
Credential sealing for wpagentic-mcp.

Credentials leave the process only in sealed form: AES-256-GCM with a key
derived by scrypt from the application secret. Any modification of a
sealed blob is detected on unseal, and credential blobs are bound to their
session id as associated data so one session's blob never opens as another's.

Encoding:
    v1:<salt b64>:<iv b64>:<ciphertext b64>:<tag b64>

The salt slot is reserved for key rotation; key derivation currently uses
a fixed salt so every process sharing the secret derives the same key.

Usage:
    sealer = CredentialSealer(secret=os.environ["WPAGENTIC_SESSION_SECRET"])
    blob = sealer.seal_credential(credential, session_id)
    credential = sealer.unseal_credential(blob, session_id)
"""

from __future__ import annotations

import base64
import binascii
import json
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from wpagentic_mcp.errors import StorageError
from wpagentic_mcp.types import RemoteCredential

# =============================================================================
# Constants
# =============================================================================

SEAL_VERSION = "v1"
MIN_SECRET_LENGTH = 16

KEY_SALT = b"wpAgentic.static.salt"
KEY_LENGTH = 32  # AES-256
IV_SIZE = 12  # GCM nonce size
TAG_SIZE = 16
RESERVED_SALT_SIZE = 16

# scrypt cost parameters
SCRYPT_N = 2 ** 14
SCRYPT_R = 8
SCRYPT_P = 1


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _unb64(data: str) -> bytes:
    return base64.b64decode(data.encode("ascii"), validate=True)


def derive_key(secret: str) -> bytes:
    """
    Derive the 32-byte AES key from the application secret.

    Raises:
        StorageError: If the secret is missing or too short
    """
    if not secret or len(secret) < MIN_SECRET_LENGTH:
        raise StorageError(
            "Encryption secret not configured. Set WPAGENTIC_SESSION_SECRET "
            f"(at least {MIN_SECRET_LENGTH} characters)."
        )
    kdf = Scrypt(salt=KEY_SALT, length=KEY_LENGTH, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
    return kdf.derive(secret.encode("utf-8"))


class CredentialSealer:
    """
    Seals and unseals secrets with AES-256-GCM.

    The key is derived once at construction.
    """

    def __init__(self, secret: str) -> None:
        self._aead = AESGCM(derive_key(secret))

    def seal(self, plain_text: str, associated_data: Optional[bytes] = None) -> str:
        """Encrypt a string into the v1 encoding."""
        iv = os.urandom(IV_SIZE)
        sealed = self._aead.encrypt(iv, plain_text.encode("utf-8"), associated_data)
        ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
        salt = os.urandom(RESERVED_SALT_SIZE)
        return ":".join([SEAL_VERSION, _b64(salt), _b64(iv), _b64(ciphertext), _b64(tag)])

    def unseal(self, encoded: str, associated_data: Optional[bytes] = None) -> str:
        """
        Decrypt a v1 encoded string.

        Raises:
            StorageError: If the blob is malformed, of another version, or
                was modified after sealing
        """
        parts = encoded.split(":") if isinstance(encoded, str) else []
        if len(parts) != 5:
            raise StorageError("Malformed sealed secret")

        version, _salt_b64, iv_b64, ct_b64, tag_b64 = parts
        if version != SEAL_VERSION:
            raise StorageError(f"Unsupported secret encoding: {version!r}")

        try:
            iv = _unb64(iv_b64)
            ciphertext = _unb64(ct_b64)
            tag = _unb64(tag_b64)
        except (binascii.Error, ValueError) as e:
            raise StorageError(f"Malformed sealed secret: {e}") from e

        if len(iv) != IV_SIZE or len(tag) != TAG_SIZE:
            raise StorageError("Malformed sealed secret")

        try:
            plain = self._aead.decrypt(iv, ciphertext + tag, associated_data)
        except InvalidTag as e:
            raise StorageError("Sealed secret failed authentication") from e

        return plain.decode("utf-8")

    def seal_credential(self, credential: RemoteCredential, session_id: str) -> str:
        """Seal a credential's JSON form, bound to session_id."""
        return self.seal(
            json.dumps(credential.to_dict(), separators=(",", ":")),
            associated_data=session_id.encode("utf-8"),
        )

    def unseal_credential(self, encoded: str, session_id: str) -> RemoteCredential:
        """
        Unseal a credential sealed for session_id.

        Raises:
            StorageError: If the blob does not authenticate for this session
                or does not decode
        """
        plain = self.unseal(encoded, associated_data=session_id.encode("utf-8"))
        try:
            return RemoteCredential.from_dict(json.loads(plain))
        except ValueError as e:
            raise StorageError(f"Sealed credential is invalid: {e}") from e
