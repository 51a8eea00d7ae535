"""Tests for wpagentic_mcp.crypto module."""

import base64

import pytest

from wpagentic_mcp.crypto import CredentialSealer, derive_key
from wpagentic_mcp.errors import StorageError


def flip_ciphertext_byte(blob: str) -> str:
    version, salt, iv, ct, tag = blob.split(":")
    raw = bytearray(base64.b64decode(ct))
    raw[0] ^= 0x01
    return ":".join([version, salt, iv, base64.b64encode(bytes(raw)).decode("ascii"), tag])


class TestDeriveKey:
    def test_key_length(self, session_secret):
        assert len(derive_key(session_secret)) == 32

    def test_deterministic(self, session_secret):
        assert derive_key(session_secret) == derive_key(session_secret)

    def test_short_secret_rejected(self):
        with pytest.raises(StorageError, match="secret"):
            derive_key("too-short")

    def test_missing_secret_rejected(self):
        with pytest.raises(StorageError):
            derive_key("")


class TestCredentialSealer:
    """Tests for CredentialSealer."""

    def test_round_trip(self, session_secret):
        sealer = CredentialSealer(session_secret)
        assert sealer.unseal(sealer.seal("hello")) == "hello"

    def test_encoding_format(self, session_secret):
        blob = CredentialSealer(session_secret).seal("hello")
        parts = blob.split(":")
        assert len(parts) == 5
        assert parts[0] == "v1"
        assert "hello" not in blob

    def test_fresh_iv_per_seal(self, session_secret):
        sealer = CredentialSealer(session_secret)
        assert sealer.seal("hello") != sealer.seal("hello")

    def test_tampered_ciphertext_rejected(self, session_secret):
        sealer = CredentialSealer(session_secret)
        blob = flip_ciphertext_byte(sealer.seal("hello world"))
        with pytest.raises(StorageError, match="authentication"):
            sealer.unseal(blob)

    def test_other_secret_rejected(self, session_secret):
        blob = CredentialSealer(session_secret).seal("hello")
        with pytest.raises(StorageError):
            CredentialSealer("a-completely-different-secret").unseal(blob)

    @pytest.mark.parametrize("blob", ["", "v1:a:b", "v2:a:b:c:d", "v1:!!:!!:!!:!!"])
    def test_malformed_rejected(self, session_secret, blob):
        with pytest.raises(StorageError):
            CredentialSealer(session_secret).unseal(blob)

    def test_credential_round_trip(self, session_secret, credential):
        sealer = CredentialSealer(session_secret)
        blob = sealer.seal_credential(credential, "user-1")
        assert credential.token not in blob
        assert sealer.unseal_credential(blob, "user-1") == credential

    def test_credential_bound_to_session(self, session_secret, credential):
        sealer = CredentialSealer(session_secret)
        blob = sealer.seal_credential(credential, "alice")
        with pytest.raises(StorageError, match="authentication"):
            sealer.unseal_credential(blob, "mallory")

    def test_associated_data_must_match(self, session_secret):
        sealer = CredentialSealer(session_secret)
        blob = sealer.seal("hello", associated_data=b"alice")
        assert sealer.unseal(blob, associated_data=b"alice") == "hello"
        with pytest.raises(StorageError):
            sealer.unseal(blob)

    def test_sealed_non_credential_rejected(self, session_secret):
        sealer = CredentialSealer(session_secret)
        with pytest.raises(StorageError):
            sealer.unseal_credential(sealer.seal('{"baseUrl": "https://x.example"}', b"user-1"), "user-1")
