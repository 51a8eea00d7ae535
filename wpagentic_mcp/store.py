"""
Per-session credential storage.

A store holds at most one RemoteCredential per session:
- save() replaces the session's credential in a single step; a concurrent
  reader sees either the old or the new credential, never a mix
- load() never fails; an absent or unreadable credential is None
- clear() is idempotent

Back ends:
- MemoryCredentialStore: process-local dict (tests, single-process apps)
- SealedCredentialStore: sealed blobs in any mutable mapping (a session
  record, a cookie jar, a cache client with a dict interface)
- FileCredentialStore: sealed blobs as files in a per-user data directory
"""

from __future__ import annotations

import abc
import hashlib
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, MutableMapping, Optional, Union

from platformdirs import user_data_dir

from wpagentic_mcp.crypto import CredentialSealer
from wpagentic_mcp.errors import StorageError
from wpagentic_mcp.types import RemoteCredential

logger = logging.getLogger(__name__)


def _require_session(session_id: Optional[str]) -> str:
    if not isinstance(session_id, str) or not session_id.strip():
        raise StorageError("Cannot identify session for credential storage")
    return session_id


def _is_session(session_id: Optional[str]) -> bool:
    return isinstance(session_id, str) and bool(session_id.strip())


class CredentialStore(abc.ABC):
    """Interface every credential back end implements."""

    @abc.abstractmethod
    def save(self, session_id: str, credential: RemoteCredential) -> None:
        """
        Store the credential for a session, replacing any previous one.

        Raises:
            StorageError: If the session cannot be identified or the
                back end cannot persist
        """

    @abc.abstractmethod
    def load(self, session_id: str) -> Optional[RemoteCredential]:
        """Return the session's credential, or None if there is none."""

    @abc.abstractmethod
    def clear(self, session_id: str) -> None:
        """Remove the session's credential; no-op when absent."""

    def has_credential(self, session_id: str) -> bool:
        return self.load(session_id) is not None


class MemoryCredentialStore(CredentialStore):
    """Credentials in a process-local dict."""

    def __init__(self) -> None:
        self._credentials: Dict[str, RemoteCredential] = {}
        self._lock = threading.Lock()

    def save(self, session_id: str, credential: RemoteCredential) -> None:
        session_id = _require_session(session_id)
        if not isinstance(credential, RemoteCredential):
            raise StorageError("Only RemoteCredential instances can be stored")
        with self._lock:
            self._credentials[session_id] = credential

    def load(self, session_id: str) -> Optional[RemoteCredential]:
        if not _is_session(session_id):
            return None
        with self._lock:
            return self._credentials.get(session_id)

    def clear(self, session_id: str) -> None:
        if not _is_session(session_id):
            return
        with self._lock:
            self._credentials.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._credentials)


class SealedCredentialStore(CredentialStore):
    """
    Sealed credentials in a caller-supplied mapping.

    Each session's credential is one sealed string under
    "<key_prefix><session_id>", so a save is a single item assignment.
    Blobs are bound to their session id; blobs that fail authentication,
    including one copied under another session's key, are reported as absent.
    """

    def __init__(
        self,
        sealer: CredentialSealer,
        backend: Optional[MutableMapping[str, str]] = None,
        key_prefix: str = "wpagentic:credential:",
    ) -> None:
        self.sealer = sealer
        self.backend: MutableMapping[str, str] = backend if backend is not None else {}
        self.key_prefix = key_prefix

    def _key(self, session_id: str) -> str:
        return f"{self.key_prefix}{session_id}"

    def save(self, session_id: str, credential: RemoteCredential) -> None:
        session_id = _require_session(session_id)
        blob = self.sealer.seal_credential(credential, session_id)
        try:
            self.backend[self._key(session_id)] = blob
        except Exception as e:
            raise StorageError(f"Failed to persist credential: {e}") from e

    def load(self, session_id: str) -> Optional[RemoteCredential]:
        if not _is_session(session_id):
            return None
        try:
            blob = self.backend.get(self._key(session_id))
        except Exception as e:
            logger.warning(f"Credential back end unavailable on load: {e}")
            return None
        if blob is None:
            return None

        try:
            return self.sealer.unseal_credential(blob, session_id)
        except StorageError as e:
            logger.warning(f"Ignoring unreadable credential for session: {e}")
            return None

    def clear(self, session_id: str) -> None:
        if not _is_session(session_id):
            return
        try:
            self.backend.pop(self._key(session_id), None)
        except Exception as e:
            raise StorageError(f"Failed to clear credential: {e}") from e


def get_store_dir() -> Path:
    """Get the default directory for file-backed credentials."""
    return Path(user_data_dir("wpagentic-mcp", "wpagentic")) / "sessions"


class FileCredentialStore(CredentialStore):
    """
    Sealed credentials as one file per session.

    File names are SHA-256 digests of the session id. Writes go to a
    temporary file in the same directory and are moved into place with
    os.replace(), so readers never observe a partially written file.
    """

    def __init__(
        self,
        sealer: CredentialSealer,
        directory: Optional[Union[str, Path]] = None,
    ) -> None:
        self.sealer = sealer
        self.directory = Path(directory) if directory else get_store_dir()

    def _path(self, session_id: str) -> Path:
        digest = hashlib.sha256(session_id.encode("utf-8")).hexdigest()
        return self.directory / f"{digest}.cred"

    def save(self, session_id: str, credential: RemoteCredential) -> None:
        session_id = _require_session(session_id)
        blob = self.sealer.seal_credential(credential, session_id)
        target = self._path(session_id)

        tmp_path = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=".cred")
            with os.fdopen(fd, "w", encoding="ascii") as f:
                f.write(blob)
            # Set restrictive permissions (owner read/write only)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, target)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StorageError(f"Failed to write credential file: {e}") from e

        logger.debug(f"Saved credential file {target.name}")

    def load(self, session_id: str) -> Optional[RemoteCredential]:
        if not _is_session(session_id):
            return None
        path = self._path(session_id)
        try:
            blob = path.read_text(encoding="ascii")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Unable to read credential file {path.name}: {e}")
            return None

        try:
            return self.sealer.unseal_credential(blob.strip(), session_id)
        except StorageError as e:
            logger.warning(f"Ignoring unreadable credential file {path.name}: {e}")
            return None

    def clear(self, session_id: str) -> None:
        if not _is_session(session_id):
            return
        try:
            self._path(session_id).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Failed to remove credential file: {e}") from e
