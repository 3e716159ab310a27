import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

import keyring
from keyring.backends import fail
from keyring.errors import InitError, KeyringError, KeyringLocked, NoKeyringError, PasswordDeleteError

from authport.core.errors import AuthportError
from authport.core.fileio import atomic_write_json, has_owner_only_mode

logger = logging.getLogger(__name__)

BACKENDS = ("keyring", "file")


class TokenStoreError(AuthportError):
    pass


class StoreUnavailableError(TokenStoreError):
    """The backend as a whole cannot be used; retrying per key is pointless."""


class InvalidBackendError(TokenStoreError):
    def __init__(self, name: str):
        super().__init__(f"invalid token store backend '{name}'. Valid options: 'keyring', 'file'")


# --- Key naming ---

def make_token_key(team_id: str, user_id: str) -> str:
    return f"{team_id}:{user_id}"


def make_user_token_key(team_id: str, user_id: str) -> str:
    return f"{team_id}:{user_id}:user"


def make_oauth_client_secret_key(profile_name: str) -> str:
    return f"oauth-client-secret:{profile_name}"


class TokenStore(ABC):
    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, secret: str):
        ...

    @abstractmethod
    def delete(self, key: str):
        """Remove key; missing keys are not an error."""

    def exists(self, key: str) -> bool:
        return self.get(key) is not None


class InMemoryTokenStore(TokenStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.tokens: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.tokens.get(key)

    def set(self, key: str, secret: str):
        self.tokens[key] = secret

    def delete(self, key: str):
        self.tokens.pop(key, None)


class FileTokenStore(TokenStore):
    """
    JSON map of key -> secret in a single owner-only file. Every mutation
    rewrites the whole file atomically.
    """

    def __init__(self, file_path: Path):
        self.file_path = Path(file_path)
        self.tokens: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        if not self.file_path.exists():
            return {}
        if not has_owner_only_mode(self.file_path):
            logger.warning("token file %s is readable by other users", self.file_path)
        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except OSError as exc:
            raise StoreUnavailableError(f"cannot read token file {self.file_path}: {exc.strerror}") from exc
        except json.JSONDecodeError as exc:
            raise StoreUnavailableError(f"token file {self.file_path} is not valid JSON") from exc
        if not isinstance(data, dict):
            raise StoreUnavailableError(f"token file {self.file_path} has unexpected layout")
        return {str(k): str(v) for k, v in data.items()}

    def _save(self):
        try:
            atomic_write_json(self.file_path, self.tokens)
        except OSError as exc:
            raise TokenStoreError(f"failed to write token file {self.file_path}: {exc.strerror}") from exc

    def get(self, key: str) -> Optional[str]:
        return self.tokens.get(key)

    def set(self, key: str, secret: str):
        previous = self.tokens.get(key)
        self.tokens[key] = secret
        try:
            self._save()
        except TokenStoreError:
            if previous is None:
                self.tokens.pop(key, None)
            else:
                self.tokens[key] = previous
            raise

    def delete(self, key: str):
        if key not in self.tokens:
            return
        previous = self.tokens.pop(key)
        try:
            self._save()
        except TokenStoreError:
            self.tokens[key] = previous
            raise


class KeyringTokenStore(TokenStore):
    def __init__(self, service: str = "authport"):
        self.service = service

    def _wrap(self, exc: KeyringError, action: str, key: str) -> TokenStoreError:
        if isinstance(exc, (NoKeyringError, KeyringLocked, InitError)):
            return StoreUnavailableError(
                f"keyring backend unavailable while trying to {action} '{key}'. "
                "Unlock your OS keyring, or use file-based storage: export AUTHPORT_TOKEN_STORE=file"
            )
        return TokenStoreError(f"keyring failed to {action} '{key}': {type(exc).__name__}")

    def get(self, key: str) -> Optional[str]:
        try:
            return keyring.get_password(self.service, key)
        except KeyringError as exc:
            raise self._wrap(exc, "read", key) from exc

    def set(self, key: str, secret: str):
        try:
            keyring.set_password(self.service, key, secret)
        except KeyringError as exc:
            raise self._wrap(exc, "store", key) from exc

    def delete(self, key: str):
        try:
            keyring.delete_password(self.service, key)
        except PasswordDeleteError:
            # not present
            return
        except KeyringError as exc:
            raise self._wrap(exc, "delete", key) from exc


def resolve_backend(name: Optional[str]) -> str:
    value = (name or "keyring").strip().lower()
    if value not in BACKENDS:
        raise InvalidBackendError(name or "")
    return value


def create_token_store(backend: str, tokens_path: Path, keyring_service: str = "authport") -> TokenStore:
    """
    Build the backend the user configured. There is no fallback from keyring
    to file: an unusable keyring is reported, not worked around.
    """
    backend = resolve_backend(backend)
    if backend == "file":
        return FileTokenStore(tokens_path)
    if isinstance(keyring.get_keyring(), fail.Keyring):
        raise StoreUnavailableError(
            "no OS keyring backend is available. "
            "Use file-based storage instead: export AUTHPORT_TOKEN_STORE=file"
        )
    return KeyringTokenStore(keyring_service)
