import secrets
from dataclasses import dataclass, field
from typing import Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.argon2 import Argon2id

from authport.core.errors import AuthportError

# --- Parameters ---
KDF_NAME = "argon2id"
KEY_LEN = 32
SALT_LEN = 16
NONCE_LEN = 12
DEFAULT_MEMORY_COST = 19456  # KiB (19 MiB)
DEFAULT_TIME_COST = 2
DEFAULT_PARALLELISM = 1

# Upper bounds accepted when reading parameters back from a file
MIN_SALT_LEN = 8
MAX_MEMORY_COST = 1024 * 1024  # 1 GiB
MAX_TIME_COST = 16
MAX_PARALLELISM = 16


class CryptoError(AuthportError):
    pass


class DecryptionError(CryptoError):
    pass


class EmptyPassphraseError(CryptoError):
    def __init__(self):
        super().__init__("empty passphrase not allowed")


def generate_salt() -> bytes:
    return secrets.token_bytes(SALT_LEN)


def generate_nonce() -> bytes:
    return secrets.token_bytes(NONCE_LEN)


@dataclass
class KdfParams:
    """Argon2id cost parameters plus the salt they were used with."""

    salt: bytes = field(default_factory=generate_salt)
    memory_cost: int = DEFAULT_MEMORY_COST
    time_cost: int = DEFAULT_TIME_COST
    parallelism: int = DEFAULT_PARALLELISM

    def validate(self):
        if len(self.salt) < MIN_SALT_LEN:
            raise CryptoError("kdf salt too short")
        if not 1 <= self.parallelism <= MAX_PARALLELISM:
            raise CryptoError("kdf parallelism out of range")
        if not 1 <= self.time_cost <= MAX_TIME_COST:
            raise CryptoError("kdf time cost out of range")
        if not 8 * self.parallelism <= self.memory_cost <= MAX_MEMORY_COST:
            raise CryptoError("kdf memory cost out of range")

    def fresh(self) -> "KdfParams":
        """Same costs, new salt."""
        return KdfParams(
            memory_cost=self.memory_cost,
            time_cost=self.time_cost,
            parallelism=self.parallelism,
        )


def derive_key(passphrase: str, params: KdfParams) -> bytes:
    if not passphrase:
        raise EmptyPassphraseError()
    params.validate()
    kdf = Argon2id(
        salt=params.salt,
        length=KEY_LEN,
        iterations=params.time_cost,
        lanes=params.parallelism,
        memory_cost=params.memory_cost,
    )
    return kdf.derive(passphrase.encode("utf-8"))


def encrypt(
    plaintext: bytes,
    key: bytes,
    associated_data: bytes | None = None,
    nonce: bytes | None = None,
) -> Tuple[bytes, bytes]:
    """
    AES-256-GCM. A random nonce is drawn unless the caller already has one
    (needed when the nonce is itself part of the associated data).
    Returns (nonce, ciphertext); the ciphertext carries the 16-byte tag.
    """
    if len(key) != KEY_LEN:
        raise CryptoError("invalid key length")
    nonce = nonce or generate_nonce()
    if len(nonce) != NONCE_LEN:
        raise CryptoError("invalid nonce length")
    ct = AESGCM(key).encrypt(nonce, plaintext, associated_data)
    return nonce, ct


def decrypt(nonce: bytes, ciphertext: bytes, key: bytes, associated_data: bytes | None = None) -> bytes:
    if len(key) != KEY_LEN:
        raise CryptoError("invalid key length")
    if len(nonce) != NONCE_LEN:
        raise DecryptionError("invalid nonce length")
    try:
        return AESGCM(key).decrypt(nonce, ciphertext, associated_data)
    except InvalidTag as exc:
        # Wrong passphrase and tampered data are deliberately indistinguishable
        raise DecryptionError("decryption failed: wrong passphrase or corrupted file") from exc
