"""
Binary container for exported credentials.

Layout (all integers u32 big-endian):

    magic (8) | format_version | kdf_len | kdf_json | nonce_len | nonce | ct_len | ciphertext

Everything up to and including the nonce is authenticated as associated data.
"""

import base64
import binascii
import json
import struct
from dataclasses import dataclass

from authport.core import crypto
from authport.core.crypto import KdfParams
from authport.core.errors import AuthportError

MAGIC = b"AUTHPORT"
FORMAT_VERSION = 1
SUPPORTED_VERSIONS = (1,)

_U32 = struct.Struct(">I")


class FormatError(AuthportError):
    pass


class InvalidMagicError(FormatError):
    def __init__(self):
        super().__init__("not an authport export file (invalid magic bytes)")


class UnsupportedVersionError(FormatError):
    def __init__(self, version: int, kind: str = "envelope"):
        super().__init__(f"unsupported {kind} format version: {version}")
        self.version = version


class EnvelopeFormatError(FormatError):
    pass


@dataclass
class Envelope:
    format_version: int
    kdf_params: KdfParams
    nonce: bytes
    ciphertext: bytes
    header: bytes


def _kdf_to_json(params: KdfParams) -> bytes:
    return json.dumps(
        {
            "kdf": crypto.KDF_NAME,
            "salt": base64.b64encode(params.salt).decode("utf-8"),
            "memory_cost": params.memory_cost,
            "time_cost": params.time_cost,
            "parallelism": params.parallelism,
        },
        separators=(",", ":"),
    ).encode("utf-8")


def _kdf_from_json(raw: bytes) -> KdfParams:
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise EnvelopeFormatError("invalid kdf parameters") from exc
    if not isinstance(data, dict):
        raise EnvelopeFormatError("invalid kdf parameters")
    # Files written before the name was recorded are argon2id as well
    if data.get("kdf", crypto.KDF_NAME) != crypto.KDF_NAME:
        raise EnvelopeFormatError(f"unsupported kdf: {data.get('kdf')}")
    salt_b64 = data.get("salt")
    if not isinstance(salt_b64, str):
        raise EnvelopeFormatError("missing salt")
    try:
        salt = base64.b64decode(salt_b64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise EnvelopeFormatError("invalid salt encoding") from exc
    values = {}
    for name in ("memory_cost", "time_cost", "parallelism"):
        value = data.get(name)
        if not isinstance(value, int) or isinstance(value, bool):
            raise EnvelopeFormatError(f"missing {name}")
        values[name] = value
    params = KdfParams(salt=salt, **values)
    try:
        params.validate()
    except crypto.CryptoError as exc:
        raise EnvelopeFormatError(str(exc)) from exc
    return params


class _Reader:
    def __init__(self, data: bytes):
        self.data = data
        self.pos = 0

    def take(self, n: int, what: str) -> bytes:
        if len(self.data) < self.pos + n:
            raise EnvelopeFormatError(f"truncated file: missing {what}")
        chunk = self.data[self.pos : self.pos + n]
        self.pos += n
        return chunk

    def u32(self, what: str) -> int:
        return _U32.unpack(self.take(_U32.size, what))[0]

    def block(self, what: str) -> bytes:
        length = self.u32(f"{what} length")
        return self.take(length, what)


def _frame(*blocks: bytes) -> bytes:
    out = bytearray()
    for b in blocks:
        out += _U32.pack(len(b))
        out += b
    return bytes(out)


def encode_envelope(plaintext: bytes, passphrase: str, params: KdfParams | None = None) -> bytes:
    """
    Encrypt plaintext under a key derived from passphrase. A fresh salt and
    nonce are generated on every call; only the cost settings of params are used.
    """
    params = (params or KdfParams()).fresh()
    key = crypto.derive_key(passphrase, params)
    nonce = crypto.generate_nonce()
    header = MAGIC + _U32.pack(FORMAT_VERSION) + _frame(_kdf_to_json(params), nonce)
    _, ct = crypto.encrypt(plaintext, key, associated_data=header, nonce=nonce)
    return header + _frame(ct)


def parse_envelope(data: bytes) -> Envelope:
    reader = _Reader(data)
    if len(data) < len(MAGIC) or reader.take(len(MAGIC), "magic") != MAGIC:
        raise InvalidMagicError()
    version = reader.u32("format version")
    if version not in SUPPORTED_VERSIONS:
        raise UnsupportedVersionError(version)
    params = _kdf_from_json(reader.block("kdf parameters"))
    nonce = reader.block("nonce")
    header_end = reader.pos
    ciphertext = reader.block("ciphertext")
    if reader.pos != len(data):
        raise EnvelopeFormatError("unexpected trailing data")
    return Envelope(
        format_version=version,
        kdf_params=params,
        nonce=nonce,
        ciphertext=ciphertext,
        header=data[:header_end],
    )


def decode_envelope(data: bytes, passphrase: str) -> bytes:
    envelope = parse_envelope(data)
    key = crypto.derive_key(passphrase, envelope.kdf_params)
    return crypto.decrypt(envelope.nonce, envelope.ciphertext, key, envelope.header)
