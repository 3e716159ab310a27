import base64
import json
import struct
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest

from authport.core.crypto import DecryptionError, EmptyPassphraseError, KdfParams
from authport.core.envelope import (
    MAGIC,
    EnvelopeFormatError,
    FormatError,
    InvalidMagicError,
    UnsupportedVersionError,
    decode_envelope,
    encode_envelope,
    parse_envelope,
)

PLAINTEXT = b'{"format_version":2,"profiles":[]}'


def _blob(fast_kdf, passphrase="pw-1"):
    return encode_envelope(PLAINTEXT, passphrase, fast_kdf)


def _frame(b: bytes) -> bytes:
    return struct.pack(">I", len(b)) + b


def _with_kdf(kdf: dict) -> bytes:
    raw = json.dumps(kdf).encode("utf-8")
    return MAGIC + struct.pack(">I", 1) + _frame(raw) + _frame(bytes(12)) + _frame(bytes(32))


def _kdf(**overrides):
    values = {
        "kdf": "argon2id",
        "salt": base64.b64encode(bytes(16)).decode(),
        "memory_cost": 64,
        "time_cost": 1,
        "parallelism": 1,
    }
    values.update(overrides)
    return values


def test_round_trip(fast_kdf):
    assert decode_envelope(_blob(fast_kdf), "pw-1") == PLAINTEXT


def test_envelope_starts_with_magic_and_records_params(fast_kdf):
    blob = _blob(fast_kdf)
    assert blob.startswith(MAGIC)
    env = parse_envelope(blob)
    assert env.format_version == 1
    assert (env.kdf_params.memory_cost, env.kdf_params.time_cost) == (64, 1)
    assert len(env.nonce) == 12
    assert PLAINTEXT not in blob


def test_each_encode_uses_fresh_salt_and_nonce(fast_kdf):
    a, b = parse_envelope(_blob(fast_kdf)), parse_envelope(_blob(fast_kdf))
    assert a.kdf_params.salt != b.kdf_params.salt
    assert a.nonce != b.nonce


def test_wrong_passphrase(fast_kdf):
    with pytest.raises(DecryptionError):
        decode_envelope(_blob(fast_kdf), "pw-2")


def test_empty_passphrase_rejected_on_encode(fast_kdf):
    with pytest.raises(EmptyPassphraseError):
        encode_envelope(PLAINTEXT, "", fast_kdf)


def test_any_ciphertext_bit_flip_is_detected(fast_kdf):
    blob = _blob(fast_kdf)
    env = parse_envelope(blob)
    start = len(env.header) + 4
    for i in range(start, len(blob)):
        tampered = bytearray(blob)
        tampered[i] ^= 0x01
        with pytest.raises(DecryptionError):
            decode_envelope(bytes(tampered), "pw-1")


def test_nonce_tamper_is_detected(fast_kdf):
    blob = _blob(fast_kdf)
    env = parse_envelope(blob)
    tampered = bytearray(blob)
    tampered[len(env.header) - 1] ^= 0x80
    with pytest.raises(DecryptionError):
        decode_envelope(bytes(tampered), "pw-1")


def test_invalid_magic(fast_kdf):
    blob = b"NOTMAGIC" + _blob(fast_kdf)[len(MAGIC):]
    with pytest.raises(InvalidMagicError):
        parse_envelope(blob)
    with pytest.raises(InvalidMagicError):
        parse_envelope(b"AUTH")


def test_unsupported_version(fast_kdf):
    blob = bytearray(_blob(fast_kdf))
    blob[len(MAGIC):len(MAGIC) + 4] = struct.pack(">I", 99)
    with pytest.raises(UnsupportedVersionError) as info:
        decode_envelope(bytes(blob), "pw-1")
    assert info.value.version == 99
    assert "99" in str(info.value)


@pytest.mark.parametrize("cut", [len(MAGIC) + 2, len(MAGIC) + 10, -1])
def test_truncated_file(fast_kdf, cut):
    with pytest.raises(EnvelopeFormatError):
        parse_envelope(_blob(fast_kdf)[:cut])


def test_trailing_data_rejected(fast_kdf):
    with pytest.raises(EnvelopeFormatError):
        parse_envelope(_blob(fast_kdf) + b"\x00")


@pytest.mark.parametrize(
    "kdf",
    [
        _kdf(memory_cost=10**9),
        _kdf(time_cost=1000),
        _kdf(parallelism=0),
        _kdf(salt=base64.b64encode(b"abc").decode()),
        _kdf(salt="not base64!"),
        _kdf(kdf="scrypt"),
        {"salt": base64.b64encode(bytes(16)).decode()},
    ],
)
def test_hostile_kdf_params_rejected_before_derivation(kdf):
    with pytest.raises(EnvelopeFormatError):
        parse_envelope(_with_kdf(kdf))


def test_format_errors_share_a_base():
    assert issubclass(InvalidMagicError, FormatError)
    assert issubclass(UnsupportedVersionError, FormatError)
    assert issubclass(EnvelopeFormatError, FormatError)


def test_unset_cost_fields_keep_their_defaults():
    env = parse_envelope(encode_envelope(b"x", "pw", KdfParams(memory_cost=64, time_cost=1)))
    assert env.kdf_params.parallelism == 1
