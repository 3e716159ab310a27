import json
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest

from authport.core.envelope import UnsupportedVersionError
from authport.core.payload import PayloadFormatError, build_payload, parse_payload, serialize_payload
from conftest import make_profile


def test_serialize_and_parse():
    payload = build_payload([make_profile("work", "T1", user="xoxp-user", client_id="cid", client_secret="cs")])
    raw = serialize_payload(payload)
    assert isinstance(raw, bytearray)
    parsed = parse_payload(bytes(raw))
    assert parsed.format_version == 2
    p = parsed.profiles[0]
    assert p.profile_name == "work"
    assert p.team_id == "T1"
    assert p.token.value == "xoxb-bot"
    assert p.user_token.value == "xoxp-user"
    assert p.client_secret == "cs"


def test_absent_optional_fields_are_omitted():
    raw = serialize_payload(build_payload([make_profile("work", "T1")]))
    profile = json.loads(raw)["profiles"][0]
    assert "user_token" not in profile
    assert "client_secret" not in profile


def test_unknown_fields_are_ignored():
    raw = json.dumps(
        {
            "format_version": 2,
            "future_field": {"a": 1},
            "profiles": [
                {
                    "profile_name": "work",
                    "team": {"id": "T1", "domain": "acme"},
                    "user_id": "U1",
                    "token": {"value": "xoxb-1", "expires_at": 0},
                    "color": "blue",
                }
            ],
        }
    ).encode()
    parsed = parse_payload(raw)
    assert parsed.profiles[0].token.value == "xoxb-1"


def test_version_1_is_migrated():
    raw = json.dumps(
        {
            "format_version": 1,
            "profiles": {
                "work": {
                    "team_id": "T1",
                    "user_id": "U1",
                    "team_name": "Acme",
                    "token": "xoxb-1",
                    "user_token": "xoxp-1",
                },
                "bare": {"team_id": "T2", "user_id": "U2"},
            },
        }
    ).encode()
    parsed = parse_payload(raw)
    assert parsed.format_version == 2
    by_name = {p.profile_name: p for p in parsed.profiles}
    assert by_name["work"].team.name == "Acme"
    assert by_name["work"].token.value == "xoxb-1"
    assert by_name["work"].user_token.token_type == "user"
    assert by_name["bare"].token is None


def test_unsupported_payload_version():
    with pytest.raises(UnsupportedVersionError) as info:
        parse_payload(b'{"format_version": 7, "profiles": []}')
    assert "payload" in str(info.value)


@pytest.mark.parametrize(
    "raw",
    [b"not json", b"[]", b'{"profiles": []}', b'{"format_version": true}', b'{"format_version": 1, "profiles": ["x"]}'],
)
def test_malformed_payload(raw):
    with pytest.raises(PayloadFormatError):
        parse_payload(raw)


def test_validation_error_does_not_echo_secret_values():
    raw = json.dumps(
        {"format_version": 2, "profiles": [{"profile_name": "x", "user_id": "U1", "token": {"value": "xoxb-SECRET"}}]}
    ).encode()
    with pytest.raises(PayloadFormatError) as info:
        parse_payload(raw)
    assert "xoxb-SECRET" not in str(info.value)
    assert "team" in str(info.value)
    assert info.value.__cause__ is None
