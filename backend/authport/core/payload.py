import json
from typing import Any, Dict, List

from pydantic import ValidationError

from authport.core.envelope import FormatError, UnsupportedVersionError
from authport.models import ExportPayload, ExportProfile

CURRENT_PAYLOAD_VERSION = 2
SUPPORTED_PAYLOAD_VERSIONS = (1, 2)


class PayloadFormatError(FormatError):
    pass


def build_payload(profiles: List[ExportProfile]) -> ExportPayload:
    return ExportPayload(format_version=CURRENT_PAYLOAD_VERSION, profiles=profiles)


def serialize_payload(payload: ExportPayload) -> bytearray:
    """
    Compact JSON as a mutable buffer so the caller can wipe it once it has
    been encrypted.
    """
    return bytearray(payload.model_dump_json(exclude_none=True).encode("utf-8"))


def _migrate_v1(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Version 1 kept profiles in a name-keyed map with flat identity fields and
    bare token strings. Convert it to the list layout.
    """
    raw_profiles = data.get("profiles") or {}
    if not isinstance(raw_profiles, dict):
        raise PayloadFormatError("invalid payload: profiles must be an object in version 1")
    profiles = []
    for name, p in raw_profiles.items():
        if not isinstance(p, dict):
            raise PayloadFormatError(f"invalid payload: profile {name!r} is not an object")
        token = p.get("token")
        user_token = p.get("user_token")
        profiles.append(
            {
                "profile_name": name,
                "team": {"id": p.get("team_id"), "name": p.get("team_name")},
                "user_id": p.get("user_id"),
                "user_name": p.get("user_name"),
                "token": {"value": token, "token_type": "bot"} if token else None,
                "user_token": {"value": user_token, "token_type": "user"} if user_token else None,
                "client_id": p.get("client_id"),
                "client_secret": p.get("client_secret"),
            }
        )
    return {
        "format_version": CURRENT_PAYLOAD_VERSION,
        "exported_at": data.get("exported_at"),
        "profiles": profiles,
    }


def parse_payload(raw: bytes) -> ExportPayload:
    try:
        data = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise PayloadFormatError("invalid payload: not valid JSON") from exc
    if not isinstance(data, dict):
        raise PayloadFormatError("invalid payload: expected a JSON object")

    version = data.get("format_version")
    if not isinstance(version, int) or isinstance(version, bool):
        raise PayloadFormatError("invalid payload: missing format_version")
    if version not in SUPPORTED_PAYLOAD_VERSIONS:
        raise UnsupportedVersionError(version, kind="payload")
    if version == 1:
        data = _migrate_v1(data)
        if data["exported_at"] is None:
            del data["exported_at"]

    try:
        return ExportPayload.model_validate(data)
    except ValidationError as exc:
        # Field locations only; values may be secrets
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise PayloadFormatError(f"invalid payload fields: {fields}") from None
