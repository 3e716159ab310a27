import logging
from pathlib import Path
from typing import List, Optional, Tuple

from authport.core import envelope
from authport.core.crypto import KdfParams
from authport.core.errors import (
    ConfirmationRequiredError,
    ExportImportError,
    InsecurePermissionsError,
    NoExportableProfilesError,
    OutputExistsError,
    ProfileNotFoundError,
)
from authport.core.fileio import OWNER_ONLY, atomic_write_bytes, file_mode, is_posix
from authport.core.messages import ENGLISH
from authport.core.payload import build_payload, serialize_payload
from authport.core.profiles import ProfileDirectory
from authport.core.token_store import (
    TokenStore,
    make_oauth_client_secret_key,
    make_token_key,
    make_user_token_key,
)
from authport.models import ExportProfile, ExportResult, ExportTeam, ExportToken, ProfileMeta

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = "default"

SENSITIVE_WARNING = ENGLISH.get("warn.export_sensitive")


def _select_profiles(
    directory: ProfileDirectory, profile_name: Optional[str], export_all: bool
) -> List[Tuple[str, ProfileMeta]]:
    if export_all:
        return directory.list()
    name = profile_name or DEFAULT_PROFILE
    meta = directory.get_by_name(name)
    if meta is None:
        raise ProfileNotFoundError(name)
    return [(name, meta)]


def collect_profile(name: str, meta: ProfileMeta, store: TokenStore) -> ExportProfile:
    """Attach whatever secrets the store holds for one local profile."""
    bot = store.get(make_token_key(meta.team_id, meta.user_id))
    user = store.get(make_user_token_key(meta.team_id, meta.user_id))
    client_secret = store.get(make_oauth_client_secret_key(name))
    return ExportProfile(
        profile_name=name,
        team=ExportTeam(id=meta.team_id, name=meta.team_name),
        user_id=meta.user_id,
        user_name=meta.user_name,
        token=ExportToken(value=bot, scopes=meta.bot_scopes or [], token_type="bot") if bot else None,
        user_token=ExportToken(value=user, scopes=meta.user_scopes or [], token_type="user") if user else None,
        client_id=meta.client_id,
        client_secret=client_secret,
    )


def check_output_path(out_path: Path, force: bool):
    try:
        if not out_path.exists():
            return
        is_file = out_path.is_file()
        mode = file_mode(out_path) if is_posix() else OWNER_ONLY
    except OSError as exc:
        raise ExportImportError(f"cannot inspect {out_path}: {exc.strerror or exc}") from exc
    if not is_file:
        raise InsecurePermissionsError(f"{out_path} exists and is not a regular file")
    if mode != OWNER_ONLY:
        raise InsecurePermissionsError(
            f"{out_path} exists with permissions {mode:o}; refusing to write secrets into it "
            f"(expected {OWNER_ONLY:o})"
        )
    if not force:
        raise OutputExistsError(out_path)


def _write_output(out_path: Path, data: bytes):
    try:
        atomic_write_bytes(out_path, data, mode=OWNER_ONLY)
    except PermissionError as exc:
        raise InsecurePermissionsError(
            f"cannot create {out_path} with owner-only permissions: {exc.strerror}"
        ) from exc
    except OSError as exc:
        raise ExportImportError(f"cannot write {out_path}: {exc.strerror or exc}") from exc


def export_profiles(
    directory: ProfileDirectory,
    store: TokenStore,
    out_path,
    passphrase: str,
    *,
    profile_name: Optional[str] = None,
    export_all: bool = False,
    confirm: bool = False,
    force: bool = False,
    kdf_params: Optional[KdfParams] = None,
) -> ExportResult:
    if not confirm:
        raise ConfirmationRequiredError(f"{SENSITIVE_WARNING}\nExport requires --yes to confirm.")

    out_path = Path(out_path)
    check_output_path(out_path, force)

    result = ExportResult(path=str(out_path))
    profiles: List[ExportProfile] = []
    for name, meta in _select_profiles(directory, profile_name, export_all):
        profile = collect_profile(name, meta, store)
        if not profile.has_secret():
            warning = f"profile '{name}' (team {meta.team_id}, user {meta.user_id}) has no token; skipped"
            logger.warning(warning)
            result.warnings.append(warning)
            continue
        profiles.append(profile)
        result.exported.append(name)

    if not profiles:
        raise NoExportableProfilesError("no profiles with a stored token to export")

    logger.info("exporting %d profile(s) to %s", len(profiles), out_path)
    plaintext = serialize_payload(build_payload(profiles))
    try:
        data = envelope.encode_envelope(bytes(plaintext), passphrase, kdf_params)
    finally:
        plaintext[:] = bytes(len(plaintext))
        del profiles

    # The path may have appeared while the key was being derived
    check_output_path(out_path, force)
    _write_output(out_path, data)
    return result
