import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from authport.core import envelope
from authport.core.conflicts import Resolution, resolve_conflict
from authport.core.errors import (
    ExportImportError,
    InputNotFoundError,
    ProfileDirectoryError,
    ProfileNotFoundError,
)
from authport.core.fileio import OWNER_ONLY, file_mode, is_posix
from authport.core.payload import parse_payload
from authport.core.profiles import ProfileDirectory
from authport.core.token_store import (
    StoreUnavailableError,
    TokenStore,
    TokenStoreError,
    make_oauth_client_secret_key,
    make_token_key,
    make_user_token_key,
)
from authport.models import (
    ExportPayload,
    ExportProfile,
    ImportAction,
    ImportResult,
    ProfileImportResult,
    ProfileMeta,
)

logger = logging.getLogger(__name__)

_MERGED_FIELDS = ("team_name", "user_name", "client_id", "bot_scopes", "user_scopes")


def read_export_file(in_path: Path) -> bytes:
    in_path = Path(in_path)
    try:
        if is_posix() and file_mode(in_path) & ~OWNER_ONLY:
            logger.warning("%s is accessible by other users; consider chmod 600", in_path)
        return in_path.read_bytes()
    except FileNotFoundError as exc:
        raise InputNotFoundError(f"input file not found: {in_path}") from exc
    except IsADirectoryError as exc:
        raise InputNotFoundError(f"input path is a directory: {in_path}") from exc
    except OSError as exc:
        raise ExportImportError(f"cannot read {in_path}: {exc.strerror or exc}") from exc


def load_payload(in_path: Path, passphrase: str) -> ExportPayload:
    """Open the envelope and parse its payload; nothing is trusted before this succeeds."""
    plaintext = bytearray(envelope.decode_envelope(read_export_file(in_path), passphrase))
    try:
        return parse_payload(bytes(plaintext))
    finally:
        plaintext[:] = bytes(len(plaintext))


def _secret_keys(name: str, meta: ProfileMeta) -> List[str]:
    return [
        make_token_key(meta.team_id, meta.user_id),
        make_user_token_key(meta.team_id, meta.user_id),
        make_oauth_client_secret_key(name),
    ]


def _merged_meta(incoming: ExportProfile, current: Optional[ProfileMeta], action: ImportAction) -> ProfileMeta:
    meta = incoming.to_meta()
    if action == ImportAction.UPDATED and current is not None:
        for name in _MERGED_FIELDS:
            if getattr(meta, name) is None:
                setattr(meta, name, getattr(current, name))
    return meta


def _incoming_secrets(incoming: ExportProfile) -> List[Tuple[str, str]]:
    secrets = []
    if incoming.token is not None:
        secrets.append((make_token_key(incoming.team_id, incoming.user_id), incoming.token.value))
    if incoming.user_token is not None:
        secrets.append((make_user_token_key(incoming.team_id, incoming.user_id), incoming.user_token.value))
    if incoming.client_secret:
        secrets.append((make_oauth_client_secret_key(incoming.profile_name), incoming.client_secret))
    return secrets


def _restore_secrets(store: TokenStore, previous: Dict[str, Optional[str]]):
    for key, value in previous.items():
        try:
            if value is None:
                store.delete(key)
            else:
                store.set(key, value)
        except TokenStoreError as exc:
            logger.warning("could not roll back %s: %s", key, exc)


def write_secrets(store: TokenStore, incoming: ExportProfile) -> Dict[str, Optional[str]]:
    """
    Store every secret the incoming profile carries and return the values
    they replaced. On failure the keys already written are put back first.
    """
    previous: Dict[str, Optional[str]] = {}
    try:
        for key, secret in _incoming_secrets(incoming):
            previous[key] = store.get(key)
            store.set(key, secret)
    except TokenStoreError:
        _restore_secrets(store, previous)
        raise
    return previous


def apply_resolution(
    directory: ProfileDirectory,
    store: TokenStore,
    incoming: ExportProfile,
    resolution: Resolution,
    meta: ProfileMeta,
):
    name = incoming.profile_name
    previous = write_secrets(store, incoming)

    replaced = {r: directory.get_by_name(r) for r in resolution.replaces}
    try:
        directory.replace(name, meta, removed=list(replaced))
    except ProfileDirectoryError:
        _restore_secrets(store, previous)
        raise

    # Best effort: nothing references these keys any more
    for old_name, old_meta in replaced.items():
        if old_meta is None:
            continue
        for key in _secret_keys(old_name, old_meta):
            if key in previous:
                continue
            try:
                store.delete(key)
            except TokenStoreError as exc:
                logger.warning("could not remove stale secret %s of replaced profile %s: %s", key, old_name, exc)


def import_profiles(
    directory: ProfileDirectory,
    store: TokenStore,
    in_path,
    passphrase: str,
    *,
    profile_name: Optional[str] = None,
    force: bool = False,
    confirm: bool = False,
    dry_run: bool = False,
) -> ImportResult:
    payload = load_payload(Path(in_path), passphrase)

    incoming_profiles = payload.profiles
    if profile_name is not None:
        incoming_profiles = [p for p in incoming_profiles if p.profile_name == profile_name]
        if not incoming_profiles:
            raise ProfileNotFoundError(profile_name)

    logger.info("importing %d profile(s)%s", len(incoming_profiles), " (dry run)" if dry_run else "")

    # Decisions run against this copy in both modes so a dry run sees the
    # same evolving state as a real run.
    working: Dict[str, ProfileMeta] = directory.snapshot()
    result = ImportResult(dry_run=dry_run)

    for incoming in incoming_profiles:
        resolution = resolve_conflict(incoming, working, force=force, confirm=confirm)
        action, reason = resolution.action, resolution.reason

        if resolution.should_apply:
            meta = _merged_meta(incoming, working.get(incoming.profile_name), action)
            if not dry_run:
                try:
                    apply_resolution(directory, store, incoming, resolution, meta)
                except StoreUnavailableError:
                    raise
                except TokenStoreError as exc:
                    action = ImportAction.FAILED
                    reason = f"Credential storage error for team {incoming.team_id}, user {incoming.user_id}: {exc}"
            if action != ImportAction.FAILED:
                for old_name in resolution.replaces:
                    working.pop(old_name, None)
                working[incoming.profile_name] = meta

        logger.info("%s: %s (%s)", incoming.profile_name, action, reason)
        result.profiles.append(
            ProfileImportResult(
                profile_name=incoming.profile_name,
                team_id=incoming.team_id,
                user_id=incoming.user_id,
                action=action,
                reason=reason,
            )
        )
    return result
