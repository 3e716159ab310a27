import os
import stat
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest

from authport.core.errors import (
    ConfirmationRequiredError,
    ExportImportError,
    InsecurePermissionsError,
    NoExportableProfilesError,
    OutputExistsError,
    ProfileNotFoundError,
)
from authport.core.exporter import export_profiles
from authport.core.importer import load_payload
from authport.core.token_store import make_oauth_client_secret_key
from conftest import PASSPHRASE, add_local_profile

posix_only = pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")


def _export(directory, store, out, fast_kdf, **kwargs):
    kwargs.setdefault("confirm", True)
    return export_profiles(directory, store, out, PASSPHRASE, kdf_params=fast_kdf, **kwargs)


def test_export_default_profile(directory, store, tmp_path, fast_kdf):
    add_local_profile(directory, store, "default", "T1", user="xoxp-1")
    add_local_profile(directory, store, "other", "T2")
    store.set(make_oauth_client_secret_key("default"), "cs-1")
    out = tmp_path / "backup.enc"

    result = _export(directory, store, out, fast_kdf)

    assert result.exported == ["default"]
    payload = load_payload(out, PASSPHRASE)
    (p,) = payload.profiles
    assert p.profile_name == "default"
    assert p.token.value == "xoxb-local"
    assert p.user_token.value == "xoxp-1"
    assert p.client_secret == "cs-1"
    assert b"xoxb-local" not in out.read_bytes()


@posix_only
def test_output_is_owner_only(directory, store, tmp_path, fast_kdf):
    add_local_profile(directory, store, "default", "T1")
    out = tmp_path / "backup.enc"
    _export(directory, store, out, fast_kdf)
    assert stat.S_IMODE(out.stat().st_mode) == 0o600


def test_named_profile_must_exist(directory, store, tmp_path, fast_kdf):
    with pytest.raises(ProfileNotFoundError) as info:
        _export(directory, store, tmp_path / "o.enc", fast_kdf, profile_name="ghost")
    assert "ghost" in str(info.value)


def test_all_skips_profiles_without_tokens(directory, store, tmp_path, fast_kdf):
    add_local_profile(directory, store, "bot-only", "T1")
    add_local_profile(directory, store, "user-only", "T2", bot=None, user="xoxp-2")
    add_local_profile(directory, store, "empty", "T3", user_id="U3", bot=None)
    out = tmp_path / "backup.enc"

    result = _export(directory, store, out, fast_kdf, export_all=True)

    assert result.exported == ["bot-only", "user-only"]
    assert len(result.warnings) == 1
    assert "empty" in result.warnings[0]
    assert "T3" in result.warnings[0] and "U3" in result.warnings[0]
    assert [p.profile_name for p in load_payload(out, PASSPHRASE).profiles] == ["bot-only", "user-only"]


def test_no_exportable_profiles(directory, store, tmp_path, fast_kdf):
    add_local_profile(directory, store, "empty", "T1", bot=None)
    out = tmp_path / "backup.enc"
    with pytest.raises(NoExportableProfilesError):
        _export(directory, store, out, fast_kdf, export_all=True)
    assert not out.exists()


def test_confirmation_required_before_anything(directory, store, tmp_path, fast_kdf):
    out = tmp_path / "backup.enc"
    with pytest.raises(ConfirmationRequiredError) as info:
        _export(directory, store, out, fast_kdf, profile_name="ghost", confirm=False)
    assert "sensitive" in str(info.value)
    assert not out.exists()


@posix_only
def test_refuses_existing_file_with_loose_permissions(directory, store, tmp_path, fast_kdf):
    add_local_profile(directory, store, "default", "T1")
    out = tmp_path / "backup.enc"
    out.write_bytes(b"old")
    out.chmod(0o644)
    with pytest.raises(InsecurePermissionsError):
        _export(directory, store, out, fast_kdf, force=True)
    assert out.read_bytes() == b"old"


def test_existing_file_needs_force(directory, store, tmp_path, fast_kdf):
    add_local_profile(directory, store, "default", "T1")
    out = tmp_path / "backup.enc"
    out.write_bytes(b"old")
    out.chmod(0o600)
    with pytest.raises(OutputExistsError) as info:
        _export(directory, store, out, fast_kdf)
    assert info.value.path == out
    assert "--force" in str(info.value)
    _export(directory, store, out, fast_kdf, force=True)
    assert load_payload(out, PASSPHRASE).profiles[0].profile_name == "default"


def test_output_path_is_directory(directory, store, tmp_path, fast_kdf):
    add_local_profile(directory, store, "default", "T1")
    with pytest.raises(InsecurePermissionsError):
        _export(directory, store, tmp_path, fast_kdf, force=True)


def test_output_under_a_regular_file(directory, store, tmp_path, fast_kdf):
    add_local_profile(directory, store, "default", "T1")
    notes = tmp_path / "notes.txt"
    notes.write_text("keep")
    with pytest.raises(ExportImportError) as info:
        _export(directory, store, notes / "backup.enc", fast_kdf)
    assert "cannot write" in str(info.value)
    assert notes.read_text() == "keep"


def test_unwritable_output_location(directory, store, tmp_path, fast_kdf, monkeypatch):
    add_local_profile(directory, store, "default", "T1")

    def denied(*args, **kwargs):
        raise PermissionError(13, "Permission denied")

    monkeypatch.setattr("authport.core.exporter.atomic_write_bytes", denied)
    out = tmp_path / "backup.enc"
    with pytest.raises(InsecurePermissionsError) as info:
        _export(directory, store, out, fast_kdf)
    assert "owner-only" in str(info.value)
    assert not out.exists()
