import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest

from authport.core.crypto import KdfParams
from authport.core.envelope import encode_envelope
from authport.core.payload import build_payload, serialize_payload
from authport.core.profiles import ProfileDirectory
from authport.core.token_store import InMemoryTokenStore, make_token_key, make_user_token_key
from authport.models import ExportProfile, ExportTeam, ExportToken, ProfileMeta

PASSPHRASE = "correct horse battery staple"


@pytest.fixture
def fast_kdf() -> KdfParams:
    # Real Argon2id, just cheap enough for a test suite
    return KdfParams(memory_cost=64, time_cost=1, parallelism=1)


@pytest.fixture
def directory(tmp_path) -> ProfileDirectory:
    return ProfileDirectory(tmp_path / "profiles.json")


@pytest.fixture
def store() -> InMemoryTokenStore:
    return InMemoryTokenStore()


def make_profile(name, team_id, user_id="U1", bot="xoxb-bot", user=None, client_id=None, client_secret=None):
    return ExportProfile(
        profile_name=name,
        team=ExportTeam(id=team_id, name=f"Team {team_id}"),
        user_id=user_id,
        token=ExportToken(value=bot, scopes=["chat:write"], token_type="bot") if bot else None,
        user_token=ExportToken(value=user, token_type="user") if user else None,
        client_id=client_id,
        client_secret=client_secret,
    )


def add_local_profile(directory, store, name, team_id, user_id="U1", bot="xoxb-local", user=None):
    directory.set(name, ProfileMeta(team_id=team_id, user_id=user_id, team_name=f"Team {team_id}"))
    if bot:
        store.set(make_token_key(team_id, user_id), bot)
    if user:
        store.set(make_user_token_key(team_id, user_id), user)


@pytest.fixture
def write_export(tmp_path, fast_kdf):
    """Encrypt the given profiles into an export file and return its path."""

    def _write(profiles, name="backup.enc", passphrase=PASSPHRASE):
        path = tmp_path / name
        data = encode_envelope(bytes(serialize_payload(build_payload(profiles))), passphrase, fast_kdf)
        path.write_bytes(data)
        path.chmod(0o600)
        return path

    return _write
