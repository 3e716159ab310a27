import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from authport.core.errors import ProfileDirectoryError
from authport.core.fileio import atomic_write_json
from authport.models import ProfileMeta, ProfilesConfig

logger = logging.getLogger(__name__)


class ProfileDirectory:
    """
    Non-secret profile metadata kept in a single JSON file, keyed by the
    local profile name. Each mutation is persisted immediately.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.config = self._load()

    def _load(self) -> ProfilesConfig:
        if not self.path.exists():
            return ProfilesConfig()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return ProfilesConfig(**json.load(f))
        except OSError as exc:
            raise ProfileDirectoryError(f"cannot read {self.path}: {exc.strerror}") from exc
        except (json.JSONDecodeError, ValidationError, TypeError) as exc:
            raise ProfileDirectoryError(f"{self.path} is not a valid profiles file") from exc

    def _save(self):
        try:
            atomic_write_json(self.path, self.config)
        except OSError as exc:
            raise ProfileDirectoryError(f"cannot write {self.path}: {exc.strerror}") from exc

    # --- Read ---
    def list(self) -> List[Tuple[str, ProfileMeta]]:
        return sorted(self.config.profiles.items())

    def snapshot(self) -> Dict[str, ProfileMeta]:
        return {name: meta.model_copy() for name, meta in self.config.profiles.items()}

    def get(self, team_id: str) -> Optional[ProfileMeta]:
        for _, meta in self.list():
            if meta.team_id == team_id:
                return meta
        return None

    def get_by_name(self, profile_name: str) -> Optional[ProfileMeta]:
        return self.config.profiles.get(profile_name)

    # --- Write ---
    def set(self, profile_name: str, meta: ProfileMeta):
        self.replace(profile_name, meta)

    def replace(self, profile_name: str, meta: ProfileMeta, removed: Iterable[str] = ()):
        """
        Save one entry and drop the named others in a single write, so the
        file never holds both an entry and the aliases it supersedes.
        """
        previous = dict(self.config.profiles)
        dropped = []
        for name in removed:
            if name != profile_name and name in self.config.profiles:
                del self.config.profiles[name]
                dropped.append(name)
        self.config.profiles[profile_name] = meta
        try:
            self._save()
        except ProfileDirectoryError:
            self.config.profiles = previous
            raise
        logger.debug("profile %s saved (team %s)", profile_name, meta.team_id)
        for name in dropped:
            logger.debug("profile %s removed", name)
