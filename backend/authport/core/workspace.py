from typing import Optional

from authport.core.profiles import ProfileDirectory
from authport.core.settings import Settings
from authport.core.token_store import TokenStore, create_token_store


class Workspace:
    """
    Binds settings to the profile directory and the configured credential
    backend. Both are opened fresh per operation so edits made by other
    processes between operations are picked up.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings.from_env()

    def open_directory(self) -> ProfileDirectory:
        return ProfileDirectory(self.settings.profiles_path)

    def open_store(self) -> TokenStore:
        return create_token_store(
            self.settings.token_store,
            self.settings.tokens_path,
            keyring_service=self.settings.keyring_service,
        )


_workspace: Optional[Workspace] = None


def get_workspace() -> Workspace:
    global _workspace
    if _workspace is None:
        _workspace = Workspace()
    return _workspace


def swap_workspace(config_dir: Optional[str] = None, settings: Optional[Settings] = None) -> Workspace:
    """
    Replace the process-wide workspace, e.g. when the server is pointed at a
    different config directory.
    """
    global _workspace
    _workspace = Workspace(settings or Settings.from_env(config_dir=config_dir))
    return _workspace
