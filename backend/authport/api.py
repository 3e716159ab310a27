from typing import Dict, Any, List
from fastapi import APIRouter, HTTPException, Body
from authport.models import ExportResult
from authport.core.crypto import DecryptionError, EmptyPassphraseError
from authport.core.envelope import FormatError
from authport.core.errors import (
    AuthportError,
    ConfirmationRequiredError,
    InputNotFoundError,
    InsecurePermissionsError,
    NoExportableProfilesError,
    OutputExistsError,
    ProfileNotFoundError,
)
from authport.core.exporter import export_profiles
from authport.core.importer import import_profiles
from authport.core.passphrase import PassphraseError, resolve_passphrase
from authport.core.report import result_to_dict
from authport.core.token_store import StoreUnavailableError
from authport.core.workspace import Workspace, get_workspace, swap_workspace

router = APIRouter()

# Most specific first; AuthportErrors raised by a route are turned into
# responses by the handler main.py installs.
_STATUS = [
    (ConfirmationRequiredError, 400),
    (EmptyPassphraseError, 400),
    (PassphraseError, 400),
    (NoExportableProfilesError, 400),
    (DecryptionError, 401),
    (InsecurePermissionsError, 403),
    (ProfileNotFoundError, 404),
    (InputNotFoundError, 404),
    (OutputExistsError, 409),
    (FormatError, 422),
    (StoreUnavailableError, 503),
]


def status_for(exc: AuthportError) -> int:
    for cls, status in _STATUS:
        if isinstance(exc, cls):
            return status
    return 500


def _passphrase(payload: Dict[str, Any], workspace: Workspace) -> str:
    """
    Body passphrase wins; otherwise fall back to server-side environment
    variables. The server never prompts.
    """
    if payload.get("passphrase"):
        return str(payload["passphrase"])
    return resolve_passphrase(
        explicit_env=payload.get("passphrase_env"),
        allow_prompt=False,
        default_env=workspace.settings.passphrase_env,
    )


def _required(payload: Dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not value:
        raise HTTPException(status_code=400, detail=f"{key} is required")
    return str(value)


def _config_view(workspace: Workspace) -> Dict[str, Any]:
    settings = workspace.settings
    return {"config_dir": str(settings.config_dir), "token_store": settings.token_store}


# --- Profiles ---
@router.get("/profiles")
def list_profiles() -> List[Dict[str, Any]]:
    directory = get_workspace().open_directory()
    return [{"profile_name": name, **meta.model_dump()} for name, meta in directory.list()]


# --- Export ---
@router.post("/export", response_model=ExportResult)
def export(payload: Dict[str, Any] = Body(...)):
    out = _required(payload, "out")
    if not payload.get("yes"):
        raise HTTPException(status_code=400, detail="export requires yes=true to confirm")
    workspace = get_workspace()
    return export_profiles(
        workspace.open_directory(),
        workspace.open_store(),
        out,
        _passphrase(payload, workspace),
        profile_name=payload.get("profile"),
        export_all=bool(payload.get("all")),
        confirm=True,
        force=bool(payload.get("force")),
        kdf_params=workspace.settings.kdf_params(),
    )


# --- Import ---
@router.post("/import")
def import_(payload: Dict[str, Any] = Body(...)):
    source = _required(payload, "in")
    workspace = get_workspace()
    result = import_profiles(
        workspace.open_directory(),
        workspace.open_store(),
        source,
        _passphrase(payload, workspace),
        profile_name=payload.get("profile"),
        force=bool(payload.get("force")),
        confirm=bool(payload.get("yes")),
        dry_run=bool(payload.get("dry_run")),
    )
    return result_to_dict(result)


# --- Config dir ---
@router.get("/config")
def get_config():
    return _config_view(get_workspace())


@router.post("/config")
def set_config(payload: Dict[str, Any] = Body(...)):
    return _config_view(swap_workspace(_required(payload, "config_dir")))
