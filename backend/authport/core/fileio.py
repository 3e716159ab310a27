import json
import os
import stat
from pathlib import Path
from typing import Any

OWNER_ONLY = 0o600


def is_posix() -> bool:
    return os.name == "posix"


def file_mode(path: Path) -> int:
    return stat.S_IMODE(os.stat(path).st_mode)


def has_owner_only_mode(path: Path) -> bool:
    if not is_posix():
        return True
    return file_mode(path) == OWNER_ONLY


def atomic_write_bytes(target_path: Path, data: bytes, mode: int = OWNER_ONLY):
    """
    Write to a sibling temp file created with `mode` from the start, fsync it
    and rename it over the target. Readers never see a partial file.
    """
    target_path = Path(target_path)
    target_path.parent.mkdir(parents=True, exist_ok=True)
    tmp = target_path.with_name(f".{target_path.name}.{os.getpid()}.tmp")
    fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_EXCL, mode)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        if is_posix():
            # umask may have narrowed the mode further; pin it exactly
            os.chmod(tmp, mode)
        os.replace(tmp, target_path)
    except BaseException:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
        raise


def atomic_write_json(target_path: Path, data: Any, mode: int = OWNER_ONLY):
    if hasattr(data, "model_dump"):
        payload = json.dumps(data.model_dump(mode="json"), indent=2)
    else:
        payload = json.dumps(data, indent=2)
    atomic_write_bytes(target_path, payload.encode("utf-8"), mode=mode)
