"""State directory utilities."""

import os
import tempfile
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel

from ..constants import LOCK_FILE, SERVER_FILE, STOP_REQUEST_FILE, USERS_FILE

M = TypeVar("M", bound=BaseModel)


def ensure_state_dir(state_dir: Path) -> Path:
    """Create the state directory if missing."""
    state_dir.mkdir(parents=True, exist_ok=True)
    return state_dir


def lock_path(state_dir: Path) -> Path:
    return state_dir / LOCK_FILE


def users_path(state_dir: Path) -> Path:
    return state_dir / USERS_FILE


def server_path(state_dir: Path) -> Path:
    return state_dir / SERVER_FILE


def stop_request_path(state_dir: Path) -> Path:
    return state_dir / STOP_REQUEST_FILE


def write_model(path: Path, model: BaseModel) -> None:
    """Atomically replace path with the model's JSON."""
    ensure_state_dir(path.parent)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(model.model_dump_json(indent=2))
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def read_model(path: Path, model_type: type[M]) -> M | None:
    """Read a model from path, None if missing or corrupted."""
    try:
        return model_type.model_validate_json(path.read_text())
    except FileNotFoundError:
        return None
    except ValueError:
        return None
