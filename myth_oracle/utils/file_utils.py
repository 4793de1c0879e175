import json
import os
from typing import Any

from myth_oracle.utils.errors import PersistenceFailure


def safe_write_json(path: str, data: Any) -> None:
    """
    Writes a JSON file atomically to prevent corruption.
    Raises PersistenceFailure if the file cannot be written.
    """
    temp_path = path + ".tmp"
    try:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(temp_path, "w") as f:
            json.dump(data, f)
        os.replace(temp_path, path)
    except (OSError, TypeError, ValueError) as e:
        raise PersistenceFailure(f"failed to write {path}: {e}") from e


def safe_read_json(path: str, default: Any = None) -> Any:
    """
    Reads JSON from a file, returns default if the file does not exist.
    Raises PersistenceFailure if the file exists but cannot be read or parsed.
    """
    if not os.path.exists(path):
        return default
    try:
        with open(path, "r") as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        raise PersistenceFailure(f"failed to read {path}: {e}") from e
