"""Atomic JSON document storage.

Location snapshots and run audit files are rewritten in place on every
update. Writes go to a temp file in the target directory and are swapped in
with os.replace, so a reader (or a crash) never sees a half-written file.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Union

__all__ = [
    'read_json',
    'write_json_atomic',
]

PathLike = Union[str, Path]


def write_json_atomic(data: Any, filepath: PathLike) -> None:
    """Serialize ``data`` to ``filepath`` atomically (temp file + rename).

    Args:
        data: JSON-serializable value
        filepath: Destination path; parent directories are created

    Raises:
        OSError: If the file cannot be written
        TypeError: If ``data`` is not JSON-serializable
    """
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)

    temp_fd, temp_path = tempfile.mkstemp(suffix='.tmp', dir=path.parent, prefix=path.name + '.')
    try:
        with os.fdopen(temp_fd, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, sort_keys=True)
        os.replace(temp_path, path)
    except (OSError, TypeError, ValueError) as e:
        logging.error(f"Failed to write {path}: {e}")
        Path(temp_path).unlink(missing_ok=True)
        raise
    logging.debug(f"Wrote {path}")


def read_json(filepath: PathLike) -> Optional[Any]:
    """Load a JSON document.

    Returns:
        The decoded value, or None if the file is missing or corrupt
    """
    path = Path(filepath)
    if not path.exists():
        return None

    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (json.JSONDecodeError, FileNotFoundError) as e:
        logging.warning(f"Failed to read {path}: {e}")
        return None
