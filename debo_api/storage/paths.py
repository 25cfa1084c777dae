"""Where debo-api keeps its state on disk.

Two files live in the per-user config directory: the access token and the
optional settings override.  Nothing is created until the first write.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Union

from platformdirs import user_config_dir

APP_NAME = "debo-api"

CONFIG_DIR: Path = Path(user_config_dir(APP_NAME))

TOKENS_FILE = CONFIG_DIR / "tokens.json"
SETTINGS_FILE = CONFIG_DIR / "settings.json"


def ensure_parents(path: Path) -> Path:
    """Make sure the directory holding *path* exists and return *path*."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        pass
    return path


def atomic_write(path: Path, data: Union[str, bytes]) -> None:
    """Write text *data* to *path* via a temporary file and ``os.replace``.

    The temporary file is removed if the replace fails.
    """
    tmp = path.with_suffix(path.suffix + ".tmp")
    ensure_parents(tmp)

    with tmp.open("w", encoding="utf-8") as fh:
        fh.write(data.decode() if isinstance(data, bytes) else data)

    try:
        os.replace(tmp, path)
    finally:
        try:
            if tmp.exists():
                tmp.unlink()
        except OSError:
            pass
