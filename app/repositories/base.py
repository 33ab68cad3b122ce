"""Repository base class used by all concrete repositories."""
import json
import logging
import os
import tempfile
from typing import Any


class BaseRepository:
    """Provides file-backed persistence rooted at a single directory.

    Sub-classes resolve their own paths below ``self._root`` and call
    :meth:`_write_atomic` / :meth:`_save_json` to persist data.

    The atomic write uses a write-then-rename strategy so a file is never
    left in a partially-written state.
    """

    def __init__(self, root_dir: str) -> None:
        self._root = root_dir
        self._log = logging.getLogger(f'gallery.repository.{type(self).__name__}')

    def _load_json(self, path: str, default: Any) -> Any:
        """Load JSON from *path*, returning *default* on missing/corrupt file."""
        if os.path.exists(path):
            try:
                with open(path, 'r') as fh:
                    return json.load(fh)
            except (json.JSONDecodeError, IOError) as exc:
                self._log.warning("Could not load %s: %s", path, exc)
        return default

    def _save_json(self, path: str, data: Any) -> None:
        """Atomically write *data* as JSON to *path*."""
        self._write_atomic(path, json.dumps(data, indent=2).encode('utf-8'))

    def _write_atomic(self, path: str, payload: bytes) -> None:
        """Atomically write *payload* to *path*, creating parent directories."""
        dir_name = os.path.dirname(os.path.abspath(path))
        os.makedirs(dir_name, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=dir_name, suffix='.tmp')
        try:
            with os.fdopen(fd, 'wb') as fh:
                fh.write(payload)
            os.replace(tmp_path, path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
