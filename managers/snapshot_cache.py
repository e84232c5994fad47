import json
import os
import re
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, Optional

from spotify_api.errors import CacheIOError
from spotify_api.models import Snapshot
from utils.fileio import atomic_write_text
from utils.logger import log_info, log_success, log_warning

DEFAULT_DATA_DIR = "data"

_USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9._\-]+$")


class SnapshotCache:
    """One JSON snapshot per user under ``data/<user_id>.json``.

    With ``ttl_seconds`` = 0 (the default) a cached snapshot never expires;
    delete the file (or call invalidate) to force a fresh sync. The file is
    written only after the pipeline returns a complete Snapshot.
    """

    def __init__(
        self,
        pipeline,
        *,
        data_dir: str = DEFAULT_DATA_DIR,
        ttl_seconds: int = 0,
        clock: Callable[[], float] = time.time,
    ):
        self.pipeline = pipeline
        self.data_dir = data_dir
        self.ttl_seconds = int(ttl_seconds or 0)
        self.clock = clock
        self._locks: Dict[str, list] = {}
        self._locks_guard = threading.Lock()

    def path_for(self, user_id: str) -> str:
        user_id = str(user_id or "").strip()
        if not _USER_ID_PATTERN.match(user_id) or user_id in (".", ".."):
            raise ValueError(f"Invalid user id: {user_id!r}")
        return os.path.join(self.data_dir, f"{user_id}.json")

    @contextmanager
    def _user_lock(self, user_id: str):
        # Entries live only while a caller holds or waits on them.
        with self._locks_guard:
            entry = self._locks.setdefault(user_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[user_id]

    def is_fresh(self, user_id: str) -> bool:
        path = self.path_for(user_id)
        if not os.path.exists(path):
            return False
        if self.ttl_seconds <= 0:
            return True
        age = self.clock() - os.path.getmtime(path)
        return age < self.ttl_seconds

    def exists(self, user_id: str) -> bool:
        return os.path.exists(self.path_for(user_id))

    def read_raw(self, user_id: str) -> bytes:
        path = self.path_for(user_id)
        try:
            with open(path, "rb") as f:
                return f.read()
        except OSError as e:
            raise CacheIOError(f"Failed to read snapshot {path}: {e}", path=path) from e

    def load(self, user_id: str) -> Optional[Snapshot]:
        """Return the stored snapshot, or None when there is no file."""
        path = self.path_for(user_id)
        if not os.path.exists(path):
            return None
        try:
            data = json.loads(self.read_raw(user_id).decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CacheIOError(f"Snapshot {path} is not valid JSON: {e}", path=path) from e
        if not isinstance(data, dict):
            raise CacheIOError(f"Snapshot {path} is not a JSON object", path=path)
        return Snapshot.from_dict(data)

    def save(self, user_id: str, snapshot: Snapshot) -> str:
        path = self.path_for(user_id)
        try:
            atomic_write_text(path, json.dumps(snapshot.to_dict()))
        except OSError as e:
            raise CacheIOError(f"Failed to write snapshot {path}: {e}", path=path) from e
        return path

    def invalidate(self, user_id: str) -> bool:
        path = self.path_for(user_id)
        if not os.path.exists(path):
            return False
        try:
            os.remove(path)
        except OSError as e:
            raise CacheIOError(f"Failed to remove snapshot {path}: {e}", path=path) from e
        log_info(f"Removed cached snapshot for {user_id}")
        return True

    def get_or_fetch(self, user_id: str) -> Snapshot:
        self.path_for(user_id)

        with self._user_lock(user_id):
            if self.is_fresh(user_id):
                snapshot = self.load(user_id)
                if snapshot is not None:
                    return snapshot
            elif self.exists(user_id):
                log_warning(f"Cached snapshot for {user_id} is older than {self.ttl_seconds}s; re-syncing")
            else:
                log_info(f"No cached snapshot for {user_id}; syncing from Spotify")

            snapshot = self.pipeline.sync_user(user_id)
            path = self.save(user_id, snapshot)
            log_success(f"Saved snapshot for {user_id} to {path}")
            return snapshot
