"""Key-value store protocol and implementations for the spec cache.

The cache only needs ``get``/``set``/``delete``/``keys``/``list_expired`` plus
an exclusive in-progress marker (``claim``/``release``) so that separate
processes sharing one store do not parse the same help text twice.

``JsonFileStore`` keeps one JSON document per key under a directory.  Writes
go to a temporary file that is renamed into place, so concurrent readers see
either the old or the new record, never a partial one.  Markers are files
created with ``O_EXCL``; a marker older than the stale timeout is taken over.
"""

import json
import logging
import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from urllib.parse import quote, unquote

logger = logging.getLogger(__name__)


class CacheError(Exception):
    """Base class for cache failures."""


class CacheUnavailableError(CacheError):
    """Raised when the backing store cannot be read or written."""


@dataclass(frozen=True)
class Record:
    payload: str
    created_at: float


class KeyValueStore(Protocol):
    """Protocol that all cache backends must satisfy."""

    def get(self, key: str) -> Record | None: ...

    def set(self, key: str, record: Record) -> None: ...

    def delete(self, key: str) -> None:
        """Remove a key. No-op if it does not exist."""
        ...

    def keys(self, prefix: str = "") -> list[str]: ...

    def list_expired(self, prefix: str, cutoff: float) -> list[str]:
        """Return keys under *prefix* created before *cutoff* (epoch seconds)."""
        ...

    def claim(self, key: str, stale_after: float) -> bool:
        """Take the in-progress marker for *key*. False if someone else holds it."""
        ...

    def release(self, key: str) -> None: ...


class MemoryStore:
    """In-process store, used for tests and when caching is disabled on disk."""

    def __init__(self) -> None:
        self._data: dict[str, Record] = {}
        self._claims: dict[str, float] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Record | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, record: Record) -> None:
        with self._lock:
            self._data[key] = record

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return [k for k in self._data if k.startswith(prefix)]

    def list_expired(self, prefix: str, cutoff: float) -> list[str]:
        with self._lock:
            return [
                k for k, r in self._data.items() if k.startswith(prefix) and r.created_at < cutoff
            ]

    def claim(self, key: str, stale_after: float) -> bool:
        now = time.time()
        with self._lock:
            held_since = self._claims.get(key)
            if held_since is not None and now - held_since < stale_after:
                return False
            self._claims[key] = now
            return True

    def release(self, key: str) -> None:
        with self._lock:
            self._claims.pop(key, None)


class JsonFileStore:
    """One JSON file per key under *root*; safe for concurrent processes."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root).expanduser()
        self._claims_dir = self._root / ".claims"

    def _path(self, key: str) -> Path:
        return self._root / f"{quote(key, safe='')}.json"

    def _ensure_dirs(self) -> None:
        try:
            self._claims_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CacheUnavailableError(f"cannot create cache directory {self._root}: {exc}") from exc

    def get(self, key: str) -> Record | None:
        path = self._path(key)
        try:
            raw = json.loads(path.read_text())
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Discarding corrupt cache file %s", path)
            path.unlink(missing_ok=True)
            return None
        except OSError as exc:
            raise CacheUnavailableError(f"cannot read {path}: {exc}") from exc
        try:
            return Record(payload=raw["payload"], created_at=float(raw["created_at"]))
        except (KeyError, TypeError, ValueError):
            logger.warning("Discarding cache file with unexpected layout %s", path)
            path.unlink(missing_ok=True)
            return None

    def set(self, key: str, record: Record) -> None:
        self._ensure_dirs()
        path = self._path(key)
        temp_path = path.with_suffix(f".tmp.{os.getpid()}.{threading.get_ident()}")
        document = {"key": key, "payload": record.payload, "created_at": record.created_at}
        try:
            temp_path.write_text(json.dumps(document))
            temp_path.replace(path)
        except OSError as exc:
            temp_path.unlink(missing_ok=True)
            raise CacheUnavailableError(f"cannot write {path}: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as exc:
            raise CacheUnavailableError(f"cannot delete {key}: {exc}") from exc

    def keys(self, prefix: str = "") -> list[str]:
        try:
            names = [p.name for p in self._root.glob("*.json")]
        except OSError as exc:
            raise CacheUnavailableError(f"cannot list {self._root}: {exc}") from exc
        keys = [unquote(name.removesuffix(".json")) for name in names]
        return sorted(k for k in keys if k.startswith(prefix))

    def list_expired(self, prefix: str, cutoff: float) -> list[str]:
        expired = []
        for key in self.keys(prefix):
            record = self.get(key)
            if record is not None and record.created_at < cutoff:
                expired.append(key)
        return expired

    def claim(self, key: str, stale_after: float) -> bool:
        self._ensure_dirs()
        marker = self._claims_dir / f"{quote(key, safe='')}.lock"
        for _ in range(2):
            try:
                fd = os.open(marker, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                try:
                    age = time.time() - marker.stat().st_mtime
                except FileNotFoundError:
                    continue
                if age < stale_after:
                    return False
                logger.warning("Taking over stale in-progress marker %s", marker)
                marker.unlink(missing_ok=True)
                continue
            except OSError as exc:
                raise CacheUnavailableError(f"cannot create marker {marker}: {exc}") from exc
            with os.fdopen(fd, "w") as f:
                f.write(str(os.getpid()))
            return True
        return False

    def release(self, key: str) -> None:
        marker = self._claims_dir / f"{quote(key, safe='')}.lock"
        try:
            marker.unlink(missing_ok=True)
        except OSError as exc:
            raise CacheUnavailableError(f"cannot remove marker {marker}: {exc}") from exc
