"""
Key-value backends for import session documents, plus local storage for the
uploaded files they reference.
"""

from __future__ import annotations

import copy
import json
import re
from pathlib import Path
from typing import Any, Protocol

from db.repositories.errors import FileStorageError, SessionStoreError

_VALID_KEY = re.compile(r"^[A-Za-z0-9_-]{1,128}$")
_MARKER_SUFFIXES: tuple[str, ...] = (".marker", "-marker")


def validate_session_key(key: str) -> str:
    if not isinstance(key, str) or not _VALID_KEY.match(key):
        raise SessionStoreError(f"Invalid session id: {key!r}")
    return key


class SessionBackend(Protocol):
    """
    Abstract key-value store used by the session store.
    """

    def read(self, key: str) -> dict[str, Any] | None:
        ...

    def write(self, key: str, payload: dict[str, Any]) -> None:
        ...

    def delete(self, key: str) -> bool:
        ...

    def keys(self) -> list[str]:
        ...


class FileSessionBackend:
    """
    One JSON document per session: ``{root_dir}/{session_id}.json``.

    Files whose name contains "backup" are never listed, so manual copies
    left in the directory survive cleanup.
    """

    def __init__(self, root_dir: str | Path) -> None:
        self._root_dir = Path(root_dir)

    @property
    def root_dir(self) -> Path:
        return self._root_dir

    def read(self, key: str) -> dict[str, Any] | None:
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise SessionStoreError(f"Failed to read session document {path.name}: {exc}") from exc
        if not isinstance(payload, dict):
            raise SessionStoreError(f"Session document {path.name} is not a JSON object.")
        return payload

    def write(self, key: str, payload: dict[str, Any]) -> None:
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(f"{path.suffix}.tmp")
        try:
            with tmp_path.open("w", encoding="utf-8") as handle:
                json.dump(payload, handle, ensure_ascii=False, default=str)
            tmp_path.replace(path)
        except (OSError, TypeError, ValueError) as exc:
            raise SessionStoreError(f"Failed to write session document {path.name}.") from exc
        finally:
            if tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError:
                    pass

    def delete(self, key: str) -> bool:
        path = self._path_for(key)
        existed = path.exists()
        targets = [path] + [self._root_dir / f"{key}{suffix}" for suffix in _MARKER_SUFFIXES]
        for target in targets:
            if not target.exists():
                continue
            try:
                target.unlink()
            except OSError as exc:
                raise SessionStoreError(f"Failed to delete {target.name}.") from exc
        return existed

    def keys(self) -> list[str]:
        if not self._root_dir.exists():
            return []
        return sorted(
            path.stem
            for path in self._root_dir.glob("*.json")
            if "backup" not in path.name.lower() and _VALID_KEY.match(path.stem)
        )

    def _path_for(self, key: str) -> Path:
        return self._root_dir / f"{validate_session_key(key)}.json"


class InMemorySessionBackend:
    """
    Process-local backend for tests and single-shot CLI runs.
    """

    def __init__(self) -> None:
        self._documents: dict[str, str] = {}

    def read(self, key: str) -> dict[str, Any] | None:
        raw = self._documents.get(validate_session_key(key))
        if raw is None:
            return None
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise SessionStoreError(f"Failed to parse session document {key}: {exc}") from exc
        if not isinstance(payload, dict):
            raise SessionStoreError(f"Session document {key} is not a JSON object.")
        return payload

    def write(self, key: str, payload: dict[str, Any]) -> None:
        try:
            self._documents[validate_session_key(key)] = json.dumps(
                copy.deepcopy(payload),
                ensure_ascii=False,
                default=str,
            )
        except (TypeError, ValueError) as exc:
            raise SessionStoreError(f"Failed to serialise session document {key}.") from exc

    def write_raw(self, key: str, raw: str) -> None:
        self._documents[validate_session_key(key)] = raw

    def delete(self, key: str) -> bool:
        return self._documents.pop(validate_session_key(key), None) is not None

    def keys(self) -> list[str]:
        return sorted(self._documents)


def _sanitize_file_name(file_name: str) -> str:
    safe_name = Path(file_name).name.strip()
    if not safe_name:
        raise FileStorageError("Invalid file name.")
    return re.sub(r"[^A-Za-z0-9._ -]", "_", safe_name)


class LocalUploadStorage:
    """
    Keeps the raw uploaded file next to the session documents so an import
    can be audited against what was actually sent.
    """

    def __init__(self, root_dir: str | Path) -> None:
        self._root_dir = Path(root_dir)

    def save(self, *, session_id: str, file_name: str, content: bytes) -> Path:
        safe_file_name = _sanitize_file_name(file_name)
        target = self._root_dir / f"{validate_session_key(session_id)}_{safe_file_name}"
        target.parent.mkdir(parents=True, exist_ok=True)

        tmp_path = target.with_suffix(f"{target.suffix}.tmp")
        try:
            with tmp_path.open("wb") as handle:
                handle.write(content)
            tmp_path.replace(target)
        except OSError as exc:
            raise FileStorageError("Failed to write uploaded file to storage.") from exc
        finally:
            if tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError:
                    pass
        return target

    def delete(self, path: str | Path) -> None:
        target = Path(path)
        if not target.exists():
            return
        if self._root_dir.resolve() not in target.resolve().parents:
            raise FileStorageError(f"Refusing to delete file outside upload storage: {target}")
        try:
            target.unlink()
        except OSError as exc:
            raise FileStorageError("Failed to delete uploaded file from storage.") from exc
