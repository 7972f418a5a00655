# store.py
"""
Persistent key-value configuration store.

Values live under hierarchical, backslash-separated namespaces such as
``SOFTWARE\\Dolus``. On Windows the store is the HKLM registry hive; other
hosts keep the same layout in a JSON document.
"""

import json
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Union, runtime_checkable

from loguru import logger

from .system import app_data_dir, is_windows
from .types import ConfigError, PathLike

StoreValue = Union[str, int]


@runtime_checkable
class KeyValueStore(Protocol):
    """Read and write named values under a namespace."""

    def get(self, path: str, key: str, default: Optional[StoreValue] = None) -> Optional[StoreValue]: ...

    def set(self, path: str, key: str, value: StoreValue) -> None: ...

    def delete_tree(self, path: str) -> None: ...


def _normalize(path: str) -> str:
    return "\\".join(part for part in path.replace("/", "\\").split("\\") if part).lower()


class MemoryStore:
    """In-process store; nothing survives the run."""

    def __init__(self, data: Optional[Dict[str, Dict[str, StoreValue]]] = None):
        self._data: Dict[str, Dict[str, StoreValue]] = {
            _normalize(path): dict(values) for path, values in (data or {}).items()
        }
        self._lock = threading.Lock()

    def get(self, path: str, key: str, default: Optional[StoreValue] = None) -> Optional[StoreValue]:
        with self._lock:
            return self._data.get(_normalize(path), {}).get(key, default)

    def set(self, path: str, key: str, value: StoreValue) -> None:
        with self._lock:
            self._data.setdefault(_normalize(path), {})[key] = value

    def delete_tree(self, path: str) -> None:
        prefix = _normalize(path)
        with self._lock:
            for name in [n for n in self._data if n == prefix or n.startswith(prefix + "\\")]:
                del self._data[name]

    def values(self, path: str) -> Dict[str, StoreValue]:
        with self._lock:
            return dict(self._data.get(_normalize(path), {}))


class JsonFileStore(MemoryStore):
    """
    Store persisted as a JSON document.

    Every write replaces the whole document atomically.
    """

    def __init__(self, file_path: PathLike):
        self.file_path = Path(file_path)
        data: Dict[str, Dict[str, Any]] = {}
        if self.file_path.exists():
            try:
                data = json.loads(self.file_path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                raise ConfigError(f"Store file {self.file_path} is unreadable: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"Store file {self.file_path} does not contain an object")
        super().__init__(data)

    def set(self, path: str, key: str, value: StoreValue) -> None:
        super().set(path, key, value)
        self._save()

    def delete_tree(self, path: str) -> None:
        super().delete_tree(path)
        self._save()

    def _save(self) -> None:
        with self._lock:
            document = json.dumps(self._data, indent=2, sort_keys=True)
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.file_path.name}.", dir=self.file_path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(document)
            os.replace(tmp_name, self.file_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class WindowsRegistryStore:
    """Store backed by ``HKEY_LOCAL_MACHINE``."""

    def __init__(self):
        import winreg

        self._winreg = winreg

    @contextmanager
    def _registry_key(self, key_path: str, access: int):
        """Context manager for safe registry key access."""
        key = self._winreg.OpenKey(self._winreg.HKEY_LOCAL_MACHINE, key_path, 0, access)
        try:
            yield key
        finally:
            self._winreg.CloseKey(key)

    def get(self, path: str, key: str, default: Optional[StoreValue] = None) -> Optional[StoreValue]:
        try:
            with self._registry_key(path, self._winreg.KEY_READ) as handle:
                value, _ = self._winreg.QueryValueEx(handle, key)
                return value
        except FileNotFoundError:
            logger.debug(f"Registry value not found: {path}\\{key}")
            return default

    def set(self, path: str, key: str, value: StoreValue) -> None:
        kind = self._winreg.REG_DWORD if isinstance(value, int) else self._winreg.REG_SZ
        with self._winreg.CreateKeyEx(
            self._winreg.HKEY_LOCAL_MACHINE, path, 0, self._winreg.KEY_WRITE
        ) as handle:
            self._winreg.SetValueEx(handle, key, 0, kind, value)

    def delete_tree(self, path: str) -> None:
        try:
            with self._registry_key(path, self._winreg.KEY_ALL_ACCESS) as handle:
                while True:
                    try:
                        child = self._winreg.EnumKey(handle, 0)
                    except OSError:
                        break
                    self.delete_tree(f"{path}\\{child}")
            self._winreg.DeleteKey(self._winreg.HKEY_LOCAL_MACHINE, path)
            logger.debug(f"Deleted registry key {path}")
        except FileNotFoundError:
            logger.debug(f"Registry key already absent: {path}")


def open_default_store(store_path: Optional[PathLike] = None) -> KeyValueStore:
    """
    The store for this host: the registry on Windows, a JSON file elsewhere.

    Args:
        store_path: JSON document location; defaults to ``bootstrapper/store.json``
            in the per-user data directory. Ignored on Windows.
    """
    if is_windows():
        return WindowsRegistryStore()
    path = Path(store_path) if store_path else app_data_dir() / "bootstrapper" / "store.json"
    logger.debug(f"Using JSON configuration store at {path}")
    return JsonFileStore(path)
