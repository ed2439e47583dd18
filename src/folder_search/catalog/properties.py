"""String properties persisted to a JSON file on every change."""

import json
import os
import threading
from pathlib import Path

from folder_search.utils.logging import get_logger

logger = get_logger(__name__)


class PersistentProperties:
    """A string-to-string mapping backed by a JSON file.

    Defaults are applied first and then overlaid with the file's contents.
    If the file cannot be read or written, the store keeps working in
    memory and ``persistent`` becomes False.

    Example:
        >>> props = PersistentProperties(Path("config.json"), {"a": "1"})
        >>> props.set("a", "2")  # written to disk immediately
    """

    def __init__(self, path: Path, defaults: dict[str, str] | None = None) -> None:
        self.path = path
        self.persistent = True
        self._values: dict[str, str] = dict(defaults or {})
        self._lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            self._save()
            return
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Cannot read properties", path=str(self.path), error=str(e))
            self.persistent = False
            return
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed properties file", path=str(self.path))
            self.persistent = False
            return
        self._values.update({str(k): str(v) for k, v in data.items()})

    def _save(self) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(self._values, f, indent=2, sort_keys=True)
            os.replace(tmp, self.path)
        except OSError as e:
            logger.warning("Cannot write properties", path=str(self.path), error=str(e))
            self.persistent = False
            return
        self.persistent = True

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._values.get(key, default)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value
            self._save()

    def remove(self, key: str) -> None:
        with self._lock:
            if self._values.pop(key, None) is not None:
                self._save()

    def names(self) -> list[str]:
        return sorted(self._values)

    def as_dict(self) -> dict[str, str]:
        return dict(self._values)

    def __contains__(self, key: object) -> bool:
        return key in self._values
