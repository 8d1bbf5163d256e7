"""Durable key-value store backed by a JSON file."""

import json
from pathlib import Path
from typing import Any

import structlog

logger = structlog.get_logger()


class JsonFileStore:
    """Small key-value store that survives process restarts.

    The whole document is rewritten on every change and swapped in with an
    atomic rename, so a crash mid-write leaves the previous version intact.
    """

    def __init__(self, path: Path) -> None:
        """Initialize store.

        Args:
            path: JSON file holding the data (created on first write)
        """
        self.path = Path(path)
        self.logger = logger.bind(component="client_store", path=str(self.path))

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value stored under ``key``."""
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Store a JSON serializable value under ``key``."""
        data = self._load()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            self.logger.warning("Client state unreadable, starting empty", error=str(e))
            return {}

        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp_path.chmod(0o600)  # Owner read/write only
        tmp_path.replace(self.path)
