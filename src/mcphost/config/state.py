"""Persisted per-server state (auto-start flags).

Stored as a small JSON document next to the user's other mcphost files:

    {"version": 1, "auto_start": {"notes": true}}
"""

import json
from pathlib import Path
from typing import Any

STATE_VERSION = 1


class ServerStateStore:
    """JSON-backed store of per-server auto-start booleans.

    A missing or unreadable file yields empty state. Save failures are
    logged and swallowed: losing a toggle must never take a server down.
    """

    def __init__(self, path: str | Path | None = None, logger: Any = None):
        """Initialize state store.

        Args:
            path: JSON file location; None keeps state in memory only
            logger: Optional HostLogger instance
        """
        self._path = Path(path).expanduser() if path is not None else None
        self._logger = logger
        self._auto_start: dict[str, bool] = {}

    @property
    def path(self) -> Path | None:
        return self._path

    def load(self) -> None:
        """Load state from disk, falling back to empty state."""
        if self._path is None:
            return
        self._auto_start = {}
        if not self._path.exists():
            return

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            if self._logger:
                self._logger.warn("config", f"Failed to load server state: {e}")
            return

        auto_start = data.get("auto_start", {}) if isinstance(data, dict) else {}
        if isinstance(auto_start, dict):
            self._auto_start = {
                str(server_id): flag
                for server_id, flag in auto_start.items()
                if isinstance(flag, bool)
            }

    def save(self) -> bool:
        """Write state to disk.

        Returns:
            True if written (or nothing to write to), False on failure
        """
        if self._path is None:
            return True

        content = json.dumps(
            {"version": STATE_VERSION, "auto_start": self._auto_start},
            indent=2,
            sort_keys=True,
        )
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(content, encoding="utf-8")
        except OSError as e:
            if self._logger:
                self._logger.error("config", f"Failed to save server state: {e}")
            return False
        return True

    def has_auto_start(self, server_id: str) -> bool:
        """Whether an explicit auto-start flag is stored for the server."""
        return server_id in self._auto_start

    def is_auto_start(self, server_id: str, default: bool = False) -> bool:
        return self._auto_start.get(server_id, default)

    def set_auto_start(self, server_id: str, auto_start: bool) -> bool:
        """Set and persist a server's auto-start flag.

        Returns:
            Result of save()
        """
        self._auto_start[server_id] = auto_start
        return self.save()

    def forget(self, server_id: str) -> bool:
        """Drop a removed server's state and persist."""
        self._auto_start.pop(server_id, None)
        return self.save()

    def snapshot(self) -> dict[str, bool]:
        return dict(self._auto_start)
