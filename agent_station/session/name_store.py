"""Persistent terminal display names, keyed by project and slot.

Only names survive a restart; the terminals themselves do not. A slot is the
stable 1-based ordinal a terminal gets inside its project, so the second
terminal of a project picks its custom name back up after a restart.
"""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger

_DATA_ROOT = Path.home() / ".agent-station"
_NAMES_FILE = "terminal_names.json"


def default_name(slot: int) -> str:
    return f"Agent {slot}"


class TerminalNameStore:
    """JSON-backed ``{project_id: {slot: name}}`` map."""

    def __init__(self, root: Path | None = None) -> None:
        self._root = root or _DATA_ROOT
        self._root.mkdir(parents=True, exist_ok=True)
        self._path = self._root / _NAMES_FILE
        self._names: dict[str, dict[str, str]] = self._read()

    def get(self, project_id: str, slot: int) -> str:
        """Return the custom name for a slot, or the ordinal default."""
        return self._names.get(project_id, {}).get(str(slot)) or default_name(slot)

    def set(self, project_id: str, slot: int, name: str) -> str:
        """Rename a slot. Blank names reset to the default."""
        cleaned = name.strip()
        slots = self._names.setdefault(project_id, {})
        if cleaned and cleaned != default_name(slot):
            slots[str(slot)] = cleaned
        else:
            slots.pop(str(slot), None)
            if not slots:
                self._names.pop(project_id, None)
        self._write()
        return self.get(project_id, slot)

    def forget_project(self, project_id: str) -> None:
        if self._names.pop(project_id, None) is not None:
            self._write()

    def _read(self) -> dict[str, dict[str, str]]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(f"[names] Failed to read {self._path}: {exc}")
            return {}
        if not isinstance(data, dict):
            return {}
        return {
            str(pid): {str(k): str(v) for k, v in slots.items()}
            for pid, slots in data.items()
            if isinstance(slots, dict)
        }

    def _write(self) -> None:
        self._path.write_text(json.dumps(self._names, ensure_ascii=False, indent=2), encoding="utf-8")
