"""Persistent project list, one entry per folder the user added."""

from __future__ import annotations

import json
import uuid
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from loguru import logger

_DATA_ROOT = Path.home() / ".agent-station"
_PROJECTS_FILE = "projects.json"


class ProjectError(ValueError):
    """Adding or removing a project failed."""


@dataclass(frozen=True)
class Project:
    """A project folder. Immutable once created."""

    project_id: str
    name: str
    path: str


class ProjectStore:
    """Persistent store for projects.

    File layout::

        ~/.agent-station/
            projects.json      # [{"project_id", "name", "path"}, ...]
    """

    def __init__(self, root: Path | None = None) -> None:
        self._root = root or _DATA_ROOT
        self._root.mkdir(parents=True, exist_ok=True)
        self._path = self._root / _PROJECTS_FILE
        self._projects: list[Project] = self._read()

    # ------------------------------------------------------------------ #
    # CRUD                                                                 #
    # ------------------------------------------------------------------ #

    def list_projects(self) -> list[Project]:
        """Return projects in the order they were added."""
        return list(self._projects)

    def get_project(self, project_id: str) -> Project | None:
        for project in self._projects:
            if project.project_id == project_id:
                return project
        return None

    def add_project(self, path: str) -> Project:
        """Register a folder as a project and persist the list."""
        folder = Path(path).expanduser()
        if not folder.exists():
            raise ProjectError("Path does not exist")
        if not folder.is_dir():
            raise ProjectError("Path is not a directory")

        resolved = str(folder.resolve())
        if any(p.path == resolved for p in self._projects):
            raise ProjectError("Project already exists")

        project = Project(
            project_id=str(uuid.uuid4()),
            name=folder.resolve().name or "Unknown",
            path=resolved,
        )
        self._projects.append(project)
        self._write()
        logger.info(f"[projects] Added {project.name} ({project.path})")
        return project

    def remove_project(self, project_id: str) -> bool:
        """Forget a project. Returns False if it was not known."""
        remaining = [p for p in self._projects if p.project_id != project_id]
        if len(remaining) == len(self._projects):
            return False
        self._projects = remaining
        self._write()
        return True

    # ------------------------------------------------------------------ #
    # Private helpers                                                      #
    # ------------------------------------------------------------------ #

    def _read(self) -> list[Project]:
        if not self._path.exists():
            return []
        try:
            data: list[dict[str, Any]] = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(f"[projects] Failed to read {self._path}: {exc}")
            return []
        projects: list[Project] = []
        for entry in data if isinstance(data, list) else []:
            if not isinstance(entry, dict) or not entry.get("path"):
                continue
            projects.append(Project(
                project_id=entry.get("project_id") or str(uuid.uuid4()),
                name=entry.get("name", "") or Path(entry["path"]).name,
                path=entry["path"],
            ))
        return projects

    def _write(self) -> None:
        self._path.write_text(
            json.dumps([asdict(p) for p in self._projects], ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
