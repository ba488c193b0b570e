"""Persistent project list and terminal names."""

from agent_station.session.name_store import TerminalNameStore, default_name
from agent_station.session.project_store import Project, ProjectError, ProjectStore

__all__ = ["Project", "ProjectError", "ProjectStore", "TerminalNameStore", "default_name"]
