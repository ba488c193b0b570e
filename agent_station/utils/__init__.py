"""Utility functions for agent-station."""

from agent_station.utils.helpers import ensure_dir, get_data_path, setup_logging

__all__ = ["ensure_dir", "get_data_path", "setup_logging"]
