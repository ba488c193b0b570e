"""Configuration module for agent-station."""

from agent_station.config.loader import get_config_path, load_config, save_config
from agent_station.config.schema import Config, GUIConfig, LoggingConfig, TerminalConfig

__all__ = [
    "Config",
    "GUIConfig",
    "LoggingConfig",
    "TerminalConfig",
    "get_config_path",
    "load_config",
    "save_config",
]
