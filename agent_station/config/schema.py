"""Configuration schema for agent-station."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings


class TerminalConfig(BaseModel):
    """How shell sessions are spawned and read."""

    shell: str = ""
    login_shell: bool = True
    term: str = "xterm-256color"
    colorterm: str = "truecolor"
    default_cols: int = Field(default=80, ge=1)
    default_rows: int = Field(default=24, ge=1)
    read_chunk_size: int = Field(default=4096, ge=1)
    read_timeout_s: float = Field(default=0.1, gt=0)
    task_list_env: str = "CLAUDE_CODE_TASK_LIST_ID"
    max_unreported_exits: int = Field(default=32, ge=0)
    env: dict[str, str] = Field(default_factory=dict)

    def resolve_shell(self) -> str:
        """Return configured shell, then $SHELL, then the platform default."""
        value = (self.shell or "").strip()
        if value:
            return value
        if os.name == "nt":
            return os.environ.get("COMSPEC", "cmd.exe")
        return os.environ.get("SHELL", "") or "/bin/bash"

    def shell_args(self) -> list[str]:
        if self.login_shell and os.name != "nt":
            return ["-l"]
        return []


class GUIConfig(BaseModel):
    """Desktop GUI configuration."""

    width: int = 1400
    height: int = 800
    font_family: str = "Menlo"
    font_size: int = 13
    line_height: float = 1.2
    zoom: float = Field(default=1.0, ge=0.5, le=2.0)


class LoggingConfig(BaseModel):
    """Log sinks configured by the CLI."""

    level: str = "INFO"
    to_file: bool = True
    rotation: str = "10 MB"
    retention: str = "7 days"


class Config(BaseSettings):
    """Root configuration for agent-station."""

    data_dir: str = "~/.agent-station"
    terminal: TerminalConfig = Field(default_factory=TerminalConfig)
    gui: GUIConfig = Field(default_factory=GUIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def data_path(self) -> Path:
        """Get expanded data directory path."""
        return Path(self.data_dir).expanduser()

    model_config = ConfigDict(
        env_prefix="AGENT_STATION_",
        env_nested_delimiter="__",
        extra="ignore",
    )
