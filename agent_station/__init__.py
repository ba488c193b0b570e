"""agent-station - desktop shell for supervising coding agents per project."""

__version__ = "0.1.0"
