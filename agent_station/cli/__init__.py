"""Command-line interface for agent-station."""
