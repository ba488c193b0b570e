"""Desktop GUI for agent-station."""
