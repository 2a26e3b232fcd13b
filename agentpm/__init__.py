"""agentpm - lifecycle tracking for agent-driven epics."""

__version__ = "0.4.0"
