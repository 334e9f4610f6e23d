"""agentboard -- live reconstruction of agent lifecycles from tool-use hooks."""

__version__ = "0.1.0"
