"""FlowPilot: execution engine and API for visual automation workflows."""

__version__ = "0.1.0"
