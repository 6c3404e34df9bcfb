"""Cluster manager - automatic admission and telemetry for a fleet of member clusters."""

__version__ = "0.1.0"
