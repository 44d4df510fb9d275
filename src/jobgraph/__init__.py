"""Run inter-dependent local jobs in dependency order."""

__version__ = "0.1.0"
