"""Runbook: document model and execution tracking for migration runbooks."""

__version__ = "0.1.0"
