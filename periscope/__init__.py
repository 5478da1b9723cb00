"""Diagnostics interfaces, run settings, OS identifiers and kubectl-style Kubernetes resource output."""

__version__ = "0.1.0"