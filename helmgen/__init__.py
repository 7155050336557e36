"""Processors that turn Kubernetes objects into Helm chart templates and values."""

__version__ = "0.1.0"