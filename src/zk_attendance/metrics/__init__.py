"""Metrics module."""

from . import registry
from .registry import start_metrics_server

__all__ = [
    "registry",
    "start_metrics_server",
]
