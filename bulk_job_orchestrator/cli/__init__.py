"""
CLI package for Bulk Job Orchestrator

Provides command-line interface for bulk loads, queries and job management.
"""

from .main import main, cli

__all__ = ["main", "cli"]
