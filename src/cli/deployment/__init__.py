"""Deployment module for releasing Helm charts from a CI/CD pipeline.

The package is organized into subpackages for modularity:
- shell_commands: Abstractions for shell command execution
- chart_release: Parameter resolution and the release action dispatcher
"""

from .chart_release import ActionDispatcher, ReleaseError

__all__ = ["ActionDispatcher", "ReleaseError"]
