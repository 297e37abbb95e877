"""CLI command modules.

Command:
- release: Run one chart release action per pipeline stage
"""

from .release import release

__all__ = ["release"]
