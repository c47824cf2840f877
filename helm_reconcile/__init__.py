"""
.. include:: ../README.md
"""

__all__ = [
    "provider",
    "manifest",
    "chart",
    "release",
    "planner",
    "helm",
    "project",
    "exceptions",
    # Note this is exposed for CLI documentation, not to be used as a library
    "tool",
]
