"""Isolated unit, integration and system test categories with merged reports."""

from bettertesting.build.context import BuildContext
from bettertesting.config import BuildConfig
from bettertesting.plugin import BetterTesting, apply

__all__ = [
    "BetterTesting",
    "BuildConfig",
    "BuildContext",
    "apply",
]
