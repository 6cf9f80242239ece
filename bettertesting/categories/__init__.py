"""Test categories: unit, integration and system test groupings."""

from bettertesting.categories.registry import CategoryRegistry, TestCategory, register_defaults

__all__ = [
    "CategoryRegistry",
    "TestCategory",
    "register_defaults",
]
