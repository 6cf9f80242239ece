"""Unit tests for the category registry."""

from __future__ import annotations

import pytest

from bettertesting.categories.registry import CategoryRegistry, TestCategory, register_defaults
from bettertesting.config import DEFAULT_CATEGORIES
from bettertesting.errors import (
    ApplyError,
    CycleError,
    DuplicateCategoryError,
    RegistryFrozenError,
)


class TestTestCategory:
    """Tests for the TestCategory record."""

    def test_defaults_derive_from_name(self):
        """task_name, source_set and description default from the name."""
        category = TestCategory(name="integration")
        assert category.task_name == "integration"
        assert category.source_set == "integration"
        assert category.description == "Runs the integration tests."
        assert category.runs_after == frozenset()
        assert category.auto_runs_on_check is False

    def test_explicit_task_name(self):
        """The unit category maps to the pre-existing test task."""
        category = TestCategory(name="unit", task_name="test", source_set="test")
        assert category.task_name == "test"
        assert category.source_set == "test"

    def test_sets_are_frozen(self):
        """runs_after given as a list is stored as a frozenset."""
        category = TestCategory(name="b", runs_after=["a"])  # type: ignore[arg-type]
        assert category.runs_after == frozenset({"a"})

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError, match="must not be empty"):
            TestCategory(name="")

    def test_immutable(self):
        category = TestCategory(name="unit")
        with pytest.raises(AttributeError):
            category.name = "other"  # type: ignore[misc]


class TestRegister:
    """Tests for CategoryRegistry.register()."""

    def test_register_returns_category(self):
        registry = CategoryRegistry()
        category = registry.register("unit", auto_runs_on_check=True)
        assert category.name == "unit"
        assert category.auto_runs_on_check is True
        assert "unit" in registry
        assert len(registry) == 1

    def test_registration_order_kept(self):
        registry = CategoryRegistry()
        registry.register("c")
        registry.register("a")
        registry.register("b")
        assert registry.names() == ["c", "a", "b"]
        assert [c.name for c in registry] == ["c", "a", "b"]

    def test_duplicate_rejected(self):
        registry = CategoryRegistry()
        registry.register("unit")
        with pytest.raises(DuplicateCategoryError) as exc_info:
            registry.register("unit")
        assert exc_info.value.name == "unit"
        assert len(registry) == 1

    def test_self_reference_is_cycle(self):
        registry = CategoryRegistry()
        with pytest.raises(CycleError) as exc_info:
            registry.register("a", runs_after=["a"])
        assert exc_info.value.cycle == ["a", "a"]
        assert "a" not in registry

    def test_cycle_through_forward_reference(self):
        """a runs after b (not yet registered); b running after a closes a cycle."""
        registry = CategoryRegistry()
        registry.register("a", runs_after=["b"])
        with pytest.raises(CycleError) as exc_info:
            registry.register("b", runs_after=["a"])
        assert exc_info.value.cycle == ["b", "a", "b"]
        assert "b" not in registry

    def test_longer_cycle(self):
        registry = CategoryRegistry()
        registry.register("a", runs_after=["c"])
        registry.register("b", runs_after=["a"])
        with pytest.raises(CycleError) as exc_info:
            registry.register("c", runs_after=["b"])
        assert exc_info.value.cycle[0] == exc_info.value.cycle[-1] == "c"
        assert "c -> b -> a -> c" in str(exc_info.value)

    def test_acyclic_diamond_accepted(self):
        registry = CategoryRegistry()
        registry.register("a")
        registry.register("b", runs_after=["a"])
        registry.register("c", runs_after=["a"])
        registry.register("d", runs_after=["b", "c"])
        assert registry.get("d").runs_after == frozenset({"b", "c"})

    def test_forward_reference_allowed(self):
        """Unknown predecessors are accepted at registration time."""
        registry = CategoryRegistry()
        category = registry.register("integration", runs_after=["unit"])
        assert category.runs_after == frozenset({"unit"})

    def test_frozen_registry_is_read_only(self):
        registry = CategoryRegistry()
        registry.register("unit")
        registry.freeze()
        assert registry.frozen
        with pytest.raises(RegistryFrozenError):
            registry.register("integration")
        assert registry.names() == ["unit"]

    def test_get_unknown_raises(self):
        registry = CategoryRegistry()
        with pytest.raises(KeyError):
            registry.get("missing")


class TestRegisterDefaults:
    """Tests for registering categories from configuration entries."""

    def test_default_categories(self):
        """The default configuration yields unit, integration and system."""
        registry = CategoryRegistry()
        register_defaults(registry, DEFAULT_CATEGORIES)

        assert registry.names() == ["unit", "integration", "system"]
        unit = registry.get("unit")
        assert unit.auto_runs_on_check is True
        assert unit.runs_after == frozenset()
        assert unit.task_name == "test"

        integration = registry.get("integration")
        assert integration.auto_runs_on_check is True
        assert integration.runs_after == frozenset({"unit"})

        system = registry.get("system")
        assert system.auto_runs_on_check is False
        assert system.depends_on_lifecycle == frozenset({"build"})

    def test_null_lists_tolerated(self):
        """YAML ``runs_after:`` with no value loads as None."""
        registry = CategoryRegistry()
        register_defaults(registry, [{"name": "unit", "runs_after": None}])
        assert registry.get("unit").runs_after == frozenset()

    def test_missing_name_rejected(self):
        registry = CategoryRegistry()
        with pytest.raises(ApplyError, match="without a name"):
            register_defaults(registry, [{"auto_runs_on_check": True}])
