"""Tests for the view registry and generated map functions."""

from __future__ import annotations

import pytest

from settee.core.errors import ViewNotFoundError
from settee.views.registry import (
    ViewRegistry,
    generate_all_source,
    generate_map_source,
    view_name_for,
)


class TestGeneratedMaps:
    def test_single_key_emits_scalar(self):
        """One property is emitted as a scalar key with a null value."""
        source = generate_map_source("Course", ["title"], "type")
        assert 'emit(doc["title"], null);' in source
        assert 'doc["type"] == "Course"' in source
        assert 'doc["title"] != null' in source

    def test_compound_key_keeps_call_order(self):
        """Several properties are emitted as an array in the given order."""
        source = generate_map_source("Article", ["user_id", "date"], "type")
        assert 'emit([doc["user_id"], doc["date"]], null);' in source

    def test_ducktype_drops_type_check(self):
        """ducktype views skip the discriminator clause."""
        source = generate_map_source("Course", ["dept"], "type", ducktype=True)
        assert "Course" not in source
        assert 'doc["dept"] != null' in source

    def test_guards_are_appended(self):
        """Guards join the generated condition."""
        source = generate_map_source("Course", ["title"], "type", guards=["doc.active"])
        assert "(doc.active)" in source

    def test_custom_type_key(self):
        """The discriminator field name is configurable."""
        source = generate_map_source("Course", ["title"], "couchrest-type")
        assert 'doc["couchrest-type"] == "Course"' in source

    def test_no_keys_rejected(self):
        """A generated view needs a key."""
        with pytest.raises(ValueError):
            generate_map_source("Course", [], "type")

    def test_all_view_keyed_by_id(self):
        """The all view emits the document id."""
        source = generate_all_source("Course", "type")
        assert 'emit(doc["_id"], null);' in source
        assert "Course" in source

    def test_all_view_condition_matches_generated_shape(self):
        """The type clause is parenthesised like every generated condition."""
        source = generate_all_source("Course", "type")
        assert 'if ((doc["type"] == "Course")) {' in source

    def test_view_names(self):
        """View names follow the by_<a>_and_<b> pattern."""
        assert view_name_for(["title"]) == "by_title"
        assert view_name_for(["user_id", "date"]) == "by_user_id_and_date"


class TestViewRegistry:
    def test_declare_and_lookup(self):
        """Declared views are found by name."""
        registry = ViewRegistry()
        definition = registry.declare("Article", "by_date", "function(doc){}", default_options={"descending": True})
        assert registry.lookup("Article", "by_date") is definition
        assert definition.default_options["descending"] is True
        assert registry.has_view("Article", "by_date")

    def test_lookup_miss_raises(self):
        """Unknown views raise ViewNotFoundError, which is also a KeyError."""
        registry = ViewRegistry()
        with pytest.raises(ViewNotFoundError):
            registry.lookup("Article", "by_nothing")
        with pytest.raises(KeyError):
            registry.lookup("Article", "by_nothing")

    def test_redeclare_replaces(self):
        """Declaring the same name again replaces the old definition."""
        registry = ViewRegistry()
        first = registry.declare("Article", "by_date", "function(doc){ emit(1, null); }")
        second = registry.declare("Article", "by_date", "function(doc){ emit(2, null); }")
        assert registry.lookup("Article", "by_date") is second
        assert first.map_source != second.map_source

    def test_definitions_are_immutable(self):
        """ViewDefinition cannot be changed after creation."""
        registry = ViewRegistry()
        definition = registry.declare("Article", "by_date", "m", default_options={"limit": 1})
        with pytest.raises(AttributeError):
            definition.name = "other"  # type: ignore[misc]
        with pytest.raises(TypeError):
            definition.default_options["limit"] = 2  # type: ignore[index]

    def test_default_options_copied(self):
        """Mutating the caller's options after declaring has no effect."""
        registry = ViewRegistry()
        options = {"descending": True}
        registry.declare("Article", "by_date", "m", default_options=options)
        options["descending"] = False
        assert registry.lookup("Article", "by_date").default_options["descending"] is True

    def test_model_types_are_separate(self):
        """Each model type has its own namespace."""
        registry = ViewRegistry()
        registry.declare("Article", "by_title", "m")
        assert not registry.has_view("Course", "by_title")

    def test_synthesize_records_keys(self):
        """Synthesized views remember their keys."""
        registry = ViewRegistry()
        definition = registry.synthesize("Article", ["user_id", "date"], "type")
        assert definition.name == "by_user_id_and_date"
        assert definition.keys == ("user_id", "date")
        assert definition.reduce_source is None

    def test_reversed_synthesized_views_are_independent(self):
        """Reversed key order is a different view."""
        registry = ViewRegistry()
        forward = registry.synthesize("Article", ["title", "date"], "type")
        backward = registry.synthesize("Article", ["date", "title"], "type")
        assert forward.name != backward.name
        assert set(registry.views_for("Article")) == {"by_title_and_date", "by_date_and_title"}

    def test_ensure_all_view_is_idempotent(self):
        """The all view is declared once."""
        registry = ViewRegistry()
        first = registry.ensure_all_view("Course", "type")
        second = registry.ensure_all_view("Course", "type")
        assert first is second
        assert first.reduce_source == "_count"

    def test_design_views(self):
        """design_views renders map and reduce entries."""
        registry = ViewRegistry()
        registry.declare("Article", "by_tags", "map-src", reduce_source="reduce-src")
        registry.declare("Article", "by_date", "date-src")
        assert registry.design_views("Article") == {
            "by_tags": {"map": "map-src", "reduce": "reduce-src"},
            "by_date": {"map": "date-src"},
        }

    def test_clear(self):
        """clear() forgets one model type or all."""
        registry = ViewRegistry()
        registry.declare("Article", "by_date", "m")
        registry.declare("Course", "by_title", "m")
        registry.clear("Article")
        assert registry.views_for("Article") == {}
        assert registry.has_view("Course", "by_title")
        registry.clear()
        assert registry.views_for("Course") == {}
