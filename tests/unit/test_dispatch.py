"""Tests for finder name parsing and dynamic dispatch."""

from __future__ import annotations

import pytest

from settee import Model
from settee.core.errors import NoSuchFinderError
from settee.dispatch import finder_key, parse_finder


class TestParsing:
    def test_single_property(self):
        """A one-property finder parses to one key."""
        assert parse_finder("find_by_title") == ["title"]

    def test_compound_properties_keep_order(self):
        """Compound finders keep the call order of their properties."""
        assert parse_finder("find_by_user_id_and_date") == ["user_id", "date"]
        assert parse_finder("find_by_date_and_user_id") == ["date", "user_id"]

    def test_not_a_finder(self):
        """Names outside the pattern, or with empty parts, are rejected."""
        assert parse_finder("by_title") is None
        assert parse_finder("find_by_") is None
        assert parse_finder("find_by_title_and_") is None

    def test_finder_key_shapes(self):
        """Scalars stay scalars; compound values become a list."""
        assert finder_key(["title"], ["bbb"]) == "bbb"
        assert finder_key(["title"], [["a", "b"]]) == ["a", "b"]
        assert finder_key(["title", "active"], ["bbb", True]) == ["bbb", True]
        assert finder_key(["title", "active"], [("bbb", True)]) == ["bbb", True]

    def test_finder_key_arity(self):
        """Too few values for a compound finder is a TypeError."""
        with pytest.raises(TypeError):
            finder_key(["title", "active"], ["bbb"])


class TestErrors:
    def test_no_such_finder_carries_context(self):
        """The finder name survives AttributeError's own initialisation."""
        error = NoSuchFinderError("Course", "find_by_foobar", "unknown properties ['foobar']")
        assert error.model_type == "Course"
        assert error.name == "find_by_foobar"
        assert error.reason == "unknown properties ['foobar']"
        assert "find_by_foobar" in str(error)
        assert isinstance(error, AttributeError)


class TestResolve:
    def test_declared_view_resolves(self, context, course_model):
        """A declared view name binds to a callable."""
        finder = context.dispatcher.resolve(course_model, "by_title")
        assert callable(finder)

    def test_unknown_name(self, context, course_model):
        """Names matching nothing raise NoSuchFinderError with the name."""
        with pytest.raises(NoSuchFinderError) as excinfo:
            context.dispatcher.resolve(course_model, "by_professor")
        assert excinfo.value.name == "by_professor"
        assert excinfo.value.model_type == "Course"

    def test_no_such_finder_is_attribute_error(self, course_model):
        """Unknown finders behave like missing attributes."""
        assert not hasattr(course_model, "by_nothing")
        with pytest.raises(AttributeError):
            course_model.frobnicate()

    def test_unknown_property(self, course_model):
        """find_by_ on an undeclared property fails at attribute access."""
        with pytest.raises(NoSuchFinderError):
            course_model.find_by_foobar("123")

    def test_finder_view_synthesized_on_call(self, context, course_model):
        """Resolving a finder registers nothing; calling it does."""
        finder = context.dispatcher.resolve(course_model, "find_by_professor")
        assert not course_model.has_view("by_professor")
        assert finder("smith") is None
        definition = context.registry.lookup("Course", "by_professor")
        assert definition.keys == ("professor",)

    def test_hasattr_leaves_registry_untouched(self, context, db):
        """Probing a finder on a model without properties declares no view."""

        class Loose(Model, context=context):
            database = db

        assert hasattr(Loose, "find_by_anything")
        assert not Loose.has_view("by_anything")
        assert set(Loose.design_doc()["views"]) == {"all"}

    def test_shape_collision(self, article_model):
        """A finder whose name matches a view of another shape fails."""
        with pytest.raises(NoSuchFinderError, match="declared with keys"):
            article_model.find_by_user_id_and_time("bob", "2024-01-01T00:00:00")

    def test_declared_generated_view_reused(self, context, article_model):
        """A finder over a declared view's keys uses that view."""
        before = context.registry.lookup("Article", "by_user_id_and_date")
        context.dispatcher.resolve(article_model, "find_by_user_id_and_date")("bob", "2024")
        assert context.registry.lookup("Article", "by_user_id_and_date") is before

    def test_declared_custom_view_reused(self, context, article_model):
        """A custom map declared over one key still serves its finder."""
        before = context.registry.lookup("Article", "by_tags")
        context.dispatcher.resolve(article_model, "find_by_tags")("cool")
        assert context.registry.lookup("Article", "by_tags") is before

    def test_dispatch_by_name(self, course_model, save):
        """dispatch() resolves and calls in one step."""
        save(course_model, title="aaa")
        assert [c.title for c in course_model.dispatch("by_title")] == ["aaa"]
        assert course_model.dispatch("find_by_title", "aaa").title == "aaa"

    def test_private_names_not_dispatched(self, course_model):
        """Underscore names never reach the dispatcher."""
        with pytest.raises(AttributeError):
            course_model._secret
