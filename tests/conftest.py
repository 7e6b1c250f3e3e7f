"""Shared test fixtures for Settee."""

from __future__ import annotations

import pytest

from settee import MemoryDatabase, Model, ViewContext
from settee.config import Settings, reset_settings
from settee.context import reset_default_context

TAGS_MAP = """function(doc) {
  if (doc['type'] == 'Article' && doc.tags) {
    doc.tags.forEach(function(tag){
      emit(tag, 1);
    });
  }
}"""

TAGS_REDUCE = """function(keys, values, rereduce) {
  return sum(values);
}"""

USER_TIME_MAP = """function(doc) {
  if (doc['type'] == 'Article') {
    emit([doc['user_id'], doc['time']], null);
  }
}"""


def tags_map(doc):
    """Python twin of TAGS_MAP for the memory store."""
    if doc.get("type") == "Article" and doc.get("tags"):
        return [(tag, 1) for tag in doc["tags"]]
    return []


def sum_reduce(keys, values, rereduce):
    return sum(values)


def user_time_map(doc):
    """Python twin of USER_TIME_MAP for the memory store."""
    if doc.get("type") == "Article":
        return [([doc.get("user_id"), doc.get("time")], None)]
    return []


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch, tmp_path):
    """Keep SETTEE_* variables and .env files out of every test."""
    for name in ("SETTEE_MODEL_TYPE_KEY", "SETTEE_COUCH_URL", "SETTEE_LOG_DIR", "SETTEE_VERBOSITY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_settings()
    reset_default_context()
    yield
    reset_settings()
    reset_default_context()


@pytest.fixture
def settings():
    """Default settings without environment or .env input."""
    return Settings(_env_file=None)


@pytest.fixture
def context(settings):
    """A fresh registry/cache/dispatcher per test."""
    ctx = ViewContext(settings=settings)
    yield ctx
    ctx.close()


@pytest.fixture
def db():
    """Empty in-memory database."""
    return MemoryDatabase("test")


@pytest.fixture
def article_model(context, db):
    """Article model with the date, compound and custom views."""

    class Article(Model, context=context):
        database = db
        properties = ("date", "time", "slug", "user_id", "title", "tags")

    Article.provides_collection("article_details", "by_date", descending=True, include_docs=True)
    Article.view_by("date", descending=True)
    Article.view_by("user_id", "date")
    Article.view_by("tags", map=TAGS_MAP, reduce=TAGS_REDUCE)
    Article.view_by("user_id_and_time", map=USER_TIME_MAP)

    db.register_view("Article", "by_tags", tags_map, sum_reduce)
    db.register_view("Article", "by_user_id_and_time", user_time_map)
    return Article


@pytest.fixture
def course_model(context, db):
    """Course model with generated views, one ducktype and one reducible."""

    class Course(Model, context=context):
        database = db
        properties = ("title", "questions", "professor", "active", "dept")

    Course.view_by("title")
    Course.view_by("dept", ducktype=True)
    Course.view_by("active", reduce="_count")
    return Course


@pytest.fixture
def unattached_model(context):
    """A model with no database bound at declaration time."""

    class Unattached(Model, context=context):
        properties = ("title", "questions", "professor")

    Unattached.view_by("title")
    return Unattached


@pytest.fixture
def save(db):
    """Store a new instance of a model in ``db`` and return it with _id/_rev set."""

    def _save(model, **fields):
        instance = model(**fields)
        db.save_doc(instance)
        return instance

    return _save
