"""
Shared fixtures: an in-memory stand-in for the Supabase table API, a queued
chat client and a canned literature client.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional

import pytest

from llm import ChatResult
from model_router import ModelConfig


def _compare(op: str, actual: Any, expected: Any) -> bool:
    if op == "is":
        return actual is expected or actual == expected
    if op == "not.is":
        return not (actual is expected or actual == expected)
    if op == "in":
        return actual in expected
    # PostgREST comparisons never match NULL
    if actual is None:
        return False
    if op == "eq":
        return actual == expected
    if op == "neq":
        return actual != expected
    if op == "gt":
        return actual > expected
    if op == "gte":
        return actual >= expected
    if op == "lt":
        return actual < expected
    if op == "lte":
        return actual <= expected
    raise AssertionError(f"unsupported filter operator in fake db: {op}")


def _matches(row: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    for key, value in (filters or {}).items():
        actual = row.get(key)
        if isinstance(value, list):
            if not all(_compare(op, actual, raw) for op, raw in value):
                return False
        elif isinstance(value, tuple) and len(value) == 2:
            if not _compare(value[0], actual, value[1]):
                return False
        elif actual != value:
            return False
    return True


class FakeTable:
    def __init__(self, db: "FakeDb", name: str) -> None:
        self._db = db
        self._name = name

    @property
    def rows(self) -> List[Dict[str, Any]]:
        return self._db.tables.setdefault(self._name, [])

    def _query(self, filters, order) -> List[Dict[str, Any]]:
        rows = [copy.deepcopy(r) for r in self.rows if _matches(r, filters)]
        if order:
            col, direction = order
            present = [r for r in rows if r.get(col) is not None]
            missing = [r for r in rows if r.get(col) is None]
            present.sort(key=lambda r: r[col], reverse=direction == "desc")
            # Postgres puts NULLs last ascending and first descending
            rows = missing + present if direction == "desc" else present + missing
        return rows

    def select(self, *, filters=None, columns="*", limit=None, offset=None, order=None):
        self._db.calls.append(("select", self._name, filters))
        rows = self._query(filters, order)
        start = offset or 0
        return rows[start : start + limit] if limit is not None else rows[start:]

    def select_with_count(self, *, filters=None, columns="*", limit=None, offset=None, order=None):
        rows = self._query(filters, order)
        total = len(rows)
        start = offset or 0
        return (rows[start : start + limit] if limit is not None else rows[start:]), total

    def insert(self, rows, *, returning=True):
        payload = rows if isinstance(rows, list) else [rows]
        for row in payload:
            self.rows.append(copy.deepcopy(row))
        return [copy.deepcopy(r) for r in payload] if returning else []

    def update(self, values, *, filters, returning=False):
        updated = []
        for row in self.rows:
            if _matches(row, filters):
                row.update(copy.deepcopy(values))
                updated.append(copy.deepcopy(row))
        return updated if returning else []

    def delete(self, *, filters, returning=False):
        if not filters:
            raise ValueError("Refusing to delete without filters")
        kept, removed = [], []
        for row in self.rows:
            (removed if _matches(row, filters) else kept).append(row)
        self._db.tables[self._name] = kept
        return removed if returning else []


class FakeDb:
    def __init__(self) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.calls: List[Any] = []

    def table(self, name: str) -> FakeTable:
        return FakeTable(self, name)


class FakeLLM:
    """Returns queued replies in order and records every request."""

    def __init__(self, *replies: str) -> None:
        self.replies = list(replies)
        self.calls: List[Dict[str, Any]] = []

    def queue(self, *replies: str) -> None:
        self.replies.extend(replies)

    def chat(self, messages: List[Dict[str, Any]], config: ModelConfig) -> ChatResult:
        self.calls.append({"messages": messages, "config": config})
        if not self.replies:
            raise AssertionError("FakeLLM ran out of replies")
        return ChatResult(text=self.replies.pop(0), model=config.model)


class FakeLiterature:
    def __init__(self, context: str = "Relevant medical literature:\n[1] Trial", citations=None) -> None:
        self.context = context
        self.citations = citations if citations is not None else [
            {"index": 1, "title": "Trial", "url": "https://pubmed.ncbi.nlm.nih.gov/1/"}
        ]
        self.questions: List[str] = []

    def medical_literature(self, question: str, max_results: int = 3) -> Dict[str, Any]:
        self.questions.append(question)
        return {"context": self.context, "citations": list(self.citations)}


@pytest.fixture
def db() -> FakeDb:
    return FakeDb()


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def literature() -> FakeLiterature:
    return FakeLiterature()


@pytest.fixture
def assistant(llm, literature):
    from study_ai import StudyAssistant

    return StudyAssistant(llm, literature)


@pytest.fixture
def app(db, assistant):
    from api import create_app

    flask_app = create_app(db=db, assistant=assistant, init_db=False, seed_concepts=False)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def user_headers():
    return {"X-User-Id": "user-1"}
