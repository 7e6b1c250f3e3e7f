"""In-process document store with CouchDB view semantics.

Views are evaluated by Python emulators of their map/reduce functions.
Map functions generated by Settee (property views and the ``all`` view)
are recognised and emulated automatically; hand-written JavaScript views
need an emulator registered with :meth:`MemoryDatabase.register_view`::

    db.register_view(
        "Article",
        "by_tags",
        lambda doc: [(tag, 1) for tag in doc.get("tags", [])] if doc.get("type") == "Article" else [],
    )

Built-in reduce functions ``_count``, ``_sum`` and ``_stats`` need no emulator.
"""

from __future__ import annotations

import copy
import json
import re
import threading
from collections.abc import Callable, Iterable
from itertools import groupby
from typing import Any
from uuid import uuid4

from settee.core.collation import collation_key
from settee.core.errors import RevisionConflictError, TransportError
from settee.store.base import DESIGN_PREFIX, DocumentStore, design_id_for

MapFunction = Callable[[dict[str, Any]], Iterable[tuple[Any, Any]]]
ReduceFunction = Callable[[list, list, bool], Any]

_QUOTED = r'"(?:[^"\\]|\\.)*"'
_CONDITION_RE = re.compile(r"if \((.*)\) \{", re.DOTALL)
_EMIT_RE = re.compile(r"emit\((.*), null\);")
_TYPE_CLAUSE_RE = re.compile(rf"^\(doc\[({_QUOTED})\] == ({_QUOTED})\)$")
_PRESENT_CLAUSE_RE = re.compile(rf"^\(doc\[({_QUOTED})\] != null\)$")
_FIELD_RE = re.compile(rf"doc\[({_QUOTED})\]")


def _reduce_count(keys: list, values: list, rereduce: bool) -> int:
    if rereduce:
        return sum(values)
    return len(values)


def _reduce_sum(keys: list, values: list, rereduce: bool) -> Any:
    return sum(values)


def _reduce_stats(keys: list, values: list, rereduce: bool) -> dict[str, Any]:
    return {
        "sum": sum(values),
        "count": len(values),
        "min": min(values),
        "max": max(values),
        "sumsqr": sum(v * v for v in values),
    }


BUILTIN_REDUCERS: dict[str, ReduceFunction] = {
    "_count": _reduce_count,
    "_sum": _reduce_sum,
    "_stats": _reduce_stats,
}


def emulate_generated_map(source: str) -> MapFunction | None:
    """Build a Python emulator for a map function generated by Settee.

    Returns None when ``source`` is not in the generated shape (custom
    JavaScript, extra guards), in which case an emulator must be registered.
    """
    condition = _CONDITION_RE.search(source)
    emit = _EMIT_RE.search(source)
    if condition is None or emit is None:
        return None

    type_checks: list[tuple[str, Any]] = []
    required: list[str] = []
    for clause in condition.group(1).split(" && "):
        clause = clause.strip()
        type_match = _TYPE_CLAUSE_RE.match(clause)
        present_match = _PRESENT_CLAUSE_RE.match(clause)
        if type_match:
            type_checks.append((json.loads(type_match.group(1)), json.loads(type_match.group(2))))
        elif present_match:
            required.append(json.loads(present_match.group(1)))
        else:
            return None

    emitted = emit.group(1).strip()
    fields = [json.loads(q) for q in _FIELD_RE.findall(emitted)]
    if not fields:
        return None
    compound = emitted.startswith("[")

    def map_fn(doc: dict[str, Any]) -> list[tuple[Any, Any]]:
        for field_name, expected in type_checks:
            if doc.get(field_name) != expected:
                return []
        if any(doc.get(name) is None for name in required):
            return []
        if compound:
            return [([doc.get(f) for f in fields], None)]
        return [(doc.get(fields[0]), None)]

    return map_fn


def _in_range(key: tuple, low: tuple | None, high: tuple | None, inclusive_end: bool) -> bool:
    if low is not None and key < low:
        return False
    if high is not None:
        if inclusive_end and key > high:
            return False
        if not inclusive_end and key >= high:
            return False
    return True


class MemoryDatabase(DocumentStore):
    """Thread-safe in-memory database."""

    def __init__(self, name: str = "settee"):
        self.name = name
        self._docs: dict[str, dict[str, Any]] = {}
        self._emulators: dict[tuple[str, str], tuple[MapFunction, ReduceFunction | None]] = {}
        self._lock = threading.RLock()
        self.write_count = 0

    @property
    def identity(self) -> str:
        return f"memory://{self.name}"

    # -- Documents --

    def get_document(self, doc_id: str) -> dict[str, Any] | None:
        with self._lock:
            doc = self._docs.get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def put_document(
        self,
        doc_id: str,
        body: dict[str, Any],
        revision: str | None = None,
    ) -> str:
        with self._lock:
            current = self._docs.get(doc_id)
            current_rev = current["_rev"] if current is not None else None
            if current_rev != revision:
                raise RevisionConflictError(doc_id, revision)
            generation = int(current_rev.split("-", 1)[0]) + 1 if current_rev else 1
            new_rev = f"{generation}-{uuid4().hex}"
            stored = copy.deepcopy(body)
            stored["_id"] = doc_id
            stored["_rev"] = new_rev
            self._docs[doc_id] = stored
            self.write_count += 1
            return new_rev

    def save_doc(self, doc: dict[str, Any]) -> dict[str, Any]:
        doc_id = doc.get("_id") or uuid4().hex
        body = {k: v for k, v in doc.items() if k not in ("_id", "_rev")}
        rev = self.put_document(doc_id, body, doc.get("_rev"))
        doc["_id"] = doc_id
        doc["_rev"] = rev
        return {"ok": True, "id": doc_id, "rev": rev}

    def delete_doc(self, doc: dict[str, Any]) -> None:
        with self._lock:
            current = self._docs.get(doc["_id"])
            if current is None or current["_rev"] != doc.get("_rev"):
                raise RevisionConflictError(doc["_id"], doc.get("_rev"))
            del self._docs[doc["_id"]]

    def design_documents(self) -> list[dict[str, Any]]:
        """All stored design documents."""
        with self._lock:
            return [
                copy.deepcopy(doc) for doc_id, doc in sorted(self._docs.items())
                if doc_id.startswith(DESIGN_PREFIX)
            ]

    def __len__(self):
        with self._lock:
            return sum(1 for doc_id in self._docs if not doc_id.startswith(DESIGN_PREFIX))

    # -- Views --

    def register_view(
        self,
        design: str,
        view_name: str,
        map_fn: MapFunction,
        reduce_fn: ReduceFunction | None = None,
    ) -> None:
        """Register Python emulators for a hand-written view.

        ``design`` is a model type or a full ``_design/...`` id.
        """
        design_id = design if design.startswith(DESIGN_PREFIX) else design_id_for(design)
        with self._lock:
            self._emulators[(design_id, view_name)] = (map_fn, reduce_fn)

    def _resolve_view(self, design_id: str, view_name: str) -> tuple[MapFunction, ReduceFunction | None]:
        design = self._docs.get(design_id)
        entry = (design or {}).get("views", {}).get(view_name)
        if entry is None:
            reason = "missing" if design is None else "missing_named_view"
            raise TransportError(f"not_found: {reason} {design_id}/{view_name}", status=404)

        map_fn, reduce_fn = self._emulators.get((design_id, view_name), (None, None))
        if map_fn is None:
            map_fn = emulate_generated_map(entry["map"])
        if map_fn is None:
            raise TransportError(f"no map emulator registered for {design_id}/{view_name}", status=500)

        reduce_source = entry.get("reduce")
        if reduce_source and reduce_fn is None:
            reduce_fn = BUILTIN_REDUCERS.get(reduce_source.strip())
            if reduce_fn is None:
                raise TransportError(
                    f"no reduce emulator registered for {design_id}/{view_name}", status=500
                )
        if not reduce_source:
            reduce_fn = None
        return map_fn, reduce_fn

    def query_view(
        self,
        design_id: str,
        view_name: str,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        with self._lock:
            map_fn, reduce_fn = self._resolve_view(design_id, view_name)
            docs = [
                copy.deepcopy(doc) for doc_id, doc in self._docs.items()
                if not doc_id.startswith(DESIGN_PREFIX)
            ]

        reduce = params.get("reduce", reduce_fn is not None)
        if reduce and reduce_fn is None:
            raise TransportError("query_parse_error: reduce=true on a map-only view", status=400)
        if reduce and params.get("include_docs"):
            raise TransportError("query_parse_error: include_docs is invalid for reduce", status=400)

        emitted = []
        by_id = {}
        for doc in docs:
            by_id[doc["_id"]] = doc
            for key, value in map_fn(doc):
                emitted.append({"id": doc["_id"], "key": key, "value": value})
        emitted.sort(key=lambda row: (collation_key(row["key"]), row["id"]))
        total_rows = len(emitted)

        rows = self._select(emitted, params)

        if reduce:
            rows = self._reduce(rows, reduce_fn, params)
            return {"rows": self._page(rows, params)}

        offset = 0
        if rows:
            offset = next(i for i, row in enumerate(self._ordered(emitted, params)) if row is rows[0])
        rows = self._page(rows, params)
        offset += int(params.get("skip", 0) or 0)
        if params.get("include_docs"):
            for row in rows:
                row["doc"] = copy.deepcopy(by_id.get(row["id"]))
        return {"total_rows": total_rows, "offset": offset if rows else total_rows, "rows": rows}

    @staticmethod
    def _ordered(rows: list[dict], params: dict[str, Any]) -> list[dict]:
        return list(reversed(rows)) if params.get("descending") else rows

    def _select(self, rows: list[dict], params: dict[str, Any]) -> list[dict]:
        """Apply key, keys and startkey/endkey filtering in view order."""
        if "keys" in params:
            selected = []
            for wanted in params["keys"]:
                wanted_key = collation_key(wanted)
                selected.extend(r for r in rows if collation_key(r["key"]) == wanted_key)
            return selected

        rows = self._ordered(rows, params)
        if "key" in params:
            wanted_key = collation_key(params["key"])
            return [r for r in rows if collation_key(r["key"]) == wanted_key]

        inclusive_end = params.get("inclusive_end", True)
        start = collation_key(params["startkey"]) if "startkey" in params else None
        end = collation_key(params["endkey"]) if "endkey" in params else None
        selected = []
        for row in rows:
            key = collation_key(row["key"])
            if params.get("descending"):
                # Bounds are swapped when walking the index backwards.
                if start is not None and key > start:
                    continue
                if end is not None and (key < end or (not inclusive_end and key == end)):
                    continue
            elif not _in_range(key, start, end, inclusive_end):
                continue
            selected.append(row)
        return selected

    @staticmethod
    def _reduce(rows: list[dict], reduce_fn: ReduceFunction, params: dict[str, Any]) -> list[dict]:
        group_level = params.get("group_level")
        if params.get("group") and group_level is None:
            group_level = "exact"
        if group_level is None:
            if not rows:
                return []
            keys = [[r["key"], r["id"]] for r in rows]
            return [{"key": None, "value": reduce_fn(keys, [r["value"] for r in rows], False)}]

        def grouping(row: dict) -> Any:
            key = row["key"]
            if group_level == "exact" or not isinstance(key, list):
                return key
            return key[: int(group_level)]

        reduced = []
        for _, group in groupby(rows, key=lambda r: collation_key(grouping(r))):
            group = list(group)
            keys = [[r["key"], r["id"]] for r in group]
            reduced.append({
                "key": grouping(group[0]),
                "value": reduce_fn(keys, [r["value"] for r in group], False),
            })
        return reduced

    @staticmethod
    def _page(rows: list[dict], params: dict[str, Any]) -> list[dict]:
        skip = int(params.get("skip", 0) or 0)
        rows = rows[skip:]
        if params.get("limit") is not None:
            rows = rows[: int(params["limit"])]
        return [dict(r) for r in rows]
