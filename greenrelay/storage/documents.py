"""
Document helpers shared by the store backends.

Field paths use dots ("relays.2.state"). A numeric segment addresses a list
position; setting past the end of a list pads it with None. A missing
container is created as a list when the next segment is numeric, otherwise as
a dict.

Filters are plain dicts:
  {"deviceId": "abc"}                       equality (dotted paths allowed)
  {"timestamp": {"$lt": cutoff}}            $lt $lte $gt $gte $ne $in
  {"$or": [{"username": u}, {"deviceId": d}]}
"""

import copy
from typing import Any, Dict, Iterable, List, Optional, Tuple

_MISSING = object()

SortSpec = Optional[List[Tuple[str, int]]]


def _is_index(segment: str) -> bool:
    return segment.isdigit()


def get_path(doc: Any, path: str, default=None):
    """Read a dotted field path, returning default when absent"""
    current = doc
    for segment in path.split("."):
        if isinstance(current, dict):
            if segment not in current:
                return default
            current = current[segment]
        elif isinstance(current, list) and _is_index(segment):
            pos = int(segment)
            if pos >= len(current):
                return default
            current = current[pos]
        else:
            return default
    return current


def set_path(doc: Dict[str, Any], path: str, value: Any) -> None:
    """Write a dotted field path in place, creating containers as needed"""
    segments = path.split(".")
    current = doc
    for i, segment in enumerate(segments):
        last = i == len(segments) - 1
        next_container = None if last else ([] if _is_index(segments[i + 1]) else {})

        if isinstance(current, list):
            if not _is_index(segment):
                raise ValueError(f"Cannot address list with field '{segment}' in path '{path}'")
            pos = int(segment)
            while len(current) <= pos:
                current.append(None)
            if last:
                current[pos] = value
            else:
                if not isinstance(current[pos], (dict, list)):
                    current[pos] = next_container
                current = current[pos]
        elif isinstance(current, dict):
            if last:
                current[segment] = value
            else:
                if not isinstance(current.get(segment), (dict, list)):
                    current[segment] = next_container
                current = current[segment]
        else:
            raise ValueError(f"Cannot set '{path}': '{segment}' is not a container")


def apply_setters(doc: Dict[str, Any], setters: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of doc with every field path in setters applied"""
    updated = copy.deepcopy(doc)
    for path, value in setters.items():
        set_path(updated, path, value)
    return updated


def _compare(op: str, actual, expected) -> bool:
    if op == "$ne":
        return actual != expected
    if op == "$in":
        return actual in expected
    if actual is None:
        return False
    try:
        if op == "$lt":
            return actual < expected
        if op == "$lte":
            return actual <= expected
        if op == "$gt":
            return actual > expected
        if op == "$gte":
            return actual >= expected
    except TypeError:
        return False
    raise ValueError(f"Unsupported filter operator: {op}")


def matches(doc: Dict[str, Any], filter_: Optional[Dict[str, Any]]) -> bool:
    """Check a document against a filter"""
    if not filter_:
        return True
    for key, expected in filter_.items():
        if key == "$or":
            if not any(matches(doc, branch) for branch in expected):
                return False
            continue

        actual = get_path(doc, key, _MISSING)
        if isinstance(expected, dict) and expected and all(k.startswith("$") for k in expected):
            value = None if actual is _MISSING else actual
            if not all(_compare(op, value, operand) for op, operand in expected.items()):
                return False
        elif actual is _MISSING or actual != expected:
            return False
    return True


def equality_fields(filter_: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Plain equality conditions of a filter (seed values for upserts)"""
    if not filter_:
        return {}
    return {
        key: value
        for key, value in filter_.items()
        if not key.startswith("$")
        and not (isinstance(value, dict) and any(k.startswith("$") for k in value))
    }


def sort_documents(docs: Iterable[Dict[str, Any]], sort: SortSpec) -> List[Dict[str, Any]]:
    """Sort by [(field, 1|-1), ...]; documents missing a field sort first ascending"""
    ordered = list(docs)
    for field, direction in reversed(sort or []):
        present = [d for d in ordered if get_path(d, field) is not None]
        absent = [d for d in ordered if get_path(d, field) is None]
        present.sort(key=lambda d: get_path(d, field), reverse=direction < 0)
        ordered = present + absent if direction < 0 else absent + present
    return ordered


def project(doc: Dict[str, Any], fields: Optional[List[str]]) -> Dict[str, Any]:
    """Keep only the listed top-level fields (plus _id)"""
    if not fields:
        return doc
    keep = set(fields) | {"_id"}
    return {k: v for k, v in doc.items() if k in keep}
