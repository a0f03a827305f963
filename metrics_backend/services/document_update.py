"""
Apply a document-style update operation to a loaded row.

Operations arrive as `{updateKind, updateOperator, fields}` where
`fields` maps a path to an operand.  A path is `column[.key|.index...]`:
the first segment names a column and the rest walk into JSON payloads.

    field operators: $set $unset $inc $mul $min $max $rename
                     $currentDate $setOnInsert
    array operators: $push $addToSet $pop $pull $pullAll

Mutations are applied to deep copies of the touched columns and the
copies are assigned back, so SQLAlchemy sees every JSON change.
"""

import copy
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from metrics_backend.core.errors import ValidationError
from metrics_backend.core.filters import coerce_value, resolve_column
from metrics_backend.models.base import Base

FIELD_OPERATORS = frozenset({
    "$currentDate", "$inc", "$min", "$max", "$mul", "$rename", "$set", "$setOnInsert", "$unset",
})
ARRAY_OPERATORS = frozenset({"$addToSet", "$pop", "$pull", "$push", "$pullAll"})
READ_ONLY_COLUMNS = frozenset({"id", "created_at", "updated_at"})

_MISSING = object()


class _Document:
    """Working copies of the columns an update touches."""

    def __init__(self, instance: Base):
        self.instance = instance
        self.model = type(instance)
        self.values: dict[str, Any] = {}

    def _column_key(self, field: str) -> str:
        column = resolve_column(self.model, field)
        if column.key in READ_ONLY_COLUMNS:
            raise ValidationError(f"Validation error: field '{field}' cannot be updated")
        if column.key not in self.values:
            self.values[column.key] = copy.deepcopy(getattr(self.instance, column.key))
        return column.key

    def split(self, path: str) -> tuple[str, list[str]]:
        head, *rest = path.split(".")
        return self._column_key(head), rest

    def get(self, path: str) -> Any:
        key, rest = self.split(path)
        node = self.values[key]
        for segment in rest:
            node = _child(node, segment)
            if node is _MISSING:
                return _MISSING
        return node

    def set(self, path: str, value: Any) -> None:
        key, rest = self.split(path)
        if not rest:
            self.values[key] = coerce_value(self.model.__table__.columns[key], value)
            return
        if self.values[key] is None:
            self.values[key] = {}
        parent = self.values[key]
        for segment in rest[:-1]:
            child = _child(parent, segment)
            if child is _MISSING or child is None:
                child = {}
                _put(parent, segment, child)
            parent = child
        _put(parent, rest[-1], value)

    def unset(self, path: str) -> None:
        key, rest = self.split(path)
        if not rest:
            column = self.model.__table__.columns[key]
            if not column.nullable:
                raise ValidationError(f"Validation error: field '{path}' is required")
            self.values[key] = None
            return
        parent = self.values[key]
        for segment in rest[:-1]:
            parent = _child(parent, segment)
            if parent is _MISSING or parent is None:
                return
        if isinstance(parent, dict):
            parent.pop(rest[-1], None)
        elif isinstance(parent, list) and _is_index(rest[-1], parent):
            # array slots are nulled, not removed
            parent[int(rest[-1])] = None

    def commit(self) -> None:
        for key, value in self.values.items():
            setattr(self.instance, key, value)


def _is_index(segment: str, node: list[Any]) -> bool:
    return segment.isdigit() and int(segment) < len(node)


def _child(node: Any, segment: str) -> Any:
    if isinstance(node, dict):
        return node.get(segment, _MISSING)
    if isinstance(node, list) and _is_index(segment, node):
        return node[int(segment)]
    return _MISSING


def _put(node: Any, segment: str, value: Any) -> None:
    if isinstance(node, dict):
        node[segment] = value
    elif isinstance(node, list) and segment.isdigit():
        index = int(segment)
        while len(node) <= index:
            node.append(None)
        node[index] = value
    else:
        raise ValidationError(f"Validation error: cannot set '{segment}' on a non-container value")


def _number(value: Any, path: str) -> int | float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"Validation error: '{path}' requires a numeric operand")
    return value


# ── Field operators ──────────────────────────────────────────────────
def _apply_field_operator(doc: _Document, operator: str, fields: Mapping[str, Any]) -> None:
    if operator == "$setOnInsert":
        # updates never insert
        return
    for path, operand in fields.items():
        if operator == "$set":
            doc.set(path, operand)
        elif operator == "$unset":
            doc.unset(path)
        elif operator == "$rename":
            if not isinstance(operand, str):
                raise ValidationError(f"Validation error: $rename target for '{path}' must be a string")
            current = doc.get(path)
            if current is _MISSING:
                continue
            doc.unset(path)
            doc.set(operand, current)
        elif operator == "$currentDate":
            now = datetime.now(timezone.utc)
            _, rest = doc.split(path)
            doc.set(path, now if not rest else now.isoformat())
        else:
            _apply_arithmetic(doc, operator, path, operand)


def _apply_arithmetic(doc: _Document, operator: str, path: str, operand: Any) -> None:
    current = doc.get(path)
    if current is _MISSING or current is None:
        if operator == "$mul":
            _number(operand, path)
            doc.set(path, 0)
        else:
            doc.set(path, operand)
        return
    if operator == "$inc":
        doc.set(path, _number(current, path) + _number(operand, path))
    elif operator == "$mul":
        doc.set(path, _number(current, path) * _number(operand, path))
    else:
        try:
            replace = operand < current if operator == "$min" else operand > current
        except TypeError:
            raise ValidationError(f"Validation error: cannot compare '{path}' with {operand!r}")
        if replace:
            doc.set(path, operand)


# ── Array operators ──────────────────────────────────────────────────
def _target_list(doc: _Document, path: str, create: bool) -> list[Any] | None:
    current = doc.get(path)
    if current is _MISSING or current is None:
        if not create:
            return None
        current = []
    if not isinstance(current, list):
        raise ValidationError(f"Validation error: '{path}' is not an array")
    return list(current)


def _each(operand: Any) -> list[Any]:
    if isinstance(operand, Mapping) and "$each" in operand:
        items = operand["$each"]
        return list(items) if isinstance(items, list) else [items]
    return [operand]


def _matches(item: Any, condition: Any) -> bool:
    if isinstance(condition, Mapping) and "$in" in condition:
        return item in condition["$in"]
    if isinstance(condition, Mapping) and "$nin" in condition:
        return item not in condition["$nin"]
    return item == condition


def _apply_array_operator(doc: _Document, operator: str, fields: Mapping[str, Any]) -> None:
    for path, operand in fields.items():
        create = operator in ("$push", "$addToSet")
        items = _target_list(doc, path, create)
        if items is None:
            continue
        if operator == "$push":
            items.extend(_each(operand))
        elif operator == "$addToSet":
            for item in _each(operand):
                if item not in items:
                    items.append(item)
        elif operator == "$pop":
            if operand not in (1, -1):
                raise ValidationError("Validation error: $pop takes 1 or -1")
            if items and operand == 1:
                items.pop()
            elif items:
                items.pop(0)
        elif operator == "$pull":
            items = [item for item in items if not _matches(item, operand)]
        elif operator == "$pullAll":
            removed = operand if isinstance(operand, list) else [operand]
            items = [item for item in items if item not in removed]
        doc.set(path, items)


def apply_update(
    instance: Base, update_kind: str, update_operator: str, fields: Mapping[str, Any],
) -> frozenset[str]:
    """Apply one update operation to *instance* in place.

    Returns the keys of the columns the operation touched.
    """
    if update_kind == "field" and update_operator in FIELD_OPERATORS:
        doc = _Document(instance)
        _apply_field_operator(doc, update_operator, fields)
    elif update_kind == "array" and update_operator in ARRAY_OPERATORS:
        doc = _Document(instance)
        _apply_array_operator(doc, update_operator, fields)
    else:
        raise ValidationError(
            f"Validation error: operator '{update_operator}' is not a {update_kind} update operator"
        )
    doc.commit()
    return frozenset(doc.values)
