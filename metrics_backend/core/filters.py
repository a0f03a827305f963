"""
Translate document-style filters into SQLAlchemy expressions.

Supported grammar:

    {field: value}                      equality ($in when value is a list)
    {field: {$eq|$ne|$gt|$gte|$lt|$lte: v}}
    {field: {$in|$nin: [..]}}
    {field: {$exists: bool}}
    {field: {$regex: pattern, $options: "i"}}
    {field: {$not: {...}}}
    {$and|$or|$nor: [filter, ...]}
    {$not: [filter, ...]}
    {$text: {$search: term}}            substring match over text fields

Field names may be camelCase or snake_case; `_id` means `id`.
"""

import logging
import uuid
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from pydantic.alias_generators import to_snake
from sqlalchemy import JSON, Column, String, and_, cast, false, not_, or_, true
from sqlalchemy.sql.elements import ColumnElement

from metrics_backend.core.errors import QueryTranslationError
from metrics_backend.models.base import Base

logger = logging.getLogger(__name__)

UNSUPPORTED_OPERATORS = frozenset({"$where", "$elemMatch"})


# ── Columns ──────────────────────────────────────────────────────────
def resolve_column(model: type[Base], field: str) -> Column:
    """Map an API field name onto a column of *model*."""
    if "." in field:
        raise QueryTranslationError(f"Validation error: nested field '{field}' cannot be queried")
    name = "id" if field == "_id" else field
    columns = model.__table__.columns
    if name in columns:
        return columns[name]
    snake = to_snake(name)
    if snake in columns:
        return columns[snake]
    raise QueryTranslationError(f"Validation error: unknown field '{field}'")


def _is_json(column: Column) -> bool:
    return isinstance(column.type, JSON)


def coerce_value(column: Column, value: Any) -> Any:
    """Convert a query-string value to the column's Python type."""
    if value is None:
        return None
    if isinstance(value, list):
        return [coerce_value(column, item) for item in value]
    if _is_json(column):
        return value
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value
    if isinstance(value, python_type):
        return value
    try:
        if python_type is bool:
            if str(value).lower() in ("true", "1"):
                return True
            if str(value).lower() in ("false", "0"):
                return False
            raise ValueError(value)
        if python_type is uuid.UUID:
            return uuid.UUID(str(value))
        if python_type is datetime:
            return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        return python_type(value)
    except (TypeError, ValueError):
        raise QueryTranslationError(
            f"Validation error: invalid value '{value}' for field '{column.key}'"
        )


# ── Field predicates ─────────────────────────────────────────────────
def _json_contains(column: Column, value: Any) -> ColumnElement[bool]:
    # JSON lists are stored as serialized text on every backend we run on
    return cast(column, String).like(f'%"{value}"%')


def _equals(column: Column, value: Any) -> ColumnElement[bool]:
    if value is None:
        return column.is_(None)
    if _is_json(column):
        return _json_contains(column, value)
    return column == value


def _member_of(column: Column, values: list[Any]) -> ColumnElement[bool]:
    if _is_json(column):
        return or_(false(), *[_json_contains(column, v) for v in values])
    return column.in_(values)


def _field_predicate(column: Column, condition: Any) -> ColumnElement[bool]:
    if not isinstance(condition, Mapping) or not any(str(k).startswith("$") for k in condition):
        value = coerce_value(column, condition)
        if isinstance(value, list):
            return _member_of(column, value)
        return _equals(column, value)

    clauses: list[ColumnElement[bool]] = []
    for operator, operand in condition.items():
        if operator in UNSUPPORTED_OPERATORS:
            raise QueryTranslationError(f"Validation error: operator '{operator}' is not supported")
        if operator == "$options":
            continue
        if operator == "$not":
            clauses.append(not_(_field_predicate(column, operand)))
            continue
        if operator == "$exists":
            present = str(operand).lower() in ("true", "1")
            clauses.append(column.is_not(None) if present else column.is_(None))
            continue
        if operator == "$regex":
            flags = condition.get("$options") or None
            clauses.append(cast(column, String).regexp_match(str(operand), flags=flags))
            continue
        if operator in ("$in", "$nin"):
            values = operand if isinstance(operand, list) else [operand]
            predicate = _member_of(column, coerce_value(column, values))
            clauses.append(predicate if operator == "$in" else not_(predicate))
            continue

        value = coerce_value(column, operand)
        if operator == "$eq":
            clauses.append(_equals(column, value))
        elif operator == "$ne":
            clauses.append(or_(not_(_equals(column, value)), column.is_(None)))
        elif operator == "$gt":
            clauses.append(column > value)
        elif operator == "$gte":
            clauses.append(column >= value)
        elif operator == "$lt":
            clauses.append(column < value)
        elif operator == "$lte":
            clauses.append(column <= value)
        else:
            raise QueryTranslationError(f"Validation error: unknown operator '{operator}'")
    return and_(true(), *clauses)


# ── Filters ──────────────────────────────────────────────────────────
def _sub_filters(value: Any) -> Iterable[Mapping[str, Any]]:
    items = value if isinstance(value, list) else [value]
    for item in items:
        if not isinstance(item, Mapping):
            raise QueryTranslationError("Validation error: logical operators take a list of filters")
        yield item


def _text_search(model: type[Base], value: Any) -> ColumnElement[bool]:
    term = value.get("$search") if isinstance(value, Mapping) else value
    if not term:
        raise QueryTranslationError("Validation error: $text requires a $search term")
    fields = model.__text_search_fields__
    if not fields:
        raise QueryTranslationError(f"Validation error: {model.__tablename__} has no text index")
    columns = model.__table__.columns
    return or_(*[columns[field].ilike(f"%{term}%") for field in fields])


def build_conditions(model: type[Base], filter_: Mapping[str, Any]) -> list[ColumnElement[bool]]:
    """Return the WHERE clauses for *filter_* (implicitly AND-ed)."""
    conditions: list[ColumnElement[bool]] = []
    for key, value in filter_.items():
        if key in UNSUPPORTED_OPERATORS:
            raise QueryTranslationError(f"Validation error: operator '{key}' is not supported")
        if key == "$text":
            conditions.append(_text_search(model, value))
        elif key == "$and":
            conditions.append(and_(true(), *[and_(true(), *build_conditions(model, f)) for f in _sub_filters(value)]))
        elif key == "$or":
            conditions.append(or_(false(), *[and_(true(), *build_conditions(model, f)) for f in _sub_filters(value)]))
        elif key == "$nor":
            conditions.append(not_(or_(false(), *[and_(true(), *build_conditions(model, f)) for f in _sub_filters(value)])))
        elif key == "$not":
            conditions.append(not_(and_(true(), *[and_(true(), *build_conditions(model, f)) for f in _sub_filters(value)])))
        elif key.startswith("$"):
            raise QueryTranslationError(f"Validation error: unknown operator '{key}'")
        else:
            conditions.append(_field_predicate(resolve_column(model, key), value))
    return conditions


def build_order_by(model: type[Base], sort: Mapping[str, int]) -> list[ColumnElement[Any]]:
    order_by = []
    for field, direction in sort.items():
        column = resolve_column(model, field)
        order_by.append(column.desc() if direction < 0 else column.asc())
    return order_by


def log_ignored_options(options: Mapping[str, Any]) -> None:
    ignored = {k: v for k, v in options.items() if k not in ("sort", "limit", "skip")}
    if ignored:
        logger.debug("Ignoring query options with no relational equivalent: %s", sorted(ignored))
