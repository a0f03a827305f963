"""
Query normalizer.

Turns the raw query string of a list request into an immutable
`QueryDescriptor`: a document-style filter, exclusion projection, sort
and pagination options, plus the client's pagination bookkeeping
(`body`).  Rules are applied per key, first match wins:

    limit               → options.limit and top-level limit
    options passthrough → options
    body passthrough    → body
    logical operators   → appended to a list under filter[key]
    $text               → filter.$text
    projection          → "a,b" → ["-a", "-b"]
    sort                → {field: ±1}, `_id` always the tie-break
    anything else       → filter

`skip` is always recomputed as `(page - 1) * limit`.
"""

import re
from collections.abc import Mapping
from typing import Any, Literal
from urllib.parse import parse_qsl

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from metrics_backend.core.config import settings
from metrics_backend.core.errors import ValidationError

OPTIONS_PASSTHROUGH = frozenset({
    "tailable", "skip", "allowDiskUse", "batchSize", "readPreference", "hint",
    "comment", "lean", "populate", "maxTimeMS", "strict", "collation",
    "session", "explain",
})
BODY_PASSTHROUGH = frozenset({"page", "fields", "limitPerPage", "newQueryFlag", "totalDocuments"})
LOGICAL_OPERATORS = frozenset({"$and", "$or", "$nor", "$not", "$elemMatch", "$where"})

DEFAULT_SORT: dict[str, int] = {"createdAt": -1, "_id": -1}

_KEY_SEGMENT = re.compile(r"\[([^\]]*)\]")
_INTEGER = re.compile(r"^-?\d+$")


# ── Descriptor ───────────────────────────────────────────────────────
class QueryOptions(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    sort: dict[str, Literal[1, -1]]
    limit: int = Field(ge=1)
    skip: int = Field(ge=0)


class QueryBody(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    page: int = Field(default=1, ge=1)
    fields: list[str] | str | None = None
    limit_per_page: int | None = Field(default=None, alias="limitPerPage")
    new_query_flag: bool = Field(default=False, alias="newQueryFlag")
    total_documents: int = Field(default=0, ge=0, alias="totalDocuments")


class QueryDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    filter: dict[str, Any] = Field(default_factory=dict)
    projection: list[str] | str = ""
    options: QueryOptions
    limit: int = Field(ge=1)
    body: QueryBody = Field(default_factory=QueryBody)

    @property
    def skip(self) -> int:
        return self.options.skip

    @property
    def sort(self) -> dict[str, int]:
        return dict(self.options.sort)


# ── Query-string parsing ─────────────────────────────────────────────
def parse_query_string(query_string: str) -> dict[str, Any]:
    """Parse `a[b][c]=v` style pairs into nested dicts.

    Repeated keys collect into a list; an empty bracket (`a[]=v`)
    always appends.
    """
    parsed: dict[str, Any] = {}
    for raw_key, value in parse_qsl(query_string, keep_blank_values=True):
        head, _, rest = raw_key.partition("[")
        segments = [head] + (_KEY_SEGMENT.findall("[" + rest) if rest else [])
        _assign(parsed, segments, value)
    return parsed


def _assign(target: dict[str, Any], segments: list[str], value: str) -> None:
    key = segments[0]
    if len(segments) == 1:
        if key in target:
            existing = target[key]
            target[key] = existing + [value] if isinstance(existing, list) else [existing, value]
        else:
            target[key] = value
        return
    if segments[1] == "":
        existing = target.get(key)
        if existing is None:
            target[key] = [value]
        elif isinstance(existing, list):
            existing.append(value)
        else:
            target[key] = [existing, value]
        return
    child = target.setdefault(key, {})
    if not isinstance(child, dict):
        raise ValidationError(f"Validation error: conflicting query key '{key}'")
    _assign(child, segments[1:], value)


# ── Normalization ────────────────────────────────────────────────────
def _to_int(value: Any) -> Any:
    if isinstance(value, str) and _INTEGER.match(value.strip()):
        return int(value)
    return value


def _as_clause_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        return list(value)
    if isinstance(value, Mapping) and value and all(str(k).isdigit() for k in value):
        return [value[k] for k in sorted(value, key=int)]
    return [value]


def _split_projection(value: Any) -> list[str]:
    parts = value if isinstance(value, list) else [value]
    fields: list[str] = []
    for part in parts:
        if not isinstance(part, str):
            continue
        fields.extend(f"-{field.strip()}" for field in part.split(",") if field.strip())
    return fields


def _normalize_sort(value: Any) -> Any:
    if not isinstance(value, Mapping):
        return value
    sort = {field: _to_int(direction) for field, direction in value.items() if direction is not None}
    if not sort:
        return dict(DEFAULT_SORT)
    if len(sort) == 1:
        field, direction = next(iter(sort.items()))
        if field == "_id":
            return {"_id": direction}
        return {field: direction, "_id": -1}
    return sort


def normalize_query(raw: Mapping[str, Any] | None) -> QueryDescriptor:
    """Build a `QueryDescriptor` from a parsed query mapping.

    Raises `ValidationError` when the normalized values are not valid
    (non-numeric limit/page, sort direction other than ±1, ...).
    """
    default_limit = settings.DEFAULT_PAGE_LIMIT
    if raw is None:
        return QueryDescriptor(
            filter={},
            projection="",
            options=QueryOptions(sort=dict(DEFAULT_SORT), limit=default_limit, skip=0),
            limit=default_limit,
        )

    filter_: dict[str, Any] = {}
    options: dict[str, Any] = {}
    body: dict[str, Any] = {}
    projection: list[str] = []
    limit: Any = default_limit

    for key, value in raw.items():
        if value is None:
            continue
        if key == "limit":
            limit = _to_int(value)
            options["limit"] = limit
        elif key in OPTIONS_PASSTHROUGH:
            options[key] = value
        elif key in BODY_PASSTHROUGH:
            body[key] = _to_int(value) if key in ("page", "limitPerPage", "totalDocuments") else value
        elif key in LOGICAL_OPERATORS:
            filter_.setdefault(key, []).extend(_as_clause_list(value))
        elif key == "$text":
            filter_["$text"] = value
        elif key == "projection":
            projection.extend(_split_projection(value))
        elif key == "sort":
            options["sort"] = _normalize_sort(value)
        else:
            filter_[key] = value

    options.setdefault("sort", dict(DEFAULT_SORT))
    options["limit"] = limit
    page = body.get("page", 1)
    if isinstance(page, int) and isinstance(limit, int):
        options["skip"] = (page - 1) * limit
    else:
        options["skip"] = 0

    try:
        return QueryDescriptor(
            filter=filter_,
            projection=projection or "",
            options=options,
            limit=limit,
            body=body,
        )
    except PydanticValidationError as exc:
        raise ValidationError(f"Validation error: {_summarize(exc)}") from exc


def _summarize(exc: PydanticValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )


def projection_exclusions(projection: list[str] | str) -> set[str]:
    """Field names excluded by a `-field` projection list."""
    items = projection if isinstance(projection, list) else _split_projection(projection) if projection else []
    return {item.lstrip("-") for item in items if item.lstrip("-")}
