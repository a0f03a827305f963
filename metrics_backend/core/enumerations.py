"""
Fixed business enumerations (roles, store locations, categories, ...).

The values live in `metrics_backend/data/enumerations.json` and are
read once per process.  They are used only for input validation.
"""

import json
from functools import lru_cache
from importlib import resources
from typing import Any


@lru_cache(maxsize=1)
def load_enumerations() -> dict[str, Any]:
    raw = resources.files("metrics_backend").joinpath("data").joinpath("enumerations.json").read_text("utf-8")
    return json.loads(raw)


def values(name: str) -> list[Any]:
    """Return one enumeration list by its key in the data table."""
    return list(load_enumerations()[name])


def departments() -> list[str]:
    return list(load_enumerations()["departments"])


def job_positions() -> list[str]:
    positions: list[str] = []
    for titles in load_enumerations()["departments"].values():
        positions.extend(titles)
    return positions


def require_member(value: Any, name: str) -> Any:
    """Raise ValueError unless *value* belongs to enumeration *name*.

    Written for use inside pydantic validators, which turn the
    ValueError into a validation error.
    """
    allowed = job_positions() if name == "jobPositions" else (
        departments() if name == "departments" else values(name)
    )
    if value not in allowed:
        raise ValueError(f"'{value}' is not a valid {name} value")
    return value
