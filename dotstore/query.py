"""Filter / sort / project / paginate over the values of a document.

A query maps a field path to either a literal (deep equality) or a single
operator object such as ``{"$gte": 18}``. Every field must match.

>>> run_query([{"age": 15}, {"age": 20}, {"age": 30}],
...           {"age": {"$gte": 18}},
...           {"sort": {"age": -1}, "limit": 2})
[{'age': 30}, {'age': 20}]
"""

from __future__ import annotations

import copy
import json
import operator
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .paths import MISSING, get_path, remove_path, set_path, split_path

OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "$gt": operator.gt,
    "$gte": operator.ge,
    "$lt": operator.lt,
    "$lte": operator.le,
    "$ne": operator.ne,
}

_DIRECTIONS = {"asc": 1, "ascending": 1, "desc": -1, "descending": -1}


class FindOptions(BaseModel):
    """Post-filter options, applied as sort, projection, skip, limit."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    sort: Optional[Dict[str, int]] = None
    projection: Optional[Dict[str, bool]] = None
    skip: int = Field(default=0, ge=0)
    limit: Optional[int] = Field(default=None, ge=0)

    @field_validator("sort", mode="before")
    @classmethod
    def _single_sort_field(cls, value: Any) -> Any:
        if value is None:
            return None
        if not isinstance(value, Mapping) or len(value) != 1:
            raise ValueError("sort must name exactly one field")
        ((field, direction),) = value.items()
        if isinstance(direction, str):
            direction = _DIRECTIONS.get(direction.lower())
        if isinstance(direction, bool) or direction not in (1, -1):
            raise ValueError("sort direction must be 1, -1, 'asc' or 'desc'")
        return {field: direction}

    @property
    def sort_field(self) -> Optional[Tuple[str, int]]:
        if not self.sort:
            return None
        return next(iter(self.sort.items()))


OptionsLike = Union[FindOptions, Mapping[str, Any], None]


def coerce_options(options: OptionsLike) -> FindOptions:
    if isinstance(options, FindOptions):
        return options
    if options is None:
        return FindOptions()
    if not isinstance(options, Mapping):
        raise ValidationError("find options must be a mapping")
    try:
        return FindOptions.model_validate(dict(options))
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid find options: {exc}") from exc


def _is_operator(spec: Any) -> bool:
    return (
        isinstance(spec, dict)
        and len(spec) == 1
        and isinstance(next(iter(spec)), str)
        and next(iter(spec)).startswith("$")
    )


def validate_query(query: Mapping[str, Any]) -> None:
    """Reject operator objects naming an operator we do not implement."""
    for field, spec in query.items():
        if not isinstance(field, str) or not field:
            raise ValidationError(f"Invalid query field: {field!r}")
        if _is_operator(spec):
            (name,) = spec
            if name not in OPERATORS:
                raise ValidationError(f"Unsupported query operator: {name}")


def _rank(value: Any) -> int:
    # Same bracket order the document store uses when sorting mixed types.
    if value is MISSING or value is None:
        return 0
    if isinstance(value, bool):
        return 5
    if isinstance(value, (int, float)):
        return 1
    if isinstance(value, str):
        return 2
    if isinstance(value, dict):
        return 3
    if isinstance(value, list):
        return 4
    return 6


def values_equal(actual: Any, expected: Any) -> bool:
    if expected is None:
        return actual is MISSING or actual is None
    if isinstance(actual, bool) != isinstance(expected, bool):
        return False
    return actual == expected


def _compare(name: str, actual: Any, expected: Any) -> bool:
    if name == "$ne":
        return not values_equal(actual, expected)
    if actual is MISSING or _rank(actual) != _rank(expected):
        return False
    try:
        return OPERATORS[name](actual, expected)
    except TypeError:
        return False


def matches(candidate: Any, query: Mapping[str, Any]) -> bool:
    for field, spec in query.items():
        actual = get_path(candidate, *split_path(field), default=MISSING)
        if _is_operator(spec):
            ((name, expected),) = spec.items()
            if not _compare(name, actual, expected):
                return False
        elif not values_equal(actual, spec):
            return False
    return True


def _sort_key(value: Any) -> Tuple[int, Any]:
    rank = _rank(value)
    if rank == 0:
        return (0, 0)
    if rank in (3, 4):
        return (rank, json.dumps(value, sort_keys=True, default=str))
    if rank == 6:
        return (rank, repr(value))
    return (rank, value)


def project(candidate: Any, projection: Mapping[str, bool]) -> Any:
    """Keep the ``True`` paths, or drop the listed paths when none is ``True``."""
    include = [path for path, keep in projection.items() if keep]
    if include:
        selected: Dict[str, Any] = {}
        if isinstance(candidate, dict):
            for path in include:
                value = get_path(candidate, *split_path(path), default=MISSING)
                if value is not MISSING:
                    set_path(path, copy.deepcopy(value), selected)
        return selected

    if not isinstance(candidate, dict):
        return candidate
    trimmed = copy.deepcopy(candidate)
    for path in projection:
        remove_path(trimmed, path)
    return trimmed


def candidates_of(source: Any) -> List[Any]:
    if isinstance(source, list):
        return list(source)
    if isinstance(source, dict):
        return list(source.values())
    return []


def run_query(source: Any, query: Mapping[str, Any], options: OptionsLike = None) -> List[Any]:
    """Evaluate ``query`` over the elements (list) or values (mapping) of ``source``."""
    opts = coerce_options(options)
    validate_query(query)

    results = [item for item in candidates_of(source) if matches(item, query)]

    if opts.sort_field is not None:
        field, direction = opts.sort_field
        segments = split_path(field)
        results.sort(
            key=lambda item: _sort_key(get_path(item, *segments, default=MISSING)),
            reverse=direction < 0,
        )
    if opts.projection is not None:
        results = [project(item, opts.projection) for item in results]
    if opts.skip:
        results = results[opts.skip:]
    if opts.limit is not None:
        results = results[: opts.limit]
    return results


@dataclass(frozen=True)
class NativeFind:
    """A query translated for the document-store driver."""

    filter: Dict[str, Any]
    projection: Dict[str, int]
    sort: Optional[List[Tuple[str, int]]]
    skip: int
    limit: Optional[int]


def _native_condition(spec: Any) -> Any:
    # Only a single-operator object is an operator; any other mapping,
    # including one holding several "$" keys, is a literal to compare whole.
    if isinstance(spec, dict) and not _is_operator(spec):
        return {"$eq": spec}
    return spec


def to_mongo(query: Mapping[str, Any], options: OptionsLike = None, prefix: str = "value") -> NativeFind:
    """Translate ``query``/``options`` to run against ``{key, value}`` records."""
    opts = coerce_options(options)
    validate_query(query)

    native_filter = {f"{prefix}.{field}": _native_condition(spec) for field, spec in query.items()}

    projection: Dict[str, int] = {"_id": 0}
    if opts.projection is not None:
        include = [path for path, keep in opts.projection.items() if keep]
        if include:
            projection.update({f"{prefix}.{path}": 1 for path in include})
        else:
            projection.update({f"{prefix}.{path}": 0 for path in opts.projection})

    sort = None
    if opts.sort_field is not None:
        field, direction = opts.sort_field
        sort = [(f"{prefix}.{field}", direction)]

    return NativeFind(
        filter=native_filter,
        projection=projection,
        sort=sort,
        skip=opts.skip,
        limit=opts.limit,
    )
