"""
Helpers for building parameterized bulk SQL statements.

Statements are written with PostgreSQL-style positional placeholders
(`$1`, `$2`, ...). `bind_positional` turns such a statement into a
SQLAlchemy `text()` construct with named bind parameters so it runs on
any async driver.
"""

import json
import re
from collections.abc import Collection, Mapping, Sequence
from typing import Any, NamedTuple

from sqlalchemy import TextClause, text

from magidekt.models.failure import FailureKind, KnownError

_PLACEHOLDER_RE = re.compile(r"\$(\d+)(?:::(\w+))?")


class EmptyBatchError(KnownError):
    """Raised when a bulk insert is built from zero records."""

    def __init__(self) -> None:
        super().__init__(
            kind=FailureKind.INVALID_INPUT,
            message="No records to insert",
            status_code=400,
        )


class EmptyFieldSetError(KnownError):
    """Raised when an assignment clause is built from zero fields."""

    def __init__(self) -> None:
        super().__init__(
            kind=FailureKind.INVALID_INPUT,
            message="No data",
            suggestion="Provide at least one field to update.",
            status_code=400,
        )


class RecordShapeMismatchError(KnownError):
    """Raised when records in one bulk insert have different field counts."""

    def __init__(self, index: int, expected: int, actual: int):
        self.index = index
        self.expected = expected
        self.actual = actual
        super().__init__(
            kind=FailureKind.INVALID_INPUT,
            message="All records in a bulk insert must have the same fields",
            detail=f"Record {index} has {actual} fields, expected {expected}",
            status_code=400,
        )


class AssignmentClause(NamedTuple):
    """A `"col"=$n, ...` clause and the values for its placeholders."""

    clause: str
    values: list[Any]


def build_insert_placeholders(records: Sequence[Mapping[str, Any]]) -> str:
    """
    Build the VALUES placeholder groups for a multi-row insert.

    The field count comes from the first record; numbering runs across
    all groups.

    Args:
        records: Uniform-shape records, one per row

    Returns:
        Placeholder groups, e.g. "($1, $2), ($3, $4)"

    Raises:
        EmptyBatchError: If records is empty
        RecordShapeMismatchError: If a record's field count differs from the first
    """
    if not records:
        raise EmptyBatchError()

    field_count = len(records[0])
    groups = []
    for i, record in enumerate(records):
        if len(record) != field_count:
            raise RecordShapeMismatchError(i, field_count, len(record))
        placeholders = (f"${i * field_count + j + 1}" for j in range(field_count))
        groups.append(f"({', '.join(placeholders)})")

    return ", ".join(groups)


def build_assignment_clause(
    fields: Mapping[str, Any],
    name_map: Mapping[str, str],
    json_fields: Collection[str] = (),
) -> AssignmentClause:
    """
    Build a column assignment clause for a partial UPDATE (or a WHERE filter).

    Args:
        fields: {field_name: new_value}, in the order columns should appear
        name_map: Maps field names to column names; unmapped names are used as-is
        json_fields: Fields stored as JSONB; their values are serialized to text

    Returns:
        AssignmentClause, e.g. ('"deck_name"=$1, "tags"=$2::jsonb', ["Burn", '["red"]'])

    Raises:
        EmptyFieldSetError: If fields is empty
    """
    if not fields:
        raise EmptyFieldSetError()

    fragments = []
    values = []
    for idx, (name, value) in enumerate(fields.items(), start=1):
        fragment = f'"{name_map.get(name, name)}"=${idx}'
        if name in json_fields:
            fragment += "::jsonb"
            value = json.dumps(value)
        fragments.append(fragment)
        values.append(value)

    return AssignmentClause(clause=", ".join(fragments), values=values)


def bind_positional(
    sql: str, values: Sequence[Any], dialect_name: str = "postgresql"
) -> TextClause:
    """
    Convert a `$n` statement into a bound SQLAlchemy text construct.

    `$n` becomes the named parameter `:p<n>`. A `$n::type` cast becomes
    `CAST(:p<n> AS TYPE)` on PostgreSQL; other dialects drop the cast.

    Args:
        sql: Statement using $1..$N placeholders
        values: Placeholder values, values[0] binds $1
        dialect_name: Name of the dialect that will run the statement
    """

    def _replace(match: re.Match[str]) -> str:
        param = f":p{match.group(1)}"
        cast = match.group(2)
        if cast and dialect_name == "postgresql":
            return f"CAST({param} AS {cast.upper()})"
        return param

    rewritten = _PLACEHOLDER_RE.sub(_replace, sql)
    params = {f"p{idx}": value for idx, value in enumerate(values, start=1)}
    return text(rewritten).bindparams(**params)
