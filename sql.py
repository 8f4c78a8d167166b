"""Parameterized SQL fragment builders.

Clauses use positional ``$n`` placeholders; each builder returns the clause
text together with the values in placeholder order, so ``values[i]`` binds to
``$(i + 1)``. Column names always come from a ``FieldMapper``, never from the
caller's values.
"""
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from errors import MalformedRequestError


def quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


class FieldMapper:
    """Resource-facing field name -> storage column name.

    The table is resolved once, at construction: every declared field maps to
    its explicit column or to itself.
    """

    def __init__(self, fields: Iterable[str], mapping: Optional[Mapping[str, str]] = None):
        mapping = dict(mapping or {})
        self.fields: Tuple[str, ...] = tuple(fields)
        self.columns: Dict[str, str] = {f: mapping.get(f, f) for f in self.fields}
        # explicit entries for fields that are not projected still translate
        for field, column in mapping.items():
            self.columns.setdefault(field, column)

    def translate(self, field: str) -> str:
        return self.columns.get(field, field)

    def select_list(self, fields: Optional[Iterable[str]] = None) -> str:
        """Projection that aliases columns back to resource-facing names."""
        parts = []
        for field in fields or self.fields:
            column = self.translate(field)
            if column == field:
                parts.append(quote(column))
            else:
                parts.append(f"{quote(column)} AS {quote(field)}")
        return ", ".join(parts)


IDENTITY = FieldMapper(())


def build_set_clause(updates: Mapping[str, Any], mapper: FieldMapper = IDENTITY) -> Tuple[str, List[Any]]:
    """Build the assignment list of a partial ``UPDATE``.

    >>> build_set_clause({"firstName": "Aliya", "age": 32},
    ...                  FieldMapper(["firstName", "age"], {"firstName": "first_name"}))
    ('"first_name"=$1, "age"=$2', ['Aliya', 32])

    A ``None`` value binds as NULL and clears the column. The caller binds
    the row identifier at ``len(values) + 1``.
    """
    if not updates:
        raise MalformedRequestError("No data")

    assignments = []
    values = []
    for index, (field, value) in enumerate(updates.items(), start=1):
        assignments.append(f"{quote(mapper.translate(field))}=${index}")
        values.append(value)

    return ", ".join(assignments), values


# --- Filter predicates ---

class Predicate:
    """One optional search constraint on a single field.

    Abstract: subclasses supply ``render``.
    """

    def __init__(self, field: str):
        self.field = field

    def applies(self, value: Any) -> bool:
        return value is not None

    def render(self, column: str, placeholder: str, value: Any) -> Tuple[str, List[Any]]:
        raise NotImplementedError


class MinBound(Predicate):
    def render(self, column, placeholder, value):
        return f"{column} >= {placeholder}", [value]


class MaxBound(Predicate):
    def render(self, column, placeholder, value):
        return f"{column} <= {placeholder}", [value]


class Equals(Predicate):
    def render(self, column, placeholder, value):
        return f"{column} = {placeholder}", [value]


class Contains(Predicate):
    """Case-insensitive substring match."""

    def render(self, column, placeholder, value):
        return f"LOWER({column}) LIKE LOWER({placeholder})", [f"%{value}%"]


class Flag(Predicate):
    """Fixed condition switched on by a flag of exactly ``True``; binds nothing.

    ``condition`` is a template with a ``{column}`` slot, e.g. ``"{column} > 0"``.
    """

    def __init__(self, field: str, condition: str):
        super().__init__(field)
        self.condition = condition

    def applies(self, value):
        return value is True

    def render(self, column, placeholder, value):
        return self.condition.format(column=column), []


def build_where_clause(
    filters: Optional[Mapping[str, Any]],
    predicates: Mapping[str, Predicate],
    mapper: FieldMapper = IDENTITY,
    start: int = 1,
) -> Tuple[str, List[Any]]:
    """Build the boolean expression of a ``WHERE`` clause.

    Fragments follow the declaration order of ``predicates`` and are joined
    with ``AND``. Placeholders are numbered contiguously from ``start``.
    Returns ``("", [])`` when nothing constrains the query; the caller then
    leaves out the ``WHERE`` keyword.
    """
    filters = filters or {}

    unknown = sorted(set(filters) - set(predicates))
    if unknown:
        raise MalformedRequestError(f"Unknown filter(s): {', '.join(unknown)}")

    fragments = []
    values: List[Any] = []
    for name, predicate in predicates.items():
        value = filters.get(name)
        if not predicate.applies(value):
            continue
        column = quote(mapper.translate(predicate.field))
        placeholder = f"${start + len(values)}"
        fragment, params = predicate.render(column, placeholder, value)
        fragments.append(fragment)
        values.extend(params)

    return " AND ".join(fragments), values


def where(clause: str) -> str:
    """Prefix a non-empty expression with ``WHERE``."""
    return f"WHERE {clause}" if clause else ""
