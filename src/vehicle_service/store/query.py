"""
Parameterized query specs understood by the document store.

Supported grammar (case-insensitive keywords, optional alias):

    SELECT * FROM root [alias] [WHERE alias.field = (@param | 'literal' | "literal" | number)]

This covers every query the repositories issue: "select everything" and
"select by a single field". Anything else is rejected with QueryError(400).
"""

import re
from dataclasses import dataclass, field
from typing import Any

from .errors import QueryError

_QUERY_RE = re.compile(
    r"""^\s*SELECT\s+\*\s+FROM\s+root
        (?:\s+(?!WHERE\b)(?P<alias>[A-Za-z_]\w*))?
        (?:\s+WHERE\s+(?P<ref>[A-Za-z_]\w*)\.(?P<field>[A-Za-z_]\w*)\s*=\s*
            (?P<value>@\w+|'[^']*'|"[^"]*"|-?\d+(?:\.\d+)?))?
        \s*;?\s*$""",
    re.IGNORECASE | re.VERBOSE,
)


@dataclass(frozen=True)
class QuerySpec:
    """
    query: SQL-like query text.
    parameters: [{"name": "@id", "value": "1"}, ...]
    """

    query: str
    parameters: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class Predicate:
    attribute: str
    value: Any

    def matches(self, resource: dict[str, Any]) -> bool:
        return resource.get(self.attribute) == self.value


def _literal(raw: str) -> Any:
    if raw[0] in "'\"":
        return raw[1:-1]
    return float(raw) if "." in raw else int(raw)


def parse_query(query_spec: QuerySpec | str | None) -> Predicate | None:
    """
    Parse `query_spec` and return the WHERE predicate (None means "match everything").

    Raises:
        QueryError(400): empty/unsupported query, alias mismatch or unbound parameter.
    """
    if query_spec is None:
        raise QueryError(400, "The query is undefined or null.")
    if isinstance(query_spec, str):
        query_spec = QuerySpec(query_spec)
    if not query_spec.query or not query_spec.query.strip():
        raise QueryError(400, "The query is undefined or null.")

    match = _QUERY_RE.match(query_spec.query)
    if match is None:
        raise QueryError(400, f"Syntax error, unsupported query: {query_spec.query!r}")

    if match.group("field") is None:
        return None

    alias = match.group("alias") or "root"
    if match.group("ref") != alias:
        raise QueryError(400, f"Identifier '{match.group('ref')}' could not be resolved.")

    raw_value = match.group("value")
    if raw_value.startswith("@"):
        params = {p.get("name"): p.get("value") for p in query_spec.parameters}
        if raw_value not in params:
            raise QueryError(400, f"Parameter '{raw_value}' is not defined.")
        value = params[raw_value]
    else:
        value = _literal(raw_value)

    return Predicate(attribute=match.group("field"), value=value)


def by_id(document_id: str) -> QuerySpec:
    return QuerySpec(
        query="SELECT * FROM root r WHERE r.id=@id",
        parameters=[{"name": "@id", "value": document_id}],
    )


SELECT_ALL = "SELECT * FROM root"
