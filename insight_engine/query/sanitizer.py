"""
Read-only statement guard.

A plain substring scan, not a parser: any mutating or DDL verb anywhere in
the text rejects the statement, including one inside a string literal or an
identifier such as ``updated_at``. Read-only database roles remain the real
defence.
"""

from __future__ import annotations

import re

from insight_engine.errors import DestructiveStatement, QueryValidationError

FORBIDDEN_KEYWORDS = (
    "DROP",
    "TRUNCATE",
    "DELETE",
    "UPDATE",
    "INSERT",
    "ALTER",
    "GRANT",
    "REVOKE",
)

FORBIDDEN_KEYWORD_RE = re.compile(
    "(" + "|".join(FORBIDDEN_KEYWORDS) + ")",
    re.IGNORECASE,
)


def find_forbidden_keywords(sql: str) -> list[str]:
    """Return the distinct forbidden keywords found, upper-cased, in order of appearance."""
    found: list[str] = []
    for match in FORBIDDEN_KEYWORD_RE.finditer(sql):
        keyword = match.group(1).upper()
        if keyword not in found:
            found.append(keyword)
    return found


def sanitize(sql: str) -> str:
    if sql is None or not sql.strip():
        raise QueryValidationError("Empty SQL statement.")
    found = find_forbidden_keywords(sql)
    if found:
        raise DestructiveStatement(
            "Query contains prohibited keywords for read-only access "
            f"({'|'.join(FORBIDDEN_KEYWORDS)}): {', '.join(found)}."
        )
    return sql
