"""QueryValidator — keyword and pattern filtering for read-only SQL.

Pure logic, no I/O.  The gate never parses or rewrites SQL; it only decides
whether the text may be sent to the database.  Least-privilege credentials
remain the real guarantee.
"""

from __future__ import annotations

import re

from dbhub.errors import QueryRejectedError
from dbhub.security.models import GateVerdict

DEFAULT_MAX_QUERY_LENGTH = 10_000

WRITE_KEYWORDS: tuple[str, ...] = (
    "INSERT",
    "UPDATE",
    "DELETE",
    "DROP",
    "CREATE",
    "ALTER",
    "TRUNCATE",
    "REPLACE",
    "MERGE",
    "GRANT",
    "REVOKE",
)

ALLOWED_PREFIXES: tuple[str, ...] = ("SELECT", "EXPLAIN", "DESCRIBE", "SHOW", "WITH")

# Checked against the original (non-normalized) text, in order.
DANGEROUS_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    (
        "statement separator followed by a write",
        re.compile(r";\s*(DROP|DELETE|UPDATE|INSERT|CREATE|ALTER|TRUNCATE)", re.IGNORECASE),
    ),
    ("line comment", re.compile(r"--")),
    ("block comment", re.compile(r"/\*|\*/")),
    ("xp_cmdshell", re.compile(r"xp_cmdshell", re.IGNORECASE)),
    ("exec call", re.compile(r"exec\s*\(", re.IGNORECASE)),
)

_KEYWORD_PATTERNS = {kw: re.compile(rf"\b{kw}\b") for kw in WRITE_KEYWORDS}

_IDENTIFIER_CHARS = re.compile(r'^[A-Za-z0-9_.`"]+$')
_IDENTIFIER_DENY = ("--", "/*", "*/", ";", "DROP", "DELETE", "UPDATE")


class QueryValidator:
    """Decide whether free SQL text is a safe read-only query.

    Checks run in a fixed order and the first failure wins:

    1. length over ``max_query_length``;
    2. empty after trimming;
    3. a write keyword at a word boundary (so ``updated_users`` is fine);
    4. must start with one of :data:`ALLOWED_PREFIXES`;
    5. a dangerous pattern anywhere in the original text.
    """

    def __init__(self, max_query_length: int = DEFAULT_MAX_QUERY_LENGTH) -> None:
        if max_query_length <= 0:
            max_query_length = DEFAULT_MAX_QUERY_LENGTH
        self._max_query_length = max_query_length

    @property
    def max_query_length(self) -> int:
        return self._max_query_length

    def check_query(self, query: str) -> GateVerdict:
        """Return the verdict for *query* without raising."""
        if len(query) > self._max_query_length:
            return GateVerdict.reject(
                f"query exceeds maximum length of {self._max_query_length} characters"
            )

        normalized = query.strip()
        if not normalized:
            return GateVerdict.reject("query cannot be empty")

        upper = normalized.upper()
        for keyword, pattern in _KEYWORD_PATTERNS.items():
            if pattern.search(upper):
                return GateVerdict.reject(
                    f"write operation detected: {keyword} is not allowed",
                    keyword=keyword,
                )

        if not upper.startswith(ALLOWED_PREFIXES):
            return GateVerdict.reject(
                "query must start with SELECT, EXPLAIN, DESCRIBE, SHOW, or WITH"
            )

        for label, pattern in DANGEROUS_PATTERNS:
            if pattern.search(query):
                return GateVerdict.reject(f"potentially dangerous SQL pattern detected: {label}")

        return GateVerdict.allow()

    def ensure_query(self, query: str) -> None:
        """Raise :class:`QueryRejectedError` unless *query* is allowed."""
        verdict = self.check_query(query)
        if not verdict.allowed:
            raise QueryRejectedError(
                f"query validation failed: {verdict.reason}", keyword=verdict.keyword
            )


def check_identifier(name: str) -> GateVerdict:
    """Return the verdict for a (possibly schema-qualified) table name."""
    if not name:
        return GateVerdict.reject("table name cannot be empty")

    if not _IDENTIFIER_CHARS.match(name):
        return GateVerdict.reject(f"invalid table name: {name}")

    upper = name.upper()
    for fragment in _IDENTIFIER_DENY:
        if fragment in upper:
            return GateVerdict.reject(f"potentially dangerous table name: {name}")

    return GateVerdict.allow()


def ensure_identifier(name: str) -> None:
    """Raise :class:`QueryRejectedError` unless *name* is a safe identifier."""
    verdict = check_identifier(name)
    if not verdict.allowed:
        raise QueryRejectedError(verdict.reason)
