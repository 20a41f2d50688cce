"""Security gate — decides which SQL and identifier text may reach a database."""

from dbhub.security.models import GateAction, GateVerdict
from dbhub.security.validator import (
    ALLOWED_PREFIXES,
    WRITE_KEYWORDS,
    QueryValidator,
    check_identifier,
    ensure_identifier,
)

__all__ = [
    "ALLOWED_PREFIXES",
    "WRITE_KEYWORDS",
    "GateAction",
    "GateVerdict",
    "QueryValidator",
    "check_identifier",
    "ensure_identifier",
]
