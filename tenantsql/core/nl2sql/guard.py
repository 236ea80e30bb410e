"""Safety gate for SQL text.

A statement is refused when any mutating keyword appears as a whole word, in
any case, anywhere in the text. Word boundaries keep identifiers such as
`droptable` or `updated_at` usable.
"""

import re
from typing import Optional

from tenantsql.core.errors import BlockedQuery

BLOCKED_KEYWORDS = (
    "DROP",
    "ALTER",
    "TRUNCATE",
    "CREATE",
    "INSERT",
    "UPDATE",
    "DELETE",
    "REPLACE",
    "MERGE",
)

_BLOCKED_PATTERN = re.compile(
    r"\b(" + "|".join(BLOCKED_KEYWORDS) + r")\b", re.IGNORECASE
)


def find_blocked_keyword(sql: str) -> Optional[str]:
    match = _BLOCKED_PATTERN.search(sql or "")
    return match.group(1).upper() if match else None


def ensure_safe(sql: str) -> None:
    keyword = find_blocked_keyword(sql)
    if keyword is not None:
        raise BlockedQuery(keyword)
