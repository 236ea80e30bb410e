"""Parsers for free-form language model replies."""

import re
from dataclasses import dataclass

from tenantsql.core.errors import UnparsableModelReply

EXPLANATION_NOT_FOUND = "Explanation not found."

_EXPLANATION = re.compile(r"Explanation:\s*(.*?)\n\s*SQL:", re.IGNORECASE | re.DOTALL)
_SQL_SECTION = re.compile(r"(?:^|\n)\s*SQL:[ \t]*(.*)\Z", re.IGNORECASE | re.DOTALL)
_FENCE = re.compile(r"```(?:sql)?[ \t]*\n?(.*?)```", re.IGNORECASE | re.DOTALL)


@dataclass(frozen=True)
class ParsedReply:
    explanation: str
    sql: str


def _strip_fence(text: str) -> str:
    fenced = _FENCE.search(text)
    if fenced:
        return fenced.group(1).strip()
    return text.strip()


def parse_generation_reply(content: str) -> ParsedReply:
    """
    Split a generation reply into its explanation and SQL sections.

    The SQL section is whatever follows the first line-leading `SQL:` marker,
    unwrapped from a ``` fence when present. Without a marker, a fenced block
    anywhere in the reply is accepted.

    Raises:
        UnparsableModelReply: no SQL section, or an empty one.
    """
    content = content or ""

    explanation_match = _EXPLANATION.search(content)
    explanation = (
        explanation_match.group(1).strip() if explanation_match else EXPLANATION_NOT_FOUND
    )

    section = _SQL_SECTION.search(content)
    if section:
        sql = _strip_fence(section.group(1))
    else:
        fenced = _FENCE.search(content)
        if not fenced:
            raise UnparsableModelReply("Reply has no SQL section")
        sql = fenced.group(1).strip()

    if not sql:
        raise UnparsableModelReply("Reply has an empty SQL section")

    return ParsedReply(explanation=explanation or EXPLANATION_NOT_FOUND, sql=sql)
