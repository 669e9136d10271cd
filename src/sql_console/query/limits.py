"""Row limit enforcement for read statements.

Rewrites a single ``SELECT``/``WITH`` statement so that it returns at most
``max_rows`` rows. Only three trailing clause shapes are ever rewritten:

- ``LIMIT n``
- ``LIMIT n OFFSET m``
- ``LIMIT offset, count``

Any other use of ``LIMIT`` (``LIMIT n BY``, ``WITH TIES``, a limit inside a
subquery, placeholders) leaves the statement alone apart from stripping a
trailing ``;``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from sql_console.query.splitter import ends_in_line_comment

_READ_PREFIX = re.compile(r"(select|with)\b", re.IGNORECASE)
_LIMIT_KEYWORD = re.compile(r"\blimit\b", re.IGNORECASE)
_TOKEN = re.compile(r"\s*(,|\w+|\S)")


class LimitForm(str, Enum):
    """Syntactic form of a simple trailing LIMIT clause."""

    COUNT = "count"
    COUNT_OFFSET = "count_offset"
    OFFSET_COMMA_COUNT = "offset_comma_count"


@dataclass(frozen=True)
class LimitClause:
    """A recognized simple trailing LIMIT clause."""

    form: LimitForm
    count: int
    offset: int | None
    start: int

    def render(self, count: int) -> str:
        """Render the clause with a new row count, keeping its form and offset."""
        if self.form is LimitForm.COUNT_OFFSET:
            return f"LIMIT {count} OFFSET {self.offset}"
        if self.form is LimitForm.OFFSET_COMMA_COUNT:
            return f"LIMIT {self.offset}, {count}"
        return f"LIMIT {count}"


def _tokenize(text: str) -> list[str] | None:
    tokens: list[str] = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        match = _TOKEN.match(text, pos)
        if match is None:
            return None
        tokens.append(match.group(1))
        pos = match.end()
    return tokens


def parse_trailing_limit(statement: str) -> LimitClause | None:
    """Recognize a simple LIMIT clause at the very end of a statement.

    Args:
        statement: A single statement without a trailing ``;``.

    Returns:
        The parsed clause, or None if the statement does not end in one of
        the three simple shapes.
    """
    matches = list(_LIMIT_KEYWORD.finditer(statement))
    if not matches:
        return None
    start = matches[-1].start()
    tokens = _tokenize(statement[start:])
    if tokens is None:
        return None

    words = [t.upper() for t in tokens]
    if len(words) == 2 and words[1].isdigit():
        return LimitClause(LimitForm.COUNT, int(words[1]), None, start)
    if len(words) == 4 and words[1].isdigit() and words[2] == "OFFSET" and words[3].isdigit():
        return LimitClause(LimitForm.COUNT_OFFSET, int(words[1]), int(words[3]), start)
    if len(words) == 4 and words[1].isdigit() and words[2] == "," and words[3].isdigit():
        return LimitClause(LimitForm.OFFSET_COMMA_COUNT, int(words[3]), int(words[1]), start)
    return None


def enforce_select_limit(sql: str, max_rows: int) -> str:
    """Cap the number of rows a single read statement can return.

    Args:
        sql: One SQL statement, optionally ending in ``;``.
        max_rows: Maximum number of rows the statement may return.

    Returns:
        The rewritten statement, or the input unchanged when rewriting is
        not known to be safe.
    """
    trimmed = sql.strip()
    if trimmed.endswith(";"):
        trimmed = trimmed[:-1].rstrip()

    if ";" in trimmed:
        return sql

    if not _READ_PREFIX.match(trimmed):
        return sql

    # Appending after a trailing line comment would comment the clause out.
    if ends_in_line_comment(trimmed):
        return trimmed

    has_limit = _LIMIT_KEYWORD.search(trimmed) is not None
    if not has_limit:
        return f"{trimmed} LIMIT {max_rows}"

    clause = parse_trailing_limit(trimmed)
    if clause is None:
        return trimmed

    if clause.count <= max_rows:
        return trimmed

    return trimmed[: clause.start] + clause.render(max_rows)
