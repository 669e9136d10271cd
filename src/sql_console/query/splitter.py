"""Lexical statement splitting for multi-statement SQL submissions.

The splitter tracks quote and comment context so that a ``;`` inside a
string literal, a quoted identifier or a comment never ends a statement.
It is not a SQL parser: only ``'``, ``"`` and backtick quoting is known.
"""

from __future__ import annotations

from enum import Enum


class _Context(Enum):
    """Lexical context of the scanner."""

    CODE = "code"
    SINGLE_QUOTE = "single_quote"
    DOUBLE_QUOTE = "double_quote"
    BACKTICK = "backtick"
    LINE_COMMENT = "line_comment"
    BLOCK_COMMENT = "block_comment"


_QUOTES = {
    "'": _Context.SINGLE_QUOTE,
    '"': _Context.DOUBLE_QUOTE,
    "`": _Context.BACKTICK,
}


def _scan(sql: str) -> tuple[list[str], _Context]:
    """Scan SQL text into statements and report the context at end of input."""
    statements: list[str] = []
    buf: list[str] = []
    context = _Context.CODE
    i = 0
    n = len(sql)

    def flush() -> None:
        text = "".join(buf).strip()
        if text:
            statements.append(text)
        buf.clear()

    while i < n:
        ch = sql[i]
        nxt = sql[i + 1] if i + 1 < n else ""

        if context is _Context.LINE_COMMENT:
            if ch == "\n":
                context = _Context.CODE
            buf.append(ch)
            i += 1
            continue

        if context is _Context.BLOCK_COMMENT:
            if ch == "*" and nxt == "/":
                context = _Context.CODE
                buf.append("*/")
                i += 2
                continue
            buf.append(ch)
            i += 1
            continue

        if context is _Context.CODE:
            if ch == "-" and nxt == "-":
                context = _Context.LINE_COMMENT
                buf.append("--")
                i += 2
                continue
            if ch == "/" and nxt == "*":
                context = _Context.BLOCK_COMMENT
                buf.append("/*")
                i += 2
                continue
            if ch == "#":
                context = _Context.LINE_COMMENT
                buf.append(ch)
                i += 1
                continue
            if ch == ";":
                flush()
                i += 1
                continue

        quote = _QUOTES.get(ch)
        if quote is not None:
            # A quote only closes its own context; other quote kinds are literal text.
            if context is _Context.CODE:
                context = quote
            elif context is quote:
                context = _Context.CODE

        buf.append(ch)
        i += 1

    flush()
    return statements, context


def split_statements(sql: str) -> list[str]:
    """Split a SQL submission into individual statements.

    Args:
        sql: Raw SQL text, possibly containing several ``;``-separated statements.

    Returns:
        Trimmed, non-empty statement texts in source order. A final statement
        without a trailing ``;`` is included.

    Trimming removes the newline that ends a trailing line comment, so
    ``"SELECT 1 -- c\\n; SELECT 2"`` does not survive being re-joined with
    ``;`` and split again: the comment swallows the separator.
    """
    return _scan(sql)[0]


def ends_in_line_comment(sql: str) -> bool:
    """Check whether SQL text ends inside a ``--`` or ``#`` comment.

    Comment markers inside quoted strings and identifiers do not count.
    """
    return _scan(sql)[1] is _Context.LINE_COMMENT


def _skip_comments(statement: str) -> int:
    """Index of the first character that is neither whitespace nor comment."""
    i = 0
    n = len(statement)
    while i < n:
        ch = statement[i]
        nxt = statement[i + 1] if i + 1 < n else ""
        if ch.isspace():
            i += 1
        elif (ch == "-" and nxt == "-") or ch == "#":
            end = statement.find("\n", i)
            if end == -1:
                return n
            i = end + 1
        elif ch == "/" and nxt == "*":
            end = statement.find("*/", i + 2)
            if end == -1:
                return n
            i = end + 2
        else:
            return i
    return n


def is_blank_statement(statement: str) -> bool:
    """Check whether a statement consists only of comments and whitespace.

    Args:
        statement: One statement as produced by :func:`split_statements`.

    Returns:
        True if nothing executable remains once comments are removed.
    """
    return _skip_comments(statement) >= len(statement)


_DML_OPS = frozenset({"SELECT", "INSERT", "UPDATE", "DELETE", "REPLACE"})
_DDL_OPS = frozenset({"CREATE", "ALTER", "DROP", "TRUNCATE", "RENAME"})
_TXN_OPS = frozenset({"BEGIN", "START", "COMMIT", "ROLLBACK", "SAVEPOINT", "RELEASE"})


def classify_sql_op(statement: str) -> str:
    """Classify a statement by its leading verb.

    Leading whitespace and comments are skipped.

    Returns:
        One of SELECT, INSERT, UPDATE, DELETE, REPLACE, DDL, TXN, or the
        upper-cased leading word itself (``SQL`` for an empty statement).
    """
    words = statement[_skip_comments(statement):].split(None, 1)
    verb = words[0].upper() if words else "SQL"
    if verb in _DML_OPS:
        return verb
    if verb in _DDL_OPS:
        return "DDL"
    if verb in _TXN_OPS:
        return "TXN"
    return verb


def make_title(statement: str) -> str:
    """Build a short label such as ``SELECT: SELECT * FROM users``.

    The preview starts after any leading comments.
    """
    code = statement[_skip_comments(statement):]
    preview = " ".join(code.strip()[:40].split())
    return f"{classify_sql_op(statement)}: {preview}"
