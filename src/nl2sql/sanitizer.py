"""
Output sanitizer -- strips LLM framing so the candidate text can be run as a query.

Best-effort only: this removes code fences and one outer pair of quotes per
pass and closes an unterminated backtick identifier.  It does not parse SQL.
"""
from __future__ import annotations

import re

_OPEN_FENCE_RE = re.compile(r"^```(?:[\w+-]*[ \t]*\n)?")
_CLOSE_FENCE_RE = re.compile(r"\n?```\s*\Z")
_QUOTES = ('"', "'")


def _strip_framing(sql: str) -> str:
    """One pass of fence and outer-quote removal."""
    sql = sql.strip()

    if sql.startswith("```"):
        sql = _OPEN_FENCE_RE.sub("", sql, count=1)
        sql = _CLOSE_FENCE_RE.sub("", sql, count=1)

    for q in _QUOTES:
        if sql.startswith(q) and sql.endswith(q):
            sql = sql[1:-1]
            break

    return sql.strip()


def sanitize(raw: str) -> str:
    """Normalise *raw* model output into a candidate query string.

    Never raises; ``sanitize(sanitize(x)) == sanitize(x)``.
    """
    sql = raw or ""
    # Repeat until stable so a second call has nothing left to strip
    while True:
        stripped = _strip_framing(sql)
        if stripped == sql:
            break
        sql = stripped

    # Close an identifier cut off mid-way, e.g. `proj.dataset.tab
    if sql.count("`") % 2 == 1:
        sql += "`"

    return sql.strip()
