"""
Deterministic SQL safety checks (non-LLM).

Last gate before any SQL (translated or user-written) reaches BigQuery.
Operates purely on the SQL text and the schema descriptor.

Checks performed:
  1. SQL must be a single SELECT (or WITH ... SELECT) statement
  2. No multi-statement input
  3. No dangerous keywords (DROP, ALTER, INSERT, UPDATE, DELETE, MERGE, GRANT ...)
  4. No SQL comments (-- or /* */)
  5. Only the configured table may be referenced by a qualified name
  6. No unavailable columns (e.g. revenue)
"""
from __future__ import annotations

import re

from src.core.config import get_settings
from src.core.logging import get_logger
from src.semantic.schema_loader import SchemaDescriptor, load_schema

logger = get_logger(__name__)

# ── Compiled patterns ────────────────────────────────────

_DANGEROUS_KW = re.compile(
    r"\b(DROP|ALTER|TRUNCATE|INSERT|UPDATE|DELETE|MERGE|GRANT|REVOKE|"
    r"CREATE|EXECUTE|EXEC|CALL|EXPORT|LOAD\s+DATA)\b",
    re.IGNORECASE,
)

_MULTI_STMT = re.compile(r";\s*\S")  # semicolon followed by non-whitespace

_COMMENT_INLINE = re.compile(r"--")
_COMMENT_BLOCK = re.compile(r"/\*")

# Applied to backtick-free text, so `a`.`b`.`c` and `a.b.c` look alike.
# Everything after FROM / JOIN up to the next clause keyword or bracket:
# the comma-separated table list.
_FROM_LIST_RE = re.compile(
    r"\b(?:FROM|JOIN)\s+(.*?)(?=\b(?:WHERE|GROUP|ORDER|LIMIT|HAVING|QUALIFY|WINDOW|UNION|"
    r"EXCEPT|INTERSECT|JOIN|ON|USING|LEFT|RIGHT|INNER|FULL|CROSS)\b|[();]|\Z)",
    re.IGNORECASE | re.DOTALL,
)

# project.dataset.table anywhere in the statement
_QUALIFIED_RE = re.compile(r"[\w-]+(?:\.[\w-]+){2,}")


def _table_refs(sql: str) -> list[str]:
    """Dotted table names referenced by *sql*, quoted whole or part by part."""
    plain = sql.replace("`", "")
    refs: list[str] = []
    for m in _FROM_LIST_RE.finditer(plain):
        for item in m.group(1).split(","):
            words = item.split()
            if words and "." in words[0] and words[0] not in refs:
                refs.append(words[0])
    for ref in _QUALIFIED_RE.findall(plain):
        if ref not in refs:
            refs.append(ref)
    return refs


def check_sql_safety(
    sql: str,
    schema: SchemaDescriptor | None = None,
    table_ref: str | None = None,
) -> list[str]:
    """Return a list of safety violations (empty list = safe).

    Parameters
    ----------
    sql : str
        The SQL query to validate.
    schema : SchemaDescriptor, optional
        If None, loads the schema descriptor from disk.
    table_ref : str, optional
        Allowed table, with or without backticks.  Defaults to Settings.table_ref.
    """
    if schema is None:
        schema = load_schema()
    if table_ref is None:
        table_ref = get_settings().table_ref
    allowed_table = table_ref.strip("`").lower()

    errors: list[str] = []
    sql_stripped = sql.strip()
    upper = sql_stripped.upper()

    # ── 1. Must start with SELECT (or WITH … SELECT for CTEs) ─────
    if not (upper.startswith("SELECT") or upper.startswith("WITH")):
        errors.append("SQL must be a SELECT statement.")

    # ── 2. No multi-statement ────────────────────────
    if _MULTI_STMT.search(sql_stripped):
        errors.append("Multi-statement SQL is not allowed (found ';' followed by another statement).")

    # ── 3. No dangerous keywords ─────────────────────
    m = _DANGEROUS_KW.search(sql_stripped)
    if m:
        errors.append(f"Dangerous keyword detected: '{m.group(1).upper()}'.")

    # ── 4. No SQL comments ───────────────────────────
    if _COMMENT_INLINE.search(sql_stripped):
        errors.append("Inline comments (--) are not allowed.")
    if _COMMENT_BLOCK.search(sql_stripped):
        errors.append("Block comments (/* */) are not allowed.")

    # ── 5. Only the configured table ─────────────────
    # dataset.table resolves against the default project, so a suffix match is enough
    for ref in _table_refs(sql_stripped):
        r = ref.lower()
        if r != allowed_table and not allowed_table.endswith("." + r):
            errors.append(f"Table '{ref}' is not the configured table '{allowed_table}'.")

    # ── 6. Columns the table does not have ───────────
    for col in schema.unavailable_columns:
        if re.search(rf"\b{re.escape(col)}\b", sql_stripped, re.IGNORECASE):
            errors.append(f"Column '{col}' does not exist in this table.")

    if errors:
        logger.warning("SQL safety violations: %s", errors)
    return errors
