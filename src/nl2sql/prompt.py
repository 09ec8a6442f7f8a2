"""
System prompt for NL -> BigQuery SQL, rendered from the schema descriptor.
"""
from __future__ import annotations

from src.nl2sql.templates import days_ago
from src.semantic.schema_loader import SchemaDescriptor

_SYSTEM_PROMPT = """\
You are a SQL expert for BigQuery. Convert natural language questions to BigQuery SQL.

The table is: {table_ref}

ACTUAL TABLE COLUMNS (use these exact names, and no others):
{columns}

IMPORTANT: This table does NOT have {unavailable} column(s). \
Do not use or reference them in any query.

Available metrics to calculate:
{metrics}

{unsupported}

For date comparisons:
{windows}

Return ONLY the SQL query, no explanations, no markdown. \
Use proper BigQuery syntax with backticks for the table name."""


def _column_line(name: str, type_: str, examples: tuple[str, ...]) -> str:
    line = f"- {name} ({type_})"
    if examples:
        line += " - e.g., " + ", ".join(f"'{e}'" for e in examples)
    return line


def build_system_prompt(schema: SchemaDescriptor, table_ref: str) -> str:
    columns = "\n".join(_column_line(c.name, c.type, c.examples) for c in schema.columns)
    metrics = "\n".join(
        f"- {m.name} ({m.description}) = {m.formula}" for m in schema.derived_metrics
    )
    unavailable = ", ".join(f"'{c}'" for c in schema.unavailable_columns) or "any extra"
    unsupported = "\n".join(
        f"DO NOT calculate {u.name}: {u.reason}. "
        f"If asked about {u.name}, explain that it is not supported by the available data."
        for u in schema.unsupported_metrics
    )
    windows = "\n".join(
        f'- "{w.phrase}" = {days_ago(w.start_days_ago)} to {days_ago(w.end_days_ago)}'
        for w in schema.date_windows
    )
    return _SYSTEM_PROMPT.format(
        table_ref=table_ref,
        columns=columns,
        unavailable=unavailable,
        metrics=metrics,
        unsupported=unsupported,
        windows=windows,
    )
