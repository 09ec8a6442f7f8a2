"""
Loads, parses, and caches the ads-spend schema descriptor YAML into typed objects.

The schema descriptor is the single source of truth for:
  - table columns     (names, types, example values)
  - derived metrics   (ratio formulas over raw columns)
  - unavailable data  (columns the table does not have, metrics that need them)
  - date windows      (phrases such as "last 30 days" and their day offsets)

Both translation paths read it: the LLM prompt builder renders it as text,
the fallback templates render it as SQL.  The fully-qualified table id is
configuration, not schema, and lives in Settings.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from functools import lru_cache
from typing import Any

import yaml

_SCHEMA_PATH = Path(__file__).resolve().parents[2] / "semantic_layer" / "ads_spend.yml"


# ── Typed domain objects ─────────────────────────────────

@dataclass(frozen=True)
class Column:
    name: str
    type: str
    description: str = ""
    examples: tuple[str, ...] = ()


@dataclass(frozen=True)
class DerivedMetric:
    name: str
    description: str
    numerator: str
    denominator: str
    scale: int = 1

    @property
    def formula(self) -> str:
        """Human-readable formula, e.g. ``clicks / impressions * 100``."""
        text = f"{self.numerator} / {self.denominator}"
        if self.scale != 1:
            text += f" * {self.scale}"
        return text


@dataclass(frozen=True)
class UnsupportedMetric:
    name: str
    reason: str


@dataclass(frozen=True)
class DateWindow:
    phrase: str
    start_days_ago: int
    end_days_ago: int


@dataclass(frozen=True)
class SchemaDescriptor:
    """Fully parsed schema descriptor (immutable)."""

    version: int
    table_name: str
    description: str
    columns: tuple[Column, ...]
    derived_metrics: tuple[DerivedMetric, ...]
    unavailable_columns: tuple[str, ...] = ()
    unsupported_metrics: tuple[UnsupportedMetric, ...] = ()
    date_windows: tuple[DateWindow, ...] = field(default_factory=tuple)

    # ── Convenience look-ups ─────────────────────────

    def column(self, name: str) -> Column | None:
        for c in self.columns:
            if c.name == name:
                return c
        return None

    def metric(self, name: str) -> DerivedMetric | None:
        for m in self.derived_metrics:
            if m.name.lower() == name.lower():
                return m
        return None

    def window(self, phrase: str) -> DateWindow | None:
        for w in self.date_windows:
            if w.phrase == phrase:
                return w
        return None

    def get_column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    def get_metric_names(self) -> list[str]:
        return [m.name for m in self.derived_metrics]

    def get_columns_list(self) -> list[dict[str, Any]]:
        """Return columns as a list of dicts (for API responses)."""
        return [
            {
                "name": c.name,
                "type": c.type,
                "description": c.description,
                "examples": list(c.examples),
            }
            for c in self.columns
        ]

    def get_metrics_list(self) -> list[dict[str, Any]]:
        """Return derived metrics as a list of dicts (for API responses)."""
        return [
            {"name": m.name, "description": m.description, "formula": m.formula}
            for m in self.derived_metrics
        ]


# ── Parsing ──────────────────────────────────────────────

def _parse_column(raw: dict[str, Any]) -> Column:
    return Column(
        name=raw["name"],
        type=raw["type"],
        description=raw.get("description", ""),
        examples=tuple(raw.get("examples") or ()),
    )


def _parse_metric(raw: dict[str, Any]) -> DerivedMetric:
    return DerivedMetric(
        name=raw["name"],
        description=raw.get("description", ""),
        numerator=raw["numerator"],
        denominator=raw["denominator"],
        scale=raw.get("scale", 1),
    )


def _parse_window(raw: dict[str, Any]) -> DateWindow:
    return DateWindow(
        phrase=raw["phrase"].lower(),
        start_days_ago=int(raw["start_days_ago"]),
        end_days_ago=int(raw.get("end_days_ago", 0)),
    )


def _parse_schema(raw_yaml: dict[str, Any]) -> SchemaDescriptor:
    table = raw_yaml.get("table") or {}
    columns = tuple(_parse_column(c) for c in raw_yaml.get("columns", []))
    metrics = tuple(_parse_metric(m) for m in raw_yaml.get("derived_metrics", []))

    known = {c.name for c in columns}
    for m in metrics:
        for col in (m.numerator, m.denominator):
            if col not in known:
                raise ValueError(f"Derived metric '{m.name}' references unknown column '{col}'")

    return SchemaDescriptor(
        version=raw_yaml.get("version", 1),
        table_name=table.get("name", ""),
        description=table.get("description", ""),
        columns=columns,
        derived_metrics=metrics,
        unavailable_columns=tuple(c.lower() for c in raw_yaml.get("unavailable_columns", [])),
        unsupported_metrics=tuple(
            UnsupportedMetric(name=u["name"], reason=u.get("reason", ""))
            for u in raw_yaml.get("unsupported_metrics", [])
        ),
        date_windows=tuple(_parse_window(w) for w in raw_yaml.get("date_windows", [])),
    )


# ── Public API ───────────────────────────────────────────

@lru_cache
def load_schema() -> SchemaDescriptor:
    """Load and cache the schema descriptor from YAML."""
    with open(_SCHEMA_PATH) as f:
        raw = yaml.safe_load(f)
    return _parse_schema(raw)
