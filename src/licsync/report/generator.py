"""
Report output: CSV/JSON export and a compact console table.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Sequence

import pandas as pd

from licsync.core.logging_utils import get_logger
from licsync.core.models import SkuRecord

log = get_logger(__name__)

# Columns always leading the export, in this order
REPORT_COLUMNS = [
    "identifier",
    "status",
    "appliedSkuIds",
    "appliedDisabledPlans",
    "removedSkuIds",
    "attempts",
    "errorDetail",
    "principalId",
]


def _ordered_columns(rows: Sequence[Dict[str, Any]]) -> List[str]:
    cols = list(REPORT_COLUMNS)
    for r in rows:
        for k in r:
            if k not in cols:
                cols.append(k)
    return cols


def export_report(rows: Sequence[Dict[str, Any]], path: str | Path) -> Path:
    """Write rows to `path`; `.json` writes JSON, anything else CSV."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    if p.suffix.lower() == ".json":
        p.write_text(json.dumps(list(rows), indent=2, default=str), encoding="utf-8")
    else:
        df = pd.DataFrame(list(rows), columns=_ordered_columns(rows))
        df.to_csv(p, index=False, encoding="utf-8")
    log.info("report written to %s (%d row(s))", p, len(rows))
    return p


def _fmt(v: Any, limit: int = 60) -> str:
    s = "" if v is None else str(v)
    if s == "":
        return "-"
    if len(s) > limit:
        return s[: limit - 1] + "…"
    return s


def format_table(rows: Sequence[Dict[str, Any]], cols: Sequence[str]) -> str:
    widths = {c: len(c) for c in cols}
    for r in rows:
        for c in cols:
            widths[c] = max(widths[c], len(_fmt(r.get(c))))

    lines = [
        "| " + " | ".join(c.ljust(widths[c]) for c in cols) + " |",
        "| " + " | ".join("-" * widths[c] for c in cols) + " |",
    ]
    for r in rows:
        lines.append("| " + " | ".join(_fmt(r.get(c)).ljust(widths[c]) for c in cols) + " |")
    return "\n".join(lines)


def print_rows(rows: Sequence[Dict[str, Any]], fmt: str = "table") -> None:
    """Render result rows as a table (computed columns only) or full JSON."""
    # credentials stay out of the console; they only go to the exported file
    if fmt == "json":
        safe = [{k: v for k, v in r.items() if k != "credential"} for r in rows]
        print(json.dumps(safe, indent=2, default=str))
        return
    cols = [c for c in REPORT_COLUMNS if c != "principalId"]
    print(format_table(rows, cols))


def print_summary(counts: Dict[str, int], warnings: Sequence[str] = ()) -> None:
    parts = [f"{k}={v}" for k, v in counts.items()]
    print("Summary: " + ", ".join(parts))
    for w in warnings:
        print(f"  warning: {w}")


def catalog_rows(skus: Sequence[SkuRecord], *, with_plans: bool = False) -> List[Dict[str, Any]]:
    rows = []
    for s in skus:
        row = {
            "skuPartNumber": s.sku_part_number,
            "skuId": s.sku_id,
            "enabled": s.enabled_units,
            "consumed": s.consumed_units,
            "available": s.available_units,
        }
        if with_plans:
            row["plans"] = ", ".join(sorted(p.service_plan_name for p in s.service_plans))
        rows.append(row)
    return rows
