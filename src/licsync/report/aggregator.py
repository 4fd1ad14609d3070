from __future__ import annotations
from typing import Any, Dict, List, Optional

from licsync.core.catalog import Catalog
from licsync.core.models import Outcome, OutcomeStatus


class Aggregator:
    """Collects one Outcome per principal, in input resolution order."""

    def __init__(self, warnings: Optional[List[str]] = None):
        self._outcomes: List[Outcome] = []
        self.warnings: List[str] = list(warnings or [])

    def add(self, outcome: Outcome) -> None:
        self._outcomes.append(outcome)

    @property
    def outcomes(self) -> List[Outcome]:
        return list(self._outcomes)

    def __len__(self) -> int:
        return len(self._outcomes)

    def counts(self) -> Dict[str, int]:
        out = {s.value: 0 for s in OutcomeStatus}
        for o in self._outcomes:
            out[o.status.value] += 1
        return out

    @property
    def any_failed(self) -> bool:
        return any(o.status == OutcomeStatus.FAILED for o in self._outcomes)

    def to_records(self, catalog: Optional[Catalog] = None) -> List[Dict[str, Any]]:
        """Flat rows for export. Source columns are echoed after the computed ones."""
        rows: List[Dict[str, Any]] = []
        for o in self._outcomes:
            plan = o.plan
            adds = list(plan.add_assignments) if plan else []
            removes = list(plan.remove_sku_ids) if plan else []

            def sku(sid: str) -> str:
                return catalog.describe_sku(sid) if catalog else sid

            def plans(ids) -> str:
                names = catalog.describe_plans(ids) if catalog else list(ids)
                return "|".join(names)

            row: Dict[str, Any] = {
                "identifier": o.identifier,
                "status": o.status.value,
                "appliedSkuIds": ";".join(sku(a.sku_id) for a in adds),
                "appliedDisabledPlans": ";".join(
                    f"{sku(a.sku_id)}:{plans(a.disabled_plan_ids)}" for a in adds if a.disabled_plan_ids
                ),
                "removedSkuIds": ";".join(sku(s) for s in removes),
                "attempts": o.attempts,
                "errorDetail": o.error_detail or "",
                "principalId": o.principal_id or "",
            }
            if o.credential is not None:
                row["credential"] = o.credential
            for k, v in (o.source or {}).items():
                key = str(k)
                # source columns never overwrite computed ones
                row[f"source.{key}" if key in row else key] = v
            rows.append(row)
        return rows
