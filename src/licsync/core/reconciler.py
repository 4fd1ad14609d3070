"""
Diff engine for license state.

Compares the desired assignments for one principal with what the directory
reports today and produces the minimal add/remove plan.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Literal, Optional, Sequence, Tuple

from licsync.core.models import DesiredAssignment, LicenseAssignment, ReconciliationPlan

Op = Literal["NOOP", "ADD", "UPDATE"]


@dataclass(frozen=True)
class Decision:
    """Diff outcome for a single desired SKU.

    Attributes:
        op: ``"ADD"`` when the SKU is not assigned, ``"UPDATE"`` when its
            disabled plans differ, ``"NOOP"`` when identical.
        reason: Human-friendly explanation of the decision.
    """
    op: Op
    reason: str
    desired: DesiredAssignment
    existing: Optional[LicenseAssignment] = None


def decide(desired: DesiredAssignment, existing: Optional[LicenseAssignment]) -> Decision:
    if existing is None:
        return Decision(op="ADD", reason="Not assigned", desired=desired)

    if frozenset(desired.disabled_plan_ids) != existing.disabled_plan_ids:
        return Decision(op="UPDATE", reason="Disabled plans differ", desired=desired, existing=existing)

    return Decision(op="NOOP", reason="Identical", desired=desired, existing=existing)


def reconcile(
    current: Iterable[LicenseAssignment],
    desired: Sequence[DesiredAssignment],
    remove_sku_ids: Iterable[str] = (),
) -> ReconciliationPlan:
    """Build the plan moving `current` to `desired`.

    - Removals of SKUs the principal does not hold are dropped silently.
    - A SKU both removed and desired is treated as a plan update (the add wins).
    - Desired SKUs already assigned with the same disabled plans are omitted.
    """
    existing: Dict[str, LicenseAssignment] = {}
    for a in current or ():
        existing.setdefault(a.sku_id.lower(), a)

    adds: List[DesiredAssignment] = []
    reasons: List[Tuple[str, str]] = []
    desired_ids = set()
    for d in desired or ():
        key = d.sku_id.lower()
        if key in desired_ids:
            continue
        desired_ids.add(key)
        decision = decide(d, existing.get(key))
        reasons.append((d.sku_id, decision.reason))
        if decision.op != "NOOP":
            adds.append(d)

    removes = set()
    for sid in remove_sku_ids or ():
        key = (sid or "").lower()
        if not key or key in desired_ids:
            continue
        held = existing.get(key)
        if held is not None:
            removes.add(held.sku_id)
            reasons.append((held.sku_id, "Removed"))

    return ReconciliationPlan(
        remove_sku_ids=tuple(sorted(removes)),
        add_assignments=tuple(sorted(adds, key=lambda a: a.sku_id)),
        reasons=tuple(reasons),
    )
