from __future__ import annotations
from typing import List, Protocol, Sequence

from licsync.core.models import ServicePlan, SkuRecord


class Selector(Protocol):
    """Chooses SKUs and plans from catalog candidates (interactive or not)."""

    def select_skus(self, candidates: Sequence[SkuRecord]) -> List[str]: ...

    def select_plans(self, candidates: Sequence[ServicePlan]) -> List[str]: ...


class StaticSelector:
    """Non-interactive selector returning tokens supplied up front (CLI flags, config)."""

    def __init__(self, sku_tokens: Sequence[str] = (), plan_tokens: Sequence[str] = ()):
        self.sku_tokens = [t for t in (s.strip() for s in sku_tokens or ()) if t]
        self.plan_tokens = [t for t in (p.strip() for p in plan_tokens or ()) if t]

    def select_skus(self, candidates: Sequence[SkuRecord]) -> List[str]:
        return list(self.sku_tokens)

    def select_plans(self, candidates: Sequence[ServicePlan]) -> List[str]:
        return list(self.plan_tokens)
