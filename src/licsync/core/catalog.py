# src/licsync/core/catalog.py
from __future__ import annotations
from typing import Any, Dict, Iterable, List, Optional

from licsync.core.models import ServicePlan, SkuRecord


class CatalogLookupError(Exception):
    """One or more SKU tokens matched nothing in the tenant catalog."""
    def __init__(self, tokens: Iterable[str], role: str = "target"):
        self.tokens = list(tokens)
        self.role = role
        super().__init__(f"Unknown {role} SKU(s): {', '.join(self.tokens)}")


def sku_from_graph(s: Dict[str, Any]) -> SkuRecord:
    """Build a SkuRecord from one /subscribedSkus item."""
    plans = tuple(
        ServicePlan(
            service_plan_id=str(p.get("servicePlanId") or ""),
            service_plan_name=str(p.get("servicePlanName") or ""),
            applies_to=str(p.get("appliesTo") or ""),
            provisioning_status=str(p.get("provisioningStatus") or ""),
        )
        for p in (s.get("servicePlans") or [])
        if p.get("servicePlanId")
    )
    prepaid = s.get("prepaidUnits") or {}
    return SkuRecord(
        sku_id=str(s.get("skuId") or ""),
        sku_part_number=str(s.get("skuPartNumber") or ""),
        service_plans=plans,
        enabled_units=int(prepaid.get("enabled") or 0),
        consumed_units=int(s.get("consumedUnits") or 0),
        applies_to=str(s.get("appliesTo") or ""),
        capability_status=str(s.get("capabilityStatus") or ""),
    )


class Catalog:
    """Read-only view over the tenant's subscribed SKUs, fetched once per run."""

    def __init__(self, skus: Iterable[SkuRecord]):
        self._skus: List[SkuRecord] = sorted(
            (s for s in skus if s.sku_id), key=lambda s: s.sku_part_number.lower()
        )
        self._by_id = {s.sku_id.lower(): s for s in self._skus}
        self._plan_names: Dict[str, str] = {}
        for s in self._skus:
            for p in s.service_plans:
                self._plan_names.setdefault(p.service_plan_id.lower(), p.service_plan_name)

    @classmethod
    def from_graph(cls, items: Iterable[Dict[str, Any]]) -> "Catalog":
        return cls(sku_from_graph(s) for s in items or [])

    @property
    def skus(self) -> List[SkuRecord]:
        return list(self._skus)

    def __len__(self) -> int:
        return len(self._skus)

    def sku_by_id(self, sku_id: str) -> Optional[SkuRecord]:
        return self._by_id.get((sku_id or "").lower())

    def find_sku(self, token: str) -> Optional[SkuRecord]:
        hit = self.sku_by_id(token)
        if hit:
            return hit
        for s in self._skus:
            if s.matches(token):
                return s
        return None

    def resolve_skus(self, tokens: Iterable[str], *, role: str = "target") -> List[SkuRecord]:
        """
        Resolve part numbers or SKU ids into records, in token order, deduplicated.
        Raises CatalogLookupError naming every token that matched nothing.
        """
        found: List[SkuRecord] = []
        missing: List[str] = []
        for tok in tokens or ():
            t = (tok or "").strip()
            if not t:
                continue
            sku = self.find_sku(t)
            if sku is None:
                missing.append(t)
            elif sku not in found:
                found.append(sku)
        if missing:
            raise CatalogLookupError(missing, role)
        return found

    def available(self, min_free: int = 1) -> List[SkuRecord]:
        """SKUs with at least `min_free` unassigned units (display filter only)."""
        return [s for s in self._skus if s.available_units >= min_free]

    def plan_name(self, plan_id: str) -> Optional[str]:
        return self._plan_names.get((plan_id or "").lower())

    def describe_sku(self, sku_id: str) -> str:
        s = self.sku_by_id(sku_id)
        return s.sku_part_number if s else sku_id

    def describe_plans(self, plan_ids: Iterable[str]) -> List[str]:
        return [self.plan_name(p) or p for p in plan_ids]
