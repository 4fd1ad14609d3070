"""Desired license state per principal.

Pure functions: no I/O, and the output does not depend on the order in
which SKUs, plan tokens or current assignments are supplied.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Set

from licsync.core.catalog import Catalog
from licsync.core.models import DesiredAssignment, LicenseAssignment, SkuRecord


def currently_disabled_tokens(
    current: Iterable[LicenseAssignment],
    catalog: Optional[Catalog] = None,
) -> Set[str]:
    """Ids (and, when the catalog knows them, names) of every plan disabled today."""
    tokens: Set[str] = set()
    for a in current or ():
        for pid in a.disabled_plan_ids:
            tokens.add(pid)
            name = catalog.plan_name(pid) if catalog else None
            if name:
                tokens.add(name)
    return tokens


def preserved_tokens_for(
    sku: SkuRecord,
    current: Sequence[LicenseAssignment],
    catalog: Optional[Catalog] = None,
) -> Set[str]:
    """
    Plans to keep disabled on `sku`. A SKU already held keeps exactly its own
    disabled plans; a SKU not held yet inherits those of the SKUs held today.
    """
    held: Dict[str, LicenseAssignment] = {a.sku_id.lower(): a for a in current}
    own = held.get(sku.sku_id.lower())
    if own is not None:
        return set(own.disabled_plan_ids)
    return currently_disabled_tokens(current, catalog)


def build_assignment(
    sku: SkuRecord,
    disable_tokens: Iterable[str],
    *,
    preserve: bool = False,
    preserved_tokens: Iterable[str] = (),
) -> DesiredAssignment:
    ids = set(sku.resolve_plan_ids(disable_tokens))
    if preserve:
        ids |= sku.resolve_plan_ids(preserved_tokens)
    return DesiredAssignment(sku_id=sku.sku_id, disabled_plan_ids=tuple(sorted(ids)))


def build_desired(
    targets: Sequence[SkuRecord],
    disable_tokens: Iterable[str] = (),
    *,
    preserve: bool = False,
    current: Iterable[LicenseAssignment] = (),
    catalog: Optional[Catalog] = None,
) -> List[DesiredAssignment]:
    """
    One DesiredAssignment per distinct target SKU, sorted by SKU id.

    Plan tokens that do not belong to a given SKU are ignored for that SKU.
    With `preserve`, see `preserved_tokens_for`.
    """
    tokens = [t.strip() for t in disable_tokens or () if t and t.strip()]
    held = list(current or ()) if preserve else []

    by_id = {}
    for sku in targets or ():
        by_id.setdefault(sku.sku_id, sku)

    return [
        build_assignment(
            by_id[sid],
            tokens,
            preserve=preserve,
            preserved_tokens=preserved_tokens_for(by_id[sid], held, catalog) if preserve else (),
        )
        for sid in sorted(by_id)
    ]
