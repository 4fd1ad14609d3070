# src/licsync/app/orchestrator.py
"""
Run workflows: license assignment for existing principals, and provisioning
of new ones. Catalog and principal snapshots are read once at run start and
never re-read, so changes made elsewhere mid-run are not seen.
"""
from __future__ import annotations
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from licsync.app.job_runner import map_ordered
from licsync.core.auth import AuthError
from licsync.core.catalog import Catalog, CatalogLookupError
from licsync.core.credentials import CredentialPolicy
from licsync.core.desired_state import build_desired
from licsync.core.directory import Directory
from licsync.core.executor import ExecutionEngine
from licsync.core.logging_utils import get_logger
from licsync.core.models import (
    Outcome, OutcomeStatus, Principal, PrincipalAttributes, SkuRecord,
)
from licsync.core.reconciler import reconcile
from licsync.core.resolver import SourceUnreadable, read_tabular, resolve_identifiers
from licsync.core.selector import Selector
from licsync.http.errors import HttpError
from licsync.http.throttle import RetryPolicy
from licsync.report.aggregator import Aggregator

log = get_logger(__name__)


class RunAbortedError(Exception):
    """A run-wide problem stopped the run before any principal was processed."""


@dataclass
class AssignmentRequest:
    inputs: Sequence[str]
    remove_skus: Sequence[str] = ()
    preserve_disabled: bool = False
    dry_run: bool = False


@dataclass
class ProvisioningRequest:
    source: str
    usage_location: str = ""
    dry_run: bool = False


@dataclass(frozen=True)
class _Targets:
    skus: Tuple[SkuRecord, ...] = ()
    plan_tokens: Tuple[str, ...] = ()
    remove_ids: Tuple[str, ...] = ()
    error: Optional[str] = None


class Orchestrator:
    def __init__(
        self,
        directory: Directory,
        selector: Selector,
        *,
        policy: RetryPolicy | None = None,
        max_workers: int = 1,
        cancel: threading.Event | None = None,
        engine: ExecutionEngine | None = None,
    ):
        self.directory = directory
        self.selector = selector
        self.max_workers = max(1, int(max_workers))
        self.engine = engine or ExecutionEngine(directory, policy=policy, cancel=cancel)
        self.catalog: Optional[Catalog] = None

    # ---------- run-start snapshots (fatal on failure) ----------
    def load_catalog(self) -> Catalog:
        try:
            catalog = Catalog.from_graph(self.directory.fetch_skus())
        except (HttpError, AuthError) as ex:
            raise RunAbortedError(f"catalog unavailable: {ex}") from ex
        if not len(catalog):
            raise RunAbortedError("catalog unavailable: tenant has no subscribed SKUs")
        self.catalog = catalog
        return catalog

    def _snapshot(self) -> Dict[str, Principal]:
        try:
            principals = self.directory.fetch_principals()
        except (HttpError, AuthError) as ex:
            raise RunAbortedError(f"directory snapshot unavailable: {ex}") from ex
        index: Dict[str, Principal] = {}
        for p in principals:
            if p.identifier:
                index[p.identifier] = p
        # mail is a fallback key and never shadows a UPN
        for p in principals:
            if p.mail:
                index.setdefault(p.mail, p)
        return index

    def _targets(self, catalog: Catalog, remove_tokens: Sequence[str] = ()) -> _Targets:
        """Resolve the run-wide SKU choices. A lookup failure is kept, not raised."""
        try:
            skus = catalog.resolve_skus(self.selector.select_skus(catalog.skus))
            candidates = [p for s in skus for p in s.service_plans]
            plan_tokens = tuple(self.selector.select_plans(candidates))
            removes = catalog.resolve_skus(remove_tokens, role="source")
        except CatalogLookupError as ex:
            log.error("catalog lookup failed: %s", ex)
            return _Targets(error=f"CatalogLookupError: {ex}")
        if not skus and not removes:
            raise RunAbortedError("no target or source SKU selected")
        return _Targets(
            skus=tuple(skus),
            plan_tokens=plan_tokens,
            remove_ids=tuple(s.sku_id for s in removes),
        )

    # ---------- assignment workflow ----------
    def run_assignment(self, req: AssignmentRequest) -> Aggregator:
        resolution = resolve_identifiers(req.inputs)
        if not resolution.identifiers:
            raise RunAbortedError("no valid identifiers resolved")

        catalog = self.load_catalog()
        index = self._snapshot()
        targets = self._targets(catalog, req.remove_skus)

        def work(identifier: str) -> Outcome:
            return self._assign_one(identifier, index.get(identifier), targets, req)

        agg = Aggregator(resolution.warnings)
        for outcome in map_ordered(work, resolution.identifiers, max_workers=self.max_workers):
            agg.add(outcome)
        log.info("assignment run finished: %s", agg.counts())
        return agg

    def _assign_one(
        self,
        identifier: str,
        principal: Optional[Principal],
        targets: _Targets,
        req: AssignmentRequest,
    ) -> Outcome:
        if principal is None:
            log.error("%s: not found in directory", identifier)
            return Outcome(identifier=identifier, status=OutcomeStatus.FAILED,
                           error_detail="principal not found in directory snapshot")
        if targets.error:
            return Outcome(identifier=identifier, status=OutcomeStatus.FAILED,
                           principal_id=principal.id, error_detail=targets.error)

        desired = build_desired(
            targets.skus,
            targets.plan_tokens,
            preserve=req.preserve_disabled,
            current=principal.assignments,
            catalog=self.catalog,
        )
        plan = reconcile(principal.assignments, desired, targets.remove_ids)
        return self.engine.execute(identifier, principal.id, plan, dry_run=req.dry_run)

    # ---------- provisioning workflow ----------
    def run_provisioning(self, req: ProvisioningRequest, credentials: CredentialPolicy) -> Aggregator:
        try:
            df = read_tabular(req.source)
        except SourceUnreadable as ex:
            raise RunAbortedError(f"provisioning source unreadable: {ex}") from ex
        rows: List[Dict[str, Any]] = df.to_dict("records") if not df.empty else []
        if not rows:
            raise RunAbortedError(f"{req.source}: no rows to provision")

        catalog = self.load_catalog()
        targets = self._targets(catalog)

        # parse all rows up front so duplicates are flagged in input order
        seen = set()
        work_items: List[Tuple[Dict[str, Any], PrincipalAttributes, Optional[str]]] = []
        for row in rows:
            attrs = PrincipalAttributes.from_row(row, default_usage_location=req.usage_location)
            upn = attrs.user_principal_name.lower()
            problem = None
            if not upn:
                problem = "row has no userPrincipalName"
            elif upn in seen:
                problem = "duplicate userPrincipalName in source"
            seen.add(upn)
            work_items.append((row, attrs, problem))

        def work(item) -> Outcome:
            row, attrs, problem = item
            return self._provision_one(row, attrs, problem, targets, credentials, req)

        agg = Aggregator()
        for outcome in map_ordered(work, work_items, max_workers=self.max_workers):
            agg.add(outcome)
        log.info("provisioning run finished: %s", agg.counts())
        return agg

    def _provision_one(
        self,
        row: Dict[str, Any],
        attrs: PrincipalAttributes,
        problem: Optional[str],
        targets: _Targets,
        credentials: CredentialPolicy,
        req: ProvisioningRequest,
    ) -> Outcome:
        identifier = attrs.user_principal_name.lower()
        if problem or targets.error:
            detail = problem or targets.error
            log.error("%s: %s", identifier or "<blank>", detail)
            return Outcome(identifier=identifier, status=OutcomeStatus.FAILED,
                           error_detail=detail, source=row)

        desired = build_desired(targets.skus, targets.plan_tokens)
        plan = reconcile((), desired)
        if req.dry_run:
            return self.engine.execute(identifier, "", plan, dry_run=True, source=row)

        if not attrs.usage_location and not plan.is_noop:
            log.warning("%s: no usageLocation; license assignment will likely be rejected", identifier)

        credential = credentials.credential_for(attrs.password)
        try:
            principal_id = self.directory.create_principal(attrs, credential)
        except (HttpError, AuthError) as ex:
            detail = ex.detail() if isinstance(ex, HttpError) else str(ex)
            log.error("%s: create failed: %s", identifier, detail)
            return Outcome(identifier=identifier, status=OutcomeStatus.FAILED,
                           plan=plan, error_detail=f"create failed: {detail}", source=row)

        return self.engine.execute(identifier, principal_id, plan, source=row, credential=credential)
