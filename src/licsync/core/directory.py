# src/licsync/core/directory.py
from __future__ import annotations
from typing import Any, Dict, List, Protocol, Sequence

from licsync.core.graph_client import GraphClient
from licsync.core.logging_utils import get_logger
from licsync.core.models import (
    DesiredAssignment, LicenseAssignment, Principal, PrincipalAttributes, ReconciliationPlan,
)

log = get_logger(__name__)

USER_SELECT = "id,userPrincipalName,mail,displayName,usageLocation,assignedLicenses"
SKU_SELECT = "skuId,skuPartNumber,capabilityStatus,appliesTo,prepaidUnits,consumedUnits,servicePlans"


class Directory(Protocol):
    """Remote directory operations used by a run."""

    def fetch_skus(self) -> List[Dict[str, Any]]: ...

    def fetch_principals(self) -> List[Principal]: ...

    def assign_licenses(
        self,
        principal_id: str,
        add: Sequence[DesiredAssignment],
        remove: Sequence[str],
    ) -> Dict[str, Any]: ...

    def create_principal(self, attributes: PrincipalAttributes, credential: str) -> str: ...


def principal_from_graph(u: Dict[str, Any]) -> Principal:
    return Principal(
        id=str(u.get("id") or ""),
        identifier=str(u.get("userPrincipalName") or "").strip().lower(),
        display_name=u.get("displayName") or "",
        mail=str(u.get("mail") or "").strip().lower(),
        usage_location=u.get("usageLocation") or "",
        assignments=tuple(
            LicenseAssignment.from_graph(a)
            for a in (u.get("assignedLicenses") or [])
            if a.get("skuId")
        ),
    )


class GraphDirectory:
    """
    Microsoft Graph implementation.
    Permissions (Application): User.ReadWrite.All, Organization.Read.All
    """
    def __init__(self, graph: GraphClient, *, force_change_password: bool = True):
        self.graph = graph
        self.force_change_password = force_change_password

    def fetch_skus(self) -> List[Dict[str, Any]]:
        data = self.graph.get_json(f"/v1.0/subscribedSkus?$select={SKU_SELECT}")
        items = data.get("value", [])
        log.info("directory: %d subscribed SKU(s)", len(items))
        return items

    def fetch_principals(self) -> List[Principal]:
        out: List[Principal] = []
        for it in self.graph.get_paged_values(f"/v1.0/users?$select={USER_SELECT}&$top=999"):
            if it.get("id"):
                out.append(principal_from_graph(it))
        log.info("directory: %d user(s) in snapshot", len(out))
        return out

    def assign_licenses(
        self,
        principal_id: str,
        add: Sequence[DesiredAssignment],
        remove: Sequence[str],
    ) -> Dict[str, Any]:
        """
        POST /v1.0/users/{id}/assignLicense with both directions in one call.
        No transport-level retry: the execution engine owns the retry policy.
        """
        body = ReconciliationPlan(remove_sku_ids=tuple(remove), add_assignments=tuple(add)).to_payload()
        return self.graph.post_json(f"/v1.0/users/{principal_id}/assignLicense", json=body, retries=0)

    def create_principal(self, attributes: PrincipalAttributes, credential: str) -> str:
        res = self.graph.post_json(
            "/v1.0/users",
            json=attributes.to_graph(credential, force_change=self.force_change_password),
            retries=0,
        )
        uid = res.get("id") or ""
        log.info("directory: created %s (%s)", attributes.user_principal_name, uid)
        return uid
