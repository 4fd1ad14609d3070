from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple


@dataclass(frozen=True)
class ServicePlan:
    service_plan_id: str
    service_plan_name: str
    applies_to: str = ""
    provisioning_status: str = ""

    def matches(self, token: str) -> bool:
        t = (token or "").strip().lower()
        return bool(t) and t in (self.service_plan_id.lower(), self.service_plan_name.lower())


@dataclass(frozen=True)
class SkuRecord:
    sku_id: str
    sku_part_number: str
    service_plans: Tuple[ServicePlan, ...] = ()
    enabled_units: int = 0
    consumed_units: int = 0
    applies_to: str = ""
    capability_status: str = ""

    @property
    def available_units(self) -> int:
        return self.enabled_units - self.consumed_units

    @property
    def plan_ids(self) -> FrozenSet[str]:
        return frozenset(p.service_plan_id for p in self.service_plans)

    def matches(self, token: str) -> bool:
        t = (token or "").strip().lower()
        return bool(t) and t in (self.sku_id.lower(), self.sku_part_number.lower())

    def resolve_plan_ids(self, tokens: Iterable[str]) -> FrozenSet[str]:
        """Plan ids of this SKU matching any token by name or id. Unknown tokens are ignored."""
        out = set()
        for tok in tokens or ():
            for p in self.service_plans:
                if p.matches(tok):
                    out.add(p.service_plan_id)
        return frozenset(out)


@dataclass(frozen=True)
class DesiredAssignment:
    """Target state for one SKU. An empty disabled_plan_ids means a bare assignment."""
    sku_id: str
    disabled_plan_ids: Tuple[str, ...] = ()

    def to_payload(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"skuId": self.sku_id}
        if self.disabled_plan_ids:
            body["disabledPlans"] = list(self.disabled_plan_ids)
        return body


@dataclass(frozen=True)
class LicenseAssignment:
    """A license currently in force on a principal, as reported by the directory."""
    sku_id: str
    disabled_plan_ids: FrozenSet[str] = frozenset()

    @classmethod
    def from_graph(cls, item: Dict[str, Any]) -> "LicenseAssignment":
        return cls(
            sku_id=str(item.get("skuId") or ""),
            disabled_plan_ids=frozenset(str(p) for p in (item.get("disabledPlans") or []) if p),
        )


@dataclass(frozen=True)
class Principal:
    id: str
    identifier: str
    display_name: str = ""
    mail: str = ""
    usage_location: str = ""
    assignments: Tuple[LicenseAssignment, ...] = ()


@dataclass(frozen=True)
class ReconciliationPlan:
    remove_sku_ids: Tuple[str, ...] = ()
    add_assignments: Tuple[DesiredAssignment, ...] = ()
    reasons: Tuple[Tuple[str, str], ...] = ()  # (sku_id, reason), for reporting

    @property
    def is_noop(self) -> bool:
        return not self.remove_sku_ids and not self.add_assignments

    def to_payload(self) -> Dict[str, Any]:
        return {
            "addLicenses": [a.to_payload() for a in self.add_assignments],
            "removeLicenses": list(self.remove_sku_ids),
        }


class OutcomeStatus(str, Enum):
    SUCCESS = "Success"
    FAILED = "Failed"
    DRY_RUN = "DryRun"
    SKIPPED_NOOP = "SkippedNoOp"


@dataclass
class Outcome:
    identifier: str
    status: OutcomeStatus
    plan: Optional[ReconciliationPlan] = None
    error_detail: Optional[str] = None
    attempts: int = 0
    principal_id: Optional[str] = None
    source: Dict[str, Any] = field(default_factory=dict)
    credential: Optional[str] = None


# Known create attributes: CSV header (normalized) -> attribute name
ATTRIBUTE_COLUMNS: Dict[str, str] = {
    "userprincipalname": "user_principal_name",
    "upn": "user_principal_name",
    "displayname": "display_name",
    "mailnickname": "mail_nickname",
    "alias": "mail_nickname",
    "givenname": "given_name",
    "firstname": "given_name",
    "surname": "surname",
    "lastname": "surname",
    "usagelocation": "usage_location",
    "department": "department",
    "jobtitle": "job_title",
    "password": "password",
}


def normalize_header(name: str) -> str:
    return "".join(ch for ch in str(name or "").lower() if ch.isalnum())


@dataclass(frozen=True)
class PrincipalAttributes:
    user_principal_name: str
    display_name: str = ""
    mail_nickname: str = ""
    given_name: str = ""
    surname: str = ""
    usage_location: str = ""
    department: str = ""
    job_title: str = ""
    password: str = ""
    extra: Tuple[Tuple[str, str], ...] = ()  # echoed into the report only

    @classmethod
    def from_row(cls, row: Dict[str, Any], *, default_usage_location: str = "") -> "PrincipalAttributes":
        known: Dict[str, str] = {}
        extra: List[Tuple[str, str]] = []
        for col, val in row.items():
            text = "" if val is None else str(val).strip()
            attr = ATTRIBUTE_COLUMNS.get(normalize_header(col))
            if attr and not known.get(attr):
                known[attr] = text
            elif not attr:
                extra.append((str(col), text))

        upn = known.get("user_principal_name", "")
        nickname = known.get("mail_nickname") or upn.split("@", 1)[0]
        display = known.get("display_name") or " ".join(
            p for p in (known.get("given_name", ""), known.get("surname", "")) if p
        ) or nickname
        return cls(
            user_principal_name=upn,
            display_name=display,
            mail_nickname=nickname,
            given_name=known.get("given_name", ""),
            surname=known.get("surname", ""),
            usage_location=(known.get("usage_location") or default_usage_location).upper(),
            department=known.get("department", ""),
            job_title=known.get("job_title", ""),
            password=known.get("password", ""),
            extra=tuple(extra),
        )

    def to_graph(self, password: str, *, force_change: bool = True) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "accountEnabled": True,
            "userPrincipalName": self.user_principal_name,
            "displayName": self.display_name,
            "mailNickname": self.mail_nickname,
            "passwordProfile": {
                "forceChangePasswordNextSignIn": force_change,
                "password": password,
            },
        }
        for key, val in (
            ("givenName", self.given_name),
            ("surname", self.surname),
            ("usageLocation", self.usage_location),
            ("department", self.department),
            ("jobTitle", self.job_title),
        ):
            if val:
                body[key] = val
        return body
