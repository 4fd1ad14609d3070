from typing import Any, Dict, List, Optional, Sequence

import pytest

from licsync.core.catalog import Catalog
from licsync.core.models import DesiredAssignment, LicenseAssignment, Principal, PrincipalAttributes

# Real Microsoft ids so fixtures read like tenant data
E3 = "6fd2c87f-b296-42f0-b197-1e91e994b900"
E5 = "c7df2760-2c81-4ef7-b578-5b5392b571df"
E1 = "18181a46-0d4e-45cd-891e-60aabd171b4e"

EXCHANGE = "efb87545-963c-4e0d-99df-69c6916d9eb0"
EXCHANGE_STD = "9aaf7827-d63c-4b61-89c3-182f06f82e5c"
TEAMS = "57ff2da0-773e-42df-b2af-ffb7a2317929"
YAMMER = "7547a3fe-08ee-4ccb-b430-5077c5041653"
SHAREPOINT = "5dbe027f-2339-4123-9542-606e4d348a72"
PHONE = "4828c8ec-dc2e-4779-b502-87ac9ce28ab7"


def _plan(pid: str, name: str) -> Dict[str, Any]:
    return {"servicePlanId": pid, "servicePlanName": name, "appliesTo": "User", "provisioningStatus": "Success"}


SUBSCRIBED_SKUS: List[Dict[str, Any]] = [
    {
        "skuId": E3, "skuPartNumber": "ENTERPRISEPACK", "appliesTo": "User", "capabilityStatus": "Enabled",
        "prepaidUnits": {"enabled": 25}, "consumedUnits": 20,
        "servicePlans": [
            _plan(EXCHANGE, "EXCHANGE_S_ENTERPRISE"),
            _plan(TEAMS, "TEAMS1"),
            _plan(YAMMER, "YAMMER_ENTERPRISE"),
            _plan(SHAREPOINT, "SHAREPOINTENTERPRISE"),
        ],
    },
    {
        "skuId": E5, "skuPartNumber": "ENTERPRISEPREMIUM", "appliesTo": "User", "capabilityStatus": "Enabled",
        "prepaidUnits": {"enabled": 10}, "consumedUnits": 10,
        "servicePlans": [
            _plan(EXCHANGE, "EXCHANGE_S_ENTERPRISE"),
            _plan(TEAMS, "TEAMS1"),
            _plan(YAMMER, "YAMMER_ENTERPRISE"),
            _plan(SHAREPOINT, "SHAREPOINTENTERPRISE"),
            _plan(PHONE, "MCOEV"),
        ],
    },
    {
        "skuId": E1, "skuPartNumber": "STANDARDPACK", "appliesTo": "User", "capabilityStatus": "Enabled",
        "prepaidUnits": {"enabled": 50}, "consumedUnits": 3,
        "servicePlans": [
            _plan(EXCHANGE_STD, "EXCHANGE_S_STANDARD"),
            _plan(TEAMS, "TEAMS1"),
        ],
    },
]


class FakeDirectory:
    """In-memory Directory. `failures[principal_id]` is consumed one entry per assign call."""

    def __init__(self, skus=None, principals: Sequence[Principal] = ()):
        self.skus = list(SUBSCRIBED_SKUS if skus is None else skus)
        self.principals = list(principals)
        self.failures: Dict[str, List[Optional[Exception]]] = {}
        self.create_failures: Dict[str, Exception] = {}
        self.assign_calls: List[Dict[str, Any]] = []
        self.created: List[Dict[str, Any]] = []
        self.fail_skus: Optional[Exception] = None
        self.fail_principals: Optional[Exception] = None

    def fetch_skus(self):
        if self.fail_skus:
            raise self.fail_skus
        return list(self.skus)

    def fetch_principals(self):
        if self.fail_principals:
            raise self.fail_principals
        return list(self.principals)

    def assign_licenses(self, principal_id: str, add: Sequence[DesiredAssignment], remove: Sequence[str]):
        self.assign_calls.append({"id": principal_id, "add": list(add), "remove": list(remove)})
        queue = self.failures.get(principal_id) or []
        if queue:
            err = queue.pop(0)
            if err is not None:
                raise err
        return {"id": principal_id}

    def create_principal(self, attributes: PrincipalAttributes, credential: str) -> str:
        upn = attributes.user_principal_name.lower()
        if upn in self.create_failures:
            raise self.create_failures[upn]
        new_id = f"id-{len(self.created) + 1}"
        self.created.append({"id": new_id, "attributes": attributes, "credential": credential})
        return new_id


def user(pid: str, upn: str, *assignments: LicenseAssignment, mail: str = "") -> Principal:
    return Principal(id=pid, identifier=upn.lower(), mail=mail.lower(), usage_location="BE",
                     assignments=tuple(assignments))


@pytest.fixture
def catalog() -> Catalog:
    return Catalog.from_graph(SUBSCRIBED_SKUS)


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory(principals=[
        user("u1", "alice@contoso.com", LicenseAssignment(E3, frozenset({YAMMER}))),
        user("u2", "bob@contoso.com", LicenseAssignment(E5)),
        user("u3", "carol@contoso.com", mail="carol.mail@contoso.com"),
    ])


class NoSleep:
    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def no_sleep() -> NoSleep:
    return NoSleep()
