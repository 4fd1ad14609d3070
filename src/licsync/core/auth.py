from __future__ import annotations
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Type

import msal
import requests

from licsync.core.logging_utils import get_logger

log = get_logger(__name__)

SCOPES = ["https://graph.microsoft.com/.default"]
LOGIN_BASE = "https://login.microsoftonline.com"


class AuthError(Exception):
    code = "auth_error"
    hint = "Check the app registration and the LICSYNC_* credentials."

    def __init__(self, message: str = "", *, hint: str | None = None):
        super().__init__(message or type(self).__name__)
        if hint:
            self.hint = hint


class InvalidTenantId(AuthError):
    code = "invalid_tenant_id"
    hint = "Tenant ID invalid or unreachable."


class InvalidClientId(AuthError):
    code = "invalid_client_id"
    hint = "Client ID invalid or the app registration was deleted."


class InvalidClientSecret(AuthError):
    code = "invalid_client_secret"
    hint = "Client secret rejected or expired."


class AuthNetworkError(AuthError):
    code = "network_error"
    hint = "login.microsoftonline.com could not be reached."


class ConsentRequired(AuthError):
    code = "consent_required"
    hint = "Grant admin consent for User.ReadWrite.All and Organization.Read.All."


# AADSTS markers in MSAL error_description, first match wins
_MSAL_ERRORS: Tuple[Tuple[Tuple[str, ...], Type[AuthError], str], ...] = (
    (("AADSTS7000215", "AADSTS7000222"), InvalidClientSecret, "Invalid or expired client secret."),
    (("AADSTS700016",), InvalidClientId, "Invalid client ID or app not found."),
    (("AADSTS90002", "invalid_tenant"), InvalidTenantId, "Invalid tenant ID or tenant not found."),
    (("AADSTS65001", "consent_required"), ConsentRequired, "Admin consent required."),
)


def build_authority(tenant_id: str) -> str:
    return f"{LOGIN_BASE}/{tenant_id}"


def _map_msal_error(desc: str) -> AuthError:
    text = desc or "Unknown error"
    for markers, cls, message in _MSAL_ERRORS:
        if any(m in text for m in markers):
            return cls(message)
    return AuthError(text)


@dataclass(frozen=True)
class AppCredentials:
    tenant_id: str
    client_id: str
    client_secret: str

    @classmethod
    def from_dict(cls, creds: dict) -> "AppCredentials":
        """Trim and validate; raises the AuthError subclass naming the first missing value."""
        c = cls(*(str(creds.get(k) or "").strip() for k in ("tenant_id", "client_id", "client_secret")))
        if not c.tenant_id:
            raise InvalidTenantId("Tenant ID required.")
        if not c.client_id:
            raise InvalidClientId("Client ID required.")
        if not c.client_secret:
            raise InvalidClientSecret("Client Secret required.")
        return c


class TokenProvider:
    """
    App-only Graph token source. The MSAL app is built on first use and keeps
    the token in its in-memory cache, refreshing it near expiry.
    """
    def __init__(self, creds: AppCredentials):
        self.creds = creds
        self._lock = threading.Lock()
        self._app: Optional[msal.ConfidentialClientApplication] = None

    def _client(self) -> msal.ConfidentialClientApplication:
        if self._app is None:
            self._app = msal.ConfidentialClientApplication(
                client_id=self.creds.client_id,
                client_credential=self.creds.client_secret,
                authority=build_authority(self.creds.tenant_id),
            )
        return self._app

    def __call__(self) -> str:
        with self._lock:
            try:
                res = self._client().acquire_token_for_client(scopes=SCOPES)
            except requests.exceptions.RequestException as ex:
                raise AuthNetworkError(str(ex)) from ex
            except ValueError as ex:
                # msal validates the authority while building the app
                raise InvalidTenantId(str(ex)) from ex
        token = res.get("access_token")
        if not token:
            raise _map_msal_error(res.get("error_description", ""))
        return token


def token_provider(creds: dict) -> Callable[[], str]:
    provider = TokenProvider(AppCredentials.from_dict(creds))
    log.info("auth: tenant=%s client=%s... (app-only)", provider.creds.tenant_id, provider.creds.client_id[:6])
    return provider
