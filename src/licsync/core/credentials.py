from __future__ import annotations
import secrets
import string
from typing import Optional

_SYMBOLS = "!@#$%^&*-_=+?"
_ALPHABET = string.ascii_letters + string.digits + _SYMBOLS


def generate_password(length: int = 16) -> str:
    """Random password meeting Entra complexity (upper, lower, digit, symbol)."""
    length = max(8, int(length))
    required = [
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.digits),
        secrets.choice(_SYMBOLS),
    ]
    rest = [secrets.choice(_ALPHABET) for _ in range(length - len(required))]
    chars = required + rest
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


class CredentialPolicy:
    """
    Hands out one credential per principal.

    unique_per_user=False uses a single run-level password, created once here;
    a password supplied in the source row always wins.
    """
    def __init__(self, *, unique_per_user: bool = True, length: int = 16, shared: Optional[str] = None):
        self.unique_per_user = unique_per_user
        self.length = length
        self._shared = None if unique_per_user else (shared or generate_password(length))

    def credential_for(self, supplied: str = "") -> str:
        if supplied:
            return supplied
        if self._shared is not None:
            return self._shared
        return generate_password(self.length)
