import json, os, pathlib

from dotenv import find_dotenv, load_dotenv

DEFAULT_APPSETTINGS = "config/appsettings.json"


class ConfigError(Exception):
    """Raised when runtime configuration cannot be resolved."""


def _settings_path() -> pathlib.Path:
    return pathlib.Path(os.getenv("LICSYNC_APPSETTINGS") or DEFAULT_APPSETTINGS)


def load_appsettings() -> dict:
    p = _settings_path()
    if not p.exists():
        return {}
    try:
        text = p.read_text(encoding="utf-8").strip()
        if not text:
            return {}
        data = json.loads(text)
    except (OSError, ValueError):
        # malformed JSON → fall back to defaults
        return {}
    return data if isinstance(data, dict) else {}


def _as_bool(v, default: bool) -> bool:
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() not in {"0", "false", "no", "off", ""}


def get_http_config():
    cfg = load_appsettings().get("http", {})
    return {
        "timeout_seconds": int(cfg.get("timeout_seconds", 30)),
        "max_retries": int(cfg.get("max_retries", 4)),
        "max_concurrency": int(cfg.get("max_concurrency", 6)),
    }


def get_retry_config():
    cfg = load_appsettings().get("retry", {})
    return {
        "attempts": max(1, int(cfg.get("attempts", 3))),
        "delay_seconds": float(cfg.get("delay_seconds", 5)),
    }


def get_run_config():
    cfg = load_appsettings().get("run", {})
    return {
        "max_workers": max(1, int(cfg.get("max_workers", 1))),
    }


def get_provisioning_config():
    cfg = load_appsettings().get("provisioning", {})
    return {
        "usage_location": str(cfg.get("usage_location", "") or "").strip().upper(),
        "password_length": max(8, int(cfg.get("password_length", 16))),
        "unique_password_per_user": _as_bool(cfg.get("unique_password_per_user"), True),
        "force_change_password": _as_bool(cfg.get("force_change_password"), True),
    }


def get_credentials() -> dict:
    """Tenant app credentials from the environment (a .env file is honored)."""
    load_dotenv(find_dotenv(usecwd=True) or None, override=False)
    creds = {
        "tenant_id": (os.getenv("LICSYNC_TENANT_ID") or "").strip(),
        "client_id": (os.getenv("LICSYNC_CLIENT_ID") or "").strip(),
        "client_secret": (os.getenv("LICSYNC_CLIENT_SECRET") or "").strip(),
    }
    missing = [f"LICSYNC_{k.upper()}" for k, v in creds.items() if not v]
    if missing:
        raise ConfigError(
            "Missing required environment variables: " + ", ".join(missing)
            + ". Export them or add them to a .env file in the working directory."
        )
    return creds
