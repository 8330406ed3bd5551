"""Configuration loader.

Reads environment variables and `.env` to configure the service.
"""

from __future__ import annotations

import os
import re
from typing import Dict, List, Optional
from pathlib import Path

from dotenv import load_dotenv

# Load variables from a .env file if present (project root).
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env")


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes")


def _parse_int(value: Optional[str], default: int) -> int:
    try:
        return int(value, 0) if value is not None else default
    except ValueError:
        return default


def _parse_float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value is not None else default
    except ValueError:
        return default


def _get_list(name: str, default: List[str]) -> List[str]:
    raw = _get_env(name, "") or ""
    items = [s.strip() for s in raw.split(",") if s.strip()]
    return items or list(default)


# ---- Store endpoints ---------------------------------------------------------

# Store homepage; also the base for product page links in notifications.
HOME_URL: str = _get_env("HOME_URL", "https://store.ui.com/us/en")

# Next.js data route. {build_id} is scraped from the homepage each cycle.
DATA_URL_TEMPLATE: str = _get_env(
    "DATA_URL_TEMPLATE",
    "https://store.ui.com/_next/data/{build_id}/us/en/{path}.json",
)

# The build id is the first capture group.
BUILD_ID_PATTERN: str = _get_env(
    "BUILD_ID_PATTERN",
    r"https://assets\.ecomm\.ui\.com/_next/static/([a-zA-Z0-9]+)/_buildManifest\.js",
)

# Tracked products, comma-separated paths relative to the locale root.
PRODUCT_PATHS: List[str] = _get_list(
    "PRODUCT_PATHS",
    [
        "category/all-power-tech/collections/power-tech/products/usp-pdu-pro",
        "category/network-storage/collections/unifi-new-integrations-network-storage/products/unas-pro",
    ],
)

# Status value that triggers a notification.
TARGET_STATUS: str = _get_env("TARGET_STATUS", "Available")

# ---- HTTP --------------------------------------------------------------------

USER_AGENT: str = _get_env(
    "USER_AGENT",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
)
ACCEPT_LANGUAGE: str = _get_env("ACCEPT_LANGUAGE", "en-US,en;q=0.6")

REQUEST_HEADERS: Dict[str, str] = {
    "accept": "*/*",
    "accept-language": ACCEPT_LANGUAGE,
    "user-agent": USER_AGENT,
    "priority": "u=0, i",
}

REQUEST_TIMEOUT_SECONDS: float = _parse_float(_get_env("REQUEST_TIMEOUT_SECONDS"), 20.0)

# Attempts per HTTP call. 1 means the next cycle is the only retry.
HTTP_MAX_ATTEMPTS: int = max(1, _parse_int(_get_env("HTTP_MAX_ATTEMPTS"), 1))

# ---- Loop timing -------------------------------------------------------------

CHECK_INTERVAL_SECONDS: float = _parse_float(_get_env("CHECK_INTERVAL_SECONDS"), 30.0)

# Wait after a cycle that recorded any error.
RETRY_BACKOFF_SECONDS: float = _parse_float(_get_env("RETRY_BACKOFF_SECONDS"), 30.0)

# ---- Persistence -------------------------------------------------------------

SQLITE_DB_PATH: str = _get_env("SQLITE_DB_PATH", "monitor.db")

# Collection is dumped here after each cycle with inserts. Empty disables it.
EXPORT_PATH: str = _get_env("EXPORT_PATH", "products.json") or ""

PRODUCTS_COLLECTION: str = "products"

# ---- Logging -----------------------------------------------------------------

# Logging level: DEBUG, INFO, WARNING, ERROR.
LOG_LEVEL: str = _get_env("LOG_LEVEL", "INFO")

# ---- Discord -----------------------------------------------------------------

# Discord webhook URL. Required for sending notifications.
DISCORD_WEBHOOK_URL: Optional[str] = _get_env("DISCORD_WEBHOOK_URL")

EMBED_COLOR: int = _parse_int(_get_env("EMBED_COLOR"), 0x0000FF)
EMBED_FOOTER_TEXT: str = _get_env("EMBED_FOOTER_TEXT", "Unifi Store Monitor")
EMBED_FOOTER_ICON_URL: str = _get_env(
    "EMBED_FOOTER_ICON_URL",
    "https://tse3.mm.bing.net/th?id=OIP.RadjPrUUrLwqfVTEI5YqmwHaIV&pid=Api&P=0&w=300&h=300",
)

# ---- Email notifications -----------------------------------------------------

EMAIL_ENABLED: bool = _parse_bool(_get_env("EMAIL_ENABLED", "false"), False)
EMAIL_SMTP_HOST: str = _get_env("EMAIL_SMTP_HOST", "smtp.gmail.com")
EMAIL_SMTP_PORT: int = _parse_int(_get_env("EMAIL_SMTP_PORT"), 587)  # 587 (TLS) or 465 (SSL)
EMAIL_USE_TLS: bool = _parse_bool(_get_env("EMAIL_USE_TLS", "true"), True)  # if False and port=465, SSL will be used
EMAIL_USERNAME: Optional[str] = _get_env("EMAIL_USERNAME")
EMAIL_PASSWORD: Optional[str] = _get_env("EMAIL_PASSWORD")  # app password if using Gmail
EMAIL_FROM: Optional[str] = _get_env("EMAIL_FROM")
EMAIL_TO: List[str] = _get_list("EMAIL_TO", [])  # comma-separated
EMAIL_SUBJECT_PREFIX: str = _get_env("EMAIL_SUBJECT_PREFIX", "[UniFi]")

# ---- Validation --------------------------------------------------------------

def validate() -> None:
    """Validate required configuration parameters."""
    if not DISCORD_WEBHOOK_URL:
        raise RuntimeError(
            "DISCORD_WEBHOOK_URL must be set. See .env.example for details."
        )
    if not PRODUCT_PATHS:
        raise RuntimeError("PRODUCT_PATHS must list at least one product path.")
    if "{build_id}" not in DATA_URL_TEMPLATE or "{path}" not in DATA_URL_TEMPLATE:
        raise RuntimeError("DATA_URL_TEMPLATE must contain {build_id} and {path}.")
    try:
        groups = re.compile(BUILD_ID_PATTERN).groups
    except re.error as e:
        raise RuntimeError(f"BUILD_ID_PATTERN is not a valid regex: {e}") from e
    if groups < 1:
        raise RuntimeError("BUILD_ID_PATTERN needs a capture group for the build id.")
    if EMAIL_ENABLED and not (EMAIL_USERNAME and EMAIL_PASSWORD and EMAIL_TO):
        raise RuntimeError(
            "EMAIL_ENABLED is set but EMAIL_USERNAME, EMAIL_PASSWORD or EMAIL_TO is missing."
        )


__all__ = [
    # Store
    "HOME_URL",
    "DATA_URL_TEMPLATE",
    "BUILD_ID_PATTERN",
    "PRODUCT_PATHS",
    "TARGET_STATUS",
    # HTTP
    "USER_AGENT",
    "ACCEPT_LANGUAGE",
    "REQUEST_HEADERS",
    "REQUEST_TIMEOUT_SECONDS",
    "HTTP_MAX_ATTEMPTS",
    # Loop
    "CHECK_INTERVAL_SECONDS",
    "RETRY_BACKOFF_SECONDS",
    # Persistence
    "SQLITE_DB_PATH",
    "EXPORT_PATH",
    "PRODUCTS_COLLECTION",
    "LOG_LEVEL",
    # Discord
    "DISCORD_WEBHOOK_URL",
    "EMBED_COLOR",
    "EMBED_FOOTER_TEXT",
    "EMBED_FOOTER_ICON_URL",
    # Email
    "EMAIL_ENABLED", "EMAIL_SMTP_HOST", "EMAIL_SMTP_PORT", "EMAIL_USE_TLS",
    "EMAIL_USERNAME", "EMAIL_PASSWORD", "EMAIL_FROM", "EMAIL_TO", "EMAIL_SUBJECT_PREFIX",
    # Helpers
    "validate",
]
