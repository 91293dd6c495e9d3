import os
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

REQUIRED_VARIABLES = ("SAP_URL", "SAP_USER", "SAP_PASSWORD")


def _split_list(value: Optional[str], default: List[str]) -> List[str]:
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


def sap_host_from_url(sap_url: Optional[str]) -> str:
    """Host (including port) of the configured SAP endpoint."""
    if not sap_url:
        return ""
    parsed = urlparse(sap_url)
    if parsed.scheme and parsed.netloc:
        return parsed.netloc
    # URLs without scheme, e.g. "host:8000" or "host"
    fallback = urlparse(f"http://{sap_url}")
    return fallback.netloc or sap_url


@dataclass(frozen=True)
class AdtSettings:
    sap_url: str
    sap_user: str
    sap_password: str
    sap_client: Optional[str] = None
    sap_language: Optional[str] = None
    timeout: float = 30.0
    host: str = "127.0.0.1"
    port: int = 8000
    allowed_hosts: List[str] = field(default_factory=lambda: ["127.0.0.1"])
    allowed_origins: List[str] = field(default_factory=list)
    log_level: str = "INFO"

    @property
    def sap_host(self) -> str:
        return sap_host_from_url(self.sap_url)

    @property
    def base_url(self) -> str:
        return self.sap_url.rstrip("/")


def load_settings(env: Optional[dict] = None) -> AdtSettings:
    """Build settings from the process environment.

    Values from a ``.env`` file are loaded first when reading the real
    environment. Passing ``env`` skips the dotenv lookup, which is what the
    tests do.
    """
    if env is None:
        load_dotenv()
        env = dict(os.environ)

    missing = [name for name in REQUIRED_VARIABLES if not env.get(name)]
    if missing:
        raise ValueError(f"Missing required environment variables: {', '.join(missing)}")

    return AdtSettings(
        sap_url=env["SAP_URL"],
        sap_user=env["SAP_USER"],
        sap_password=env["SAP_PASSWORD"],
        sap_client=env.get("SAP_CLIENT") or None,
        sap_language=env.get("SAP_LANGUAGE") or None,
        timeout=float(env.get("ADT_TIMEOUT") or 30),
        host=env.get("MCP_HOST") or "127.0.0.1",
        port=int(env.get("PORT") or 8000),
        allowed_hosts=_split_list(env.get("MCP_ALLOWED_HOSTS"), ["127.0.0.1"]),
        allowed_origins=_split_list(env.get("MCP_ALLOWED_ORIGINS"), []),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )
