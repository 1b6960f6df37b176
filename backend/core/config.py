import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict


def _env_float(name: str, default: float) -> float:
    try:
        v = os.environ.get(name)
        if v is not None and v.strip():
            return max(0.0, float(v.strip()))
    except ValueError:
        pass
    return default


def _env_int(name: str, default: int) -> int:
    try:
        v = os.environ.get(name)
        if v is not None and v.strip():
            return max(0, int(v.strip()))
    except ValueError:
        pass
    return default


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes")


@dataclass
class Settings:
    """Runtime settings loaded from environment variables with safe defaults."""

    app_name: str = "Page Orchestrator"
    env: str = "dev"
    log_level: str = "INFO"
    code_base_path: str = ""
    decisioning_module: str = "personalization.edge_client"
    datastream_id: str = ""
    org_id: str = ""
    edge_domain: str = "edge.adobedc.net"
    edge_base_path: str = "ee"
    edge_timeout_seconds: float = 10.0
    delayed_module: str = "lifecycle.delayed"
    delayed_seconds: float = 3.0
    desktop_min_width: int = 900
    report_proposition_display: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings from environment variables."""
        return cls(
            app_name=os.getenv("APP_NAME", cls.app_name),
            env=os.getenv("ENV", cls.env),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
            code_base_path=os.getenv("CODE_BASE_PATH", cls.code_base_path).rstrip("/"),
            decisioning_module=os.getenv("DECISIONING_MODULE", cls.decisioning_module),
            datastream_id=os.getenv("DATASTREAM_ID", cls.datastream_id),
            org_id=os.getenv("ORG_ID", cls.org_id),
            edge_domain=os.getenv("EDGE_DOMAIN", cls.edge_domain),
            edge_base_path=os.getenv("EDGE_BASE_PATH", cls.edge_base_path),
            edge_timeout_seconds=_env_float("EDGE_TIMEOUT_SECONDS", cls.edge_timeout_seconds),
            delayed_module=os.getenv("DELAYED_MODULE", cls.delayed_module),
            delayed_seconds=_env_float("DELAYED_SECONDS", cls.delayed_seconds),
            desktop_min_width=_env_int("DESKTOP_MIN_WIDTH", cls.desktop_min_width),
            report_proposition_display=_env_flag("REPORT_PROPOSITION_DISPLAY"),
        )

    def decisioning_config(self) -> Dict[str, Any]:
        """Configuration bundle passed to the decisioning client's `configure` command."""
        return {
            "datastreamId": self.datastream_id,
            "orgId": self.org_id,
            "edgeDomain": self.edge_domain,
            "edgeBasePath": self.edge_base_path,
            "timeoutSeconds": self.edge_timeout_seconds,
        }


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings.from_env()
