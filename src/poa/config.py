"""poa.config — Runtime settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str) -> list[str]:
    raw = os.environ.get(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "INFO"
    store: str = "memory"
    signing_key: Optional[str] = None
    api_key: Optional[str] = None
    pass_threshold: int = 60
    attestation_ttl_days: int = 30
    proof_cache_size: int = 1000
    allowed_origins: list[str] = field(default_factory=list)
    ratelimit_enabled: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            host=os.environ.get("POA_HOST", "0.0.0.0"),
            port=int(os.environ.get("POA_PORT", "3001")),
            log_level=os.environ.get("POA_LOG_LEVEL", "INFO"),
            store=os.environ.get("POA_STORE", "memory"),
            signing_key=os.environ.get("POA_SIGNING_KEY") or None,
            api_key=os.environ.get("POA_API_KEY") or None,
            pass_threshold=int(os.environ.get("POA_PASS_THRESHOLD", "60")),
            attestation_ttl_days=int(os.environ.get("POA_ATTESTATION_TTL_DAYS", "30")),
            proof_cache_size=int(os.environ.get("POA_PROOF_CACHE_SIZE", "1000")),
            allowed_origins=_env_list("ALLOWED_ORIGINS"),
            ratelimit_enabled=_env_bool("RATELIMIT_ENABLED", True),
        )
