from functools import lru_cache
import json

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SEED_IPS = (
    "173.212.203.145",
    "173.212.220.65",
    "161.97.97.41",
    "192.190.136.36",
    "192.190.136.37",
    "192.190.136.38",
    "192.190.136.28",
    "192.190.136.29",
    "207.244.255.1",
)


def _split_list(value: str, fallback: list[str]) -> list[str]:
    value = (value or "").strip()
    if not value:
        return list(fallback)
    if value.startswith("["):
        try:
            parsed = json.loads(value)
            if isinstance(parsed, list):
                return [str(item).strip() for item in parsed if str(item).strip()]
        except json.JSONDecodeError:
            pass
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PNODE_", env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "pNode Fleet Monitor"
    app_version: str = "0.1.0"
    api_v1_prefix: str = "/api/v1"
    log_level: str = "INFO"
    log_json: bool = True
    host: str = "0.0.0.0"
    port: int = 3001
    cors_origins: str = "http://localhost:8080"

    seed_ips: str = ",".join(DEFAULT_SEED_IPS)
    rpc_port: int = 6000
    rpc_path: str = "/rpc"
    source_timeout_sec: float = 10.0
    refresh_interval_sec: int = 30
    poll_deadline_sec: float = 60.0

    geo_lookup_enabled: bool = False
    geo_api_url: str = "http://ip-api.com/json"
    latency_probe_enabled: bool = False
    latency_probe_timeout_sec: float = 2.0
    credits_enabled: bool = False
    credits_url: str = "https://podcredits.xandeum.network/api/pods-credits"

    @field_validator("cors_origins", "seed_ips", mode="before")
    @classmethod
    def join_list_values(cls, value: str | list[str] | None) -> str:
        if value is None:
            return ""
        if isinstance(value, list):
            return ",".join(str(item).strip() for item in value if str(item).strip())
        return str(value).strip()

    @property
    def cors_origins_list(self) -> list[str]:
        return _split_list(self.cors_origins, ["http://localhost:8080"])

    @property
    def seed_ips_list(self) -> list[str]:
        return _split_list(self.seed_ips, list(DEFAULT_SEED_IPS))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
