from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # ─────────── APP ───────────
    app_name: str = "Direct Grants"
    environment: str = "dev"
    log_level: str = "INFO"
    port: int = 3010

    # ─────────── API ───────────
    api_prefix: str = ""
    request_id_header: str = "X-Request-Id"

    # ─────────── STORAGE ───────────
    # volatile by default, like the grant history has always been
    database_url: str = "sqlite+pysqlite:///:memory:"

    # ─────────── CHAIN ───────────
    base_rpc: str = "https://mainnet.base.org"
    chain_id: int = 8453
    network_name: str = "Base"
    chain_request_timeout_seconds: int = 60
    treasury_address: str = "0xccD7200024A8B5708d381168ec2dB0DC587af83F"
    treasury_private_key: Optional[str] = None
    explorer_tx_url: str = "https://basescan.org/tx/"

    # ─────────── GRANTS ───────────
    fee_percent: int = 5

    # ─────────── WHITELIST ───────────
    whitelist_url: str = "https://www.owockibot.xyz/api/whitelist"
    whitelist_cache_ttl_seconds: int = 300  # 5 minutes
    whitelist_address_field: str = "address"

    @field_validator("treasury_private_key")
    @classmethod
    def _strip_key(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("fee_percent")
    @classmethod
    def _fee_in_range(cls, v: int) -> int:
        if not 0 <= v < 100:
            raise ValueError("fee_percent must be in [0, 100)")
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
