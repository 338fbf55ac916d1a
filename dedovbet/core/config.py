from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "DedovBet API"
    users_file: str = "users.json"
    log_level: str = "INFO"

    starting_balance: int = 1000
    deposit_min: int = 10
    deposit_max: int = 9999
    withdraw_min: int = 25
    withdraw_max: int = 5000
    # Argon2id cost for new password hashes.
    argon2_iterations: int = 2
    argon2_memory_kib: int = 64 * 1024
    argon2_lanes: int = 2

    # Client side: where a LedgerSession finds the store of record.
    api_base_url: str = "http://localhost:3000"
    request_timeout: float = 15.0

    host: str = "127.0.0.1"
    port: int = 3000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="DEDOVBET_",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
