"""
Configuration for the tic-tac-toe x402 service.

Loads settings from environment variables (and a ``.env`` file).
"""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class Settings(BaseSettings):
    """Service configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    port: int = 3001
    api_prefix: str = "/api"
    log_level: str = "INFO"
    cors_origins: List[str] = ["http://localhost:5173"]

    # Payment requirement
    network: str = "base-sepolia"  # "base-sepolia" or "base"
    pay_to_address: str = ZERO_ADDRESS
    price_usd: str = "$0.01"
    asset_address: Optional[str] = None  # defaults to USDC on the selected network
    resource_description: str = "Tic-tac-toe game session"
    max_timeout_seconds: int = 300

    # Facilitator
    facilitator_url: str = "https://x402.org/facilitator"
    facilitator_timeout_seconds: float = 10.0
    facilitator_check_supported: bool = True
    verify_signature_locally: bool = True

    # Sessions
    session_ttl_seconds: int = 300
    sweep_interval_seconds: float = 60.0
    optimal_play_probability: float = 0.7


@lru_cache
def get_settings() -> Settings:
    return Settings()
