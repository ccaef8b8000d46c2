"""
Application configuration management using Pydantic Settings.

All runtime knobs (chain depth, history size, persistence backend, API submit
mode) are read from RUNTIME_* environment variables or a local .env file.
"""
import logging
from typing import Literal
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from dotenv import load_dotenv

# Load .env first
load_dotenv()

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Runtime service settings"""

    # -------------------------
    # APPLICATION METADATA & RUNTIME
    # -------------------------
    app_name: str = "UI JSON Preview Runtime"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_to_file: bool = False
    log_directory: str = "logs"
    cors_origins: list[str] = ["*"]

    # -------------------------
    # INTERPRETER
    # -------------------------
    max_action_chain_depth: int = 50
    history_limit: int = 100
    document_cache_ttl: int = 300
    document_cache_max_entries: int = 256

    # -------------------------
    # PERSISTENCE
    # -------------------------
    persistence_backend: Literal["memory", "filesystem"] = "memory"
    storage_path: str = "./app_instances"
    persistence_debounce_seconds: float = 1.0

    # -------------------------
    # API SUBMIT
    # -------------------------
    api_submit_mode: Literal["http", "simulated"] = "http"
    api_submit_timeout: float = 10.0
    api_simulated_success_rate: float = 0.8
    api_simulated_delay_seconds: float = 1.0

    # -------------------------
    # VALIDATORS
    # -------------------------
    @field_validator('log_level', mode='before')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return str(v).upper()

    @field_validator('environment', mode='before')
    @classmethod
    def validate_environment(cls, v: str) -> str:
        valid_envs = ["development", "staging", "production"]
        if v not in valid_envs:
            logger.warning(f"Invalid environment '{v}', defaulting to 'development'")
            return "development"
        return v

    @field_validator('api_simulated_success_rate')
    @classmethod
    def validate_success_rate(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("api_simulated_success_rate must be between 0 and 1")
        return v

    @field_validator('max_action_chain_depth', 'history_limit', 'document_cache_max_entries')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
        env_prefix="RUNTIME_",
        validate_default=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    logger.info("Initializing settings...")
    return Settings()


settings = get_settings()
