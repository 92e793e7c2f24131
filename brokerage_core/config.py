"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class BrokerageConfig(BaseSettings):
    """Brokerage ledger configuration"""

    # Storage configuration
    storage_backend: str = "sqlite"  # sqlite or memory
    sqlite_path: str = "brokerage.db"

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 3001
    profile_header: str = "profile_id"  # Header carrying the resolved caller id

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Business rules configuration
    deposit_cap_ratio: str = "0.25"  # Share of unpaid job total a client may deposit
    best_clients_default_limit: int = 2

    # Feature flags
    enable_audit_logging: bool = True
    seed_demo_data: bool = False

    class Config:
        env_prefix = "BROKERAGE_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = BrokerageConfig()


def get_config() -> BrokerageConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> BrokerageConfig:
    """Reload configuration from environment"""
    global config
    config = BrokerageConfig()
    return config
