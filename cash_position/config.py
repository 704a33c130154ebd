"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class CashPositionConfig(BaseSettings):
    """Cash position engine configuration"""

    # Storage collaborator
    database_url: str = "sqlite:///cash_position.db"

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Calendar used to resolve "today" for overdue classification
    timezone: str = "America/Sao_Paulo"

    # Business rules configuration
    match_tolerance: str = "0.01"  # Audit findings match when |A - B| < tolerance
    strict_snapshots: bool = False  # Raise instead of excluding inconsistent entries

    # Feature flags
    enable_audit_logging: bool = True

    class Config:
        env_prefix = "CASHPOS_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = CashPositionConfig()


def get_config() -> CashPositionConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> CashPositionConfig:
    """Reload configuration from environment"""
    global config
    config = CashPositionConfig()
    return config
