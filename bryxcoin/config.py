"""
Configuration Management Module

Provides centralized configuration using pydantic-settings. Values come from
BRYXCOIN_* environment variables, an optional .env file and the deployment
TOML file (/etc/bryxcoin/bryxcoin.toml by default), in that order of priority.
"""

import os
from typing import Optional, Tuple, Type

from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    TomlConfigSettingsSource,
)


DEFAULT_CONFIG_FILE = "/etc/bryxcoin/bryxcoin.toml"
DEFAULT_MINT_ADDRESS = "0" * 64


class BryxcoinConfig(BaseSettings):
    """Bryxcoin ledger service configuration"""
    
    # API configuration
    host: str = "0.0.0.0"
    port: int = 8090
    
    # Ledger repository configuration
    ledger_repo: str = ""
    ledger_dir: str = "ledger"  # Relative to the process working directory
    remote_name: str = "origin"
    branch: str = "master"
    public_key: Optional[str] = None
    private_key: Optional[str] = None
    git_timeout_seconds: Optional[float] = None  # None waits indefinitely
    
    # Commit identity
    committer_name: str = "Bryxcoin Committer"
    committer_email: str = "ledger@bryxcoin.org"
    
    # Business rules
    mint_address: str = DEFAULT_MINT_ADDRESS
    
    # Account directory
    directory_db_path: str = "bryxcoin_accounts.db"
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    
    class Config:
        env_prefix = "BRYXCOIN_"
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"
    
    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        toml_file = os.environ.get("BRYXCOIN_CONFIG_FILE", DEFAULT_CONFIG_FILE)
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            file_secret_settings,
        )


# Global configuration instance
config = BryxcoinConfig()


def get_config() -> BryxcoinConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> BryxcoinConfig:
    """Reload configuration from environment and config file"""
    global config
    config = BryxcoinConfig()
    return config
