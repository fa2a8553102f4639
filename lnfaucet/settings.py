import os
from enum import Enum
from pathlib import Path
from pydantic import (
    Field,
    FilePath,
    HttpUrl,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources.providers.dotenv import DotEnvSettingsSource
from typing import Any, Dict, Optional

VERSION = '0.1.0'
ATOMS_PER_COIN = 10**8
DEFAULT_MIN_CHANNEL_SIZE = 50000
DEFAULT_MAX_CHANNEL_SIZE = 1 << 30


class Environment(str, Enum):
    PROD = 'production'
    DEV = 'development'


class LogLevel(str, Enum):
    DEBUG = 'DEBUG'
    INFO = 'INFO'
    WARNING = 'WARNING'
    ERROR = 'ERROR'
    CRITICAL = 'CRITICAL'


class FaucetBaseSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore'
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings
    ):
        # peek at the base .env for the ENVIRONMENT key to pick the dotenv file
        base_path = Path(".env")
        if base_path.is_file():
            base_vars = DotEnvSettingsSource._static_read_env_file(
                base_path,
                encoding="utf-8",
                case_sensitive=False,
                ignore_empty=False,
                parse_none_str=None,
            )
        else:
            base_vars = {}

        env = base_vars.get("environment", Environment.PROD.value)
        chosen = ".env.dev" if env.upper() in (Environment.DEV.name, Environment.DEV.value.upper()) else ".env"

        custom_dotenv = DotEnvSettingsSource(
            settings_cls=cls,
            env_file=chosen,
            env_file_encoding="utf-8",
        )

        def filtered_dotenv() -> Dict[str, Any]:
            data = custom_dotenv()
            # an empty value in the dotenv file means "use the default"
            return {k: v for k, v in data.items() if v != ""}

        return (
            init_settings,
            filtered_dotenv,
            env_settings,
            file_secret_settings,
        )


class FaucetSettings(FaucetBaseSettings):
    log_level: LogLevel = LogLevel.INFO
    environment: Environment = Environment.PROD

    @field_validator('environment', mode='before')
    def validate_env(cls, value):
        if isinstance(value, Environment):
            return value

        # accept "development", "dev", "PROD", etc.
        if isinstance(value, str):
            for env in Environment:
                if value.lower() == env.value or value.upper() == env.name:
                    return env
            raise ValueError(f"Invalid env: {value}")

        raise ValueError(f"Environment must be a str or Environment enum, got {value!r}")


class LnBackendSettings(FaucetBaseSettings):
    rest_host: HttpUrl = Field(default='https://localhost:8080')
    permissions_file_path: Optional[FilePath] = Field(default=None)
    cert_file_path: Optional[FilePath] = Field(default=None)

    @field_validator("permissions_file_path", "cert_file_path", mode="before")
    def _expand_user_path(cls, v: Optional[str]) -> Optional[str]:
        if isinstance(v, str):
            return os.path.expanduser(v)
        return v

    @field_serializer("rest_host", mode="plain")
    def _ser_rest_host(self, v: HttpUrl, info) -> str:
        return v.unicode_string()

    @field_serializer("permissions_file_path", "cert_file_path", mode="plain")
    def _ser_path(self, v: Optional[Path], info) -> Optional[str]:
        return None if v is None else v.as_posix()


class PolicySettings(FaucetBaseSettings):
    """
    funding and sweeping policy, read once at startup and never mutated
    afterwards. channel sizes are in atoms
    """
    model_config = SettingsConfigDict(frozen=True)

    min_channel_size: int = Field(default=DEFAULT_MIN_CHANNEL_SIZE)
    max_channel_size: int = Field(default=DEFAULT_MAX_CHANNEL_SIZE)
    zombie_age_hours: int = Field(default=48)
    sweep_interval_minutes: int = Field(default=60)
    num_confs: int = Field(default=3)

    @field_validator(
        'min_channel_size',
        'max_channel_size',
        'zombie_age_hours',
        'sweep_interval_minutes',
        'num_confs')
    def validate_greater_than_zero(cls, v: int) -> int:
        if v > 0:
            return v
        else:
            raise ValueError(f'{v} must be greater than 0')

    @model_validator(mode='after')
    def check_channel_bounds(self):
        if self.min_channel_size > self.max_channel_size:
            raise ValueError(
                f'min_channel_size ({self.min_channel_size}) must not exceed '
                f'max_channel_size ({self.max_channel_size})')
        return self


class ServerSettings(FaucetBaseSettings):
    bind_host: str = Field(default='0.0.0.0')
    bind_port: int = Field(default=8000)
    network: str = Field(default='testnet')

    @field_validator('bind_port')
    def validate_port(cls, v: int) -> int:
        if not (1 <= v <= 65_535):
            raise ValueError("port must be 1-65535")
        return v


class Settings(
        FaucetSettings,
        LnBackendSettings,
        PolicySettings,
        ServerSettings,
        FaucetBaseSettings,
        ):
    version: str = Field(default=VERSION)
