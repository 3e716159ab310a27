"""Configuration read from AUTHPORT_* environment variables."""

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from authport.core.crypto import (
    KdfParams,
    DEFAULT_MEMORY_COST,
    DEFAULT_TIME_COST,
    DEFAULT_PARALLELISM,
    MAX_MEMORY_COST,
    MAX_TIME_COST,
    MAX_PARALLELISM,
)
from authport.core.errors import ConfigError
from authport.core.passphrase import DEFAULT_PASSPHRASE_ENV

ENV_PREFIX = "AUTHPORT_"


def _default_config_dir() -> Path:
    return Path.home() / ".config" / "authport"


class Settings(BaseSettings):
    """
    Every field can be set with the prefixed variable, e.g.
    AUTHPORT_TOKEN_STORE=file or AUTHPORT_KDF_MEMORY_COST=65536.
    """

    # Locations
    config_dir: Path = Field(default_factory=_default_config_dir)
    profiles_path: Optional[Path] = None
    tokens_path: Optional[Path] = None

    # Credential backend
    token_store: Literal["keyring", "file"] = "keyring"
    keyring_service: str = "authport"

    # Passphrase / KDF cost used for new exports
    passphrase_env: str = DEFAULT_PASSPHRASE_ENV
    kdf_memory_cost: int = Field(default=DEFAULT_MEMORY_COST, ge=8, le=MAX_MEMORY_COST)
    kdf_time_cost: int = Field(default=DEFAULT_TIME_COST, ge=1, le=MAX_TIME_COST)
    kdf_parallelism: int = Field(default=DEFAULT_PARALLELISM, ge=1, le=MAX_PARALLELISM)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, env_ignore_empty=True)

    @field_validator("token_store", mode="before")
    @classmethod
    def _normalize_store(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_level(cls, value):
        return value.strip().upper() if isinstance(value, str) else value

    @model_validator(mode="after")
    def _derive_paths(self) -> "Settings":
        self.config_dir = self.config_dir.expanduser()
        if self.profiles_path is None:
            self.profiles_path = self.config_dir / "profiles.json"
        if self.tokens_path is None:
            self.tokens_path = self.config_dir / "tokens.json"
        if self.kdf_memory_cost < 8 * self.kdf_parallelism:
            raise ValueError("kdf_memory_cost must be at least 8 KiB per lane of kdf_parallelism")
        return self

    @classmethod
    def from_env(cls, config_dir: Optional[str] = None) -> "Settings":
        """
        Build settings from the environment; an explicit config_dir (the
        --config-dir flag) wins over AUTHPORT_CONFIG_DIR.
        """
        overrides = {"config_dir": config_dir} if config_dir else {}
        try:
            return cls(**overrides)
        except ValidationError as exc:
            problems = "; ".join(
                f"{ENV_PREFIX}{str(err['loc'][0]).upper()}: {err['msg']}" if err["loc"] else err["msg"]
                for err in exc.errors()
            )
            raise ConfigError(f"invalid configuration: {problems}") from None

    def kdf_params(self) -> KdfParams:
        return KdfParams(
            memory_cost=self.kdf_memory_cost,
            time_cost=self.kdf_time_cost,
            parallelism=self.kdf_parallelism,
        )
