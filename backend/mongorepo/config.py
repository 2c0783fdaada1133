"""Configuration management using Pydantic Settings."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from functools import lru_cache
from pathlib import Path
from typing import Any, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import InvalidArgumentError
from .pointers import Pointer, prepare_pointers

logger = logging.getLogger(__name__)

IdentityAccessor = Callable[[Mapping[str, Any]], Any]

DEFAULT_ID_FIELD = "_id"
DEFAULT_DESCRIPTIVE_NAME = "Domain model"


class RepositoryOptions(BaseModel):
    """Options controlling a single repository."""

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    collection: str
    id: Union[str, IdentityAccessor] = DEFAULT_ID_FIELD
    descriptive_name: str = DEFAULT_DESCRIPTIVE_NAME
    timestamp_on_create: tuple[Pointer, ...] = ()
    timestamp_on_update: tuple[Pointer, ...] = ()

    @field_validator("collection", "descriptive_name")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str | IdentityAccessor) -> str | IdentityAccessor:
        if isinstance(v, str) and not v.strip():
            raise ValueError("id property name must not be empty")
        return v

    @field_validator("timestamp_on_create", "timestamp_on_update", mode="before")
    @classmethod
    def resolve_pointers(cls, v: Any) -> tuple[Pointer, ...]:
        return prepare_pointers(v)

    @classmethod
    def from_options(cls, options: RepositoryOptions | Mapping[str, Any]) -> RepositoryOptions:
        """Build options, reporting any problem as InvalidArgumentError."""
        if isinstance(options, RepositoryOptions):
            return options
        if not isinstance(options, Mapping):
            raise InvalidArgumentError(
                f"options must be a mapping or RepositoryOptions: {options!r}"
            )
        try:
            return cls(**options)
        except PydanticValidationError as e:
            for error in e.errors():
                original = (error.get("ctx") or {}).get("error")
                if isinstance(original, InvalidArgumentError):
                    raise original from e
            raise InvalidArgumentError(f"Invalid repository options: {e}") from e


class Settings(BaseSettings):
    """Connection and logging settings loaded from the environment."""

    mongodb_url: str = "mongodb://127.0.0.1:27017"
    mongodb_database: str = "test"
    environment: str = Field(
        default="development",
        description="Environment: development, staging, production",
    )
    log_level: str = "INFO"
    logfire_token: str = ""

    # Optional YAML file with a `repositories:` section
    config_path: Path | None = None
    repositories: dict[str, RepositoryOptions] = Field(default_factory=dict)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def repository_options(self, name: str) -> RepositoryOptions:
        try:
            return self.repositories[name]
        except KeyError:
            raise InvalidArgumentError(f"No repository configured with name: {name}") from None

    def load_yaml_config(self) -> None:
        """Load repository options from the YAML file at ``config_path``."""
        if self.config_path is None:
            return

        config_path = self.config_path
        if not config_path.exists():
            logger.warning(f"Config file not found: {config_path}. Using defaults.")
            return

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML config: {e}")
            raise

        if not yaml_config:
            logger.warning(f"Empty config file: {config_path}")
            return

        repositories = yaml_config.get("repositories") or {}
        for name, options in repositories.items():
            self.repositories[name] = RepositoryOptions.from_options(options)

        logger.info(
            f"Loaded {len(repositories)} repository definition(s) from {config_path}"
        )


@lru_cache()
def get_settings() -> Settings:
    """Get singleton Settings instance."""
    settings = Settings()
    settings.load_yaml_config()
    return settings
