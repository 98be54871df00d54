"""Configuration management using Pydantic Settings."""

import logging
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _normalise_log_level(value: str) -> str:
    level = value.upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"Unknown log level: {value}")
    return level


class MongoConfig(BaseModel):
    """MongoDB connection parameters."""

    url: str = "mongodb://localhost:27017"
    database: str = ""
    app_name: str = "docrepo"
    server_selection_timeout_ms: int = 5000
    tz_aware: bool = True  # BSON dates come back as UTC-aware datetimes


class RepositoryConfig(BaseModel):
    """Unit-of-work and query defaults."""

    clear_after_commit: bool = True  # False keeps staged writes after save_changes
    default_page_size: int = 20

    @field_validator("default_page_size")
    @classmethod
    def validate_page_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("default_page_size must be positive")
        return v


class Settings(BaseSettings):
    """Main configuration class."""

    config_file: Path | None = None
    log_level: str = "INFO"
    logfire_token: str = ""

    # Nested configuration sections
    mongo: MongoConfig = Field(default_factory=MongoConfig)
    repository: RepositoryConfig = Field(default_factory=RepositoryConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return _normalise_log_level(v)

    def load_yaml_config(self, config_path: Path | None = None) -> None:
        """Load and merge YAML configuration over the environment values."""
        config_path = config_path or self.config_file
        if config_path is None:
            return

        if not config_path.exists():
            logger.warning(f"Config file not found: {config_path}. Using defaults.")
            return

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)

            if not yaml_config:
                logger.warning(f"Empty config file: {config_path}")
                return

            for section_name in ["mongo", "repository"]:
                if section_name in yaml_config:
                    section = getattr(self, section_name)
                    yaml_section = yaml_config[section_name]

                    section_dict = section.model_dump()
                    section_dict.update(yaml_section)

                    new_section = section.__class__(**section_dict)
                    setattr(self, section_name, new_section)

            if "log_level" in yaml_config:
                self.log_level = _normalise_log_level(str(yaml_config["log_level"]))
            if "logfire_token" in yaml_config:
                self.logfire_token = str(yaml_config["logfire_token"])

            logger.info(f"Loaded configuration from {config_path}")

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML config: {e}")
            raise

    def masked(self) -> dict:
        """Settings as a dict with secrets hidden, for display."""
        from docrepo.connection import sanitize_url

        data = self.model_dump(mode="json")
        data["mongo"]["url"] = sanitize_url(self.mongo.url)
        if self.logfire_token:
            data["logfire_token"] = "***"
        return data


@lru_cache()
def get_settings() -> Settings:
    """Get singleton Settings instance."""
    settings = Settings()
    settings.load_yaml_config()
    return settings
