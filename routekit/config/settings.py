import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from routekit.core.errors import ConfigurationError
from routekit.core.logging import get_logger

from .metrics import MetricsSettings
from .middleware import MiddlewareSettings
from .routes import RouteLoaderSettings
from .server import ServerSettings


__all__ = ["Settings", "ConfigurationError", "get_settings"]


DEFAULT_CONFIG_FILENAMES = ("routekit.toml", ".routekit.toml")


class Settings(BaseSettings):
    """
    Configuration settings for the route management system.

    Settings are loaded from environment variables, .env files, and TOML configuration files.
    Environment variables take precedence over TOML values. The TOML file is
    taken from the explicit path, the CONFIG_FILE variable, or routekit.toml /
    .routekit.toml in the current directory.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    server: ServerSettings = Field(
        default_factory=ServerSettings,
        description="Server configuration settings",
    )

    routes: RouteLoaderSettings = Field(
        default_factory=RouteLoaderSettings,
        description="Route discovery and loading settings",
    )

    middleware: MiddlewareSettings = Field(
        default_factory=MiddlewareSettings,
        description="Default middleware catalogue settings",
    )

    metrics: MetricsSettings = Field(
        default_factory=MetricsSettings,
        description="Per-route traffic metrics settings",
    )

    auto_load: bool = Field(
        default=True,
        description="Discover, load and register routes during initialization",
    )

    @classmethod
    def load_toml_config(cls, toml_path: Path) -> dict[str, Any]:
        """Load configuration from a TOML file."""
        try:
            with toml_path.open("rb") as f:
                return tomllib.load(f)
        except OSError as e:
            raise ConfigurationError(
                f"Cannot read TOML config file {toml_path}: {e}", cause=e
            ) from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(
                f"Invalid TOML syntax in {toml_path}: {e}", cause=e
            ) from e

    @classmethod
    def find_config_file(cls) -> Path | None:
        config_path_env = os.environ.get("CONFIG_FILE")
        if config_path_env:
            return Path(config_path_env)
        for filename in DEFAULT_CONFIG_FILENAMES:
            candidate = Path.cwd() / filename
            if candidate.exists():
                return candidate
        return None

    @classmethod
    def from_config(
        cls,
        config_path: Path | str | None = None,
        **kwargs: Any,
    ) -> "Settings":
        """Create Settings instance from configuration file."""
        if isinstance(config_path, str):
            config_path = Path(config_path)

        if config_path is None:
            config_path = cls.find_config_file()

        config_data: dict[str, Any] = {}
        if config_path and config_path.exists():
            if config_path.suffix.lower() != ".toml":
                raise ConfigurationError(
                    f"Unsupported config file format: {config_path.suffix}. "
                    "Only TOML (.toml) files are supported."
                )
            config_data = cls.load_toml_config(config_path)
            logger = get_logger(__name__)
            logger.info(
                "config_file_loaded",
                path=str(config_path),
                category="config",
            )

        try:
            settings = cls()

            for key, value in config_data.items():
                if not hasattr(settings, key):
                    continue
                current = getattr(settings, key)
                if isinstance(current, BaseModel) and isinstance(value, dict):
                    for nested_key, nested_value in value.items():
                        env_key = f"{key.upper()}__{nested_key.upper()}"
                        if os.getenv(env_key) is None:
                            setattr(current, nested_key, nested_value)
                elif os.getenv(key.upper()) is None:
                    setattr(settings, key, value)

            if kwargs:
                _apply_overrides(settings, kwargs)
        except ValueError as e:
            # pydantic's ValidationError is a ValueError
            raise ConfigurationError(f"Invalid configuration: {e}", cause=e) from e

        return settings


def _apply_overrides(target: Any, overrides: dict[str, Any]) -> None:
    for k, v in overrides.items():
        if (
            isinstance(v, dict)
            and hasattr(target, k)
            and isinstance(getattr(target, k), BaseModel | dict)
        ):
            sub = getattr(target, k)
            if isinstance(sub, BaseModel):
                _apply_overrides(sub, v)
            else:
                sub.update(v)
        else:
            setattr(target, k, v)


def get_settings() -> Settings:
    return Settings.from_config()
