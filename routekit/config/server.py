"""Server configuration settings."""

from pydantic import BaseModel, ConfigDict, Field, field_validator


LOCAL_ENVIRONMENTS = frozenset({"development", "local"})


class ServerSettings(BaseModel):
    """Server and runtime environment settings."""

    model_config = ConfigDict(validate_assignment=True)

    environment: str = Field(
        default="development",
        description="Deployment environment tag (development, local, staging, production)",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    json_logs: bool = Field(
        default=False,
        description="Render logs as JSON instead of the console renderer",
    )

    @field_validator("environment")
    @classmethod
    def normalize_environment(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        upper_v = v.upper()
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if upper_v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper_v

    @property
    def is_local(self) -> bool:
        """True for development/local environments."""
        return self.environment in LOCAL_ENVIRONMENTS
