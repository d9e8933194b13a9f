"""Route metrics configuration settings."""

from pydantic import BaseModel, ConfigDict, Field


class MetricsSettings(BaseModel):
    """Traffic metrics collection settings."""

    model_config = ConfigDict(validate_assignment=True)

    enabled: bool = Field(
        default=True,
        description="Record per-route traffic metrics",
    )

    slow_request_threshold_ms: float = Field(
        default=1000.0,
        gt=0,
        description="Requests strictly slower than this count as slow",
    )
