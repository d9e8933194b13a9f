"""Default middleware configuration settings."""

from pydantic import BaseModel, ConfigDict, Field


class CORSSettings(BaseModel):
    """Cross-origin policy settings."""

    origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Allowed origins; '*' reflects any request origin",
    )
    credentials: bool = Field(default=True, description="Allow credentials")
    methods: list[str] = Field(
        default_factory=lambda: ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        description="Allowed HTTP methods",
    )
    headers: list[str] = Field(
        default_factory=lambda: ["Content-Type", "Authorization", "X-Requested-With"],
        description="Allowed request headers",
    )
    max_age: int = Field(default=600, description="Preflight cache lifetime in seconds")


class CompressionSettings(BaseModel):
    """Response compression settings."""

    minimum_size: int = Field(
        default=1024, ge=0, description="Responses smaller than this are sent as-is"
    )
    level: int = Field(default=6, ge=1, le=9, description="gzip compression level")
    bypass_header: str = Field(
        default="x-no-compression",
        description="Request header that disables compression when present",
    )


class RateLimitSettings(BaseModel):
    """Fixed-window rate limit settings."""

    window_seconds: float = Field(
        default=15 * 60, gt=0, description="Length of one rate-limit window"
    )
    max_requests: int = Field(
        default=100, gt=0, description="Requests allowed per client per window"
    )
    message: str = Field(
        default="Too many requests from this IP, please try again later.",
        description="Message returned with 429 responses",
    )


class SecurityHeadersSettings(BaseModel):
    """Security header settings."""

    content_security_policy: str = Field(
        default=(
            "default-src 'self'; base-uri 'self'; font-src 'self' https: data:; "
            "form-action 'self'; frame-ancestors 'self'; img-src 'self' data:; "
            "object-src 'none'; script-src 'self'; script-src-attr 'none'; "
            "style-src 'self' https: 'unsafe-inline'; upgrade-insecure-requests"
        ),
        description="Content-Security-Policy value used outside local environments",
    )
    hsts_max_age: int = Field(
        default=15552000, ge=0, description="Strict-Transport-Security max-age"
    )


class MiddlewareSettings(BaseModel):
    """Settings for the default middleware catalogue entries."""

    model_config = ConfigDict(validate_assignment=True)

    enable_cors: bool = True
    enable_compression: bool = True
    enable_rate_limit: bool = True
    enable_security: bool = True

    global_middleware: list[str] | None = Field(
        default=None,
        description="Names applied globally at startup; None uses the default order",
    )

    cors: CORSSettings = Field(default_factory=CORSSettings)
    compression: CompressionSettings = Field(default_factory=CompressionSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    security: SecurityHeadersSettings = Field(default_factory=SecurityHeadersSettings)
