"""Route discovery and loading configuration."""

import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_EXCLUDE_PATTERNS: list[str] = [
    r"\.backup$",
    r"\.bak$",
    r"^test_.*\.py$",
    r"_test\.py$",
    r"\.test\.py$",
    r"\.spec\.py$",
    r"^__init__\.py$",
    r"^conftest\.py$",
    r"^index\.py$",
    r"^config\.py$",
    r"^middleware\.py$",
    r"^response_handler\.py$",
    r"^validators\.py$",
    r"^query_optimizer\.py$",
    r"^api_versioning\.py$",
    r"^api_documentation\.py$",
]

DEFAULT_NAME_SUFFIXES: list[str] = ["-routes", "_routes", "-advanced", "_advanced"]

# Irregular plurals and renames; everything else mounts at /<name>
DEFAULT_SPECIAL_ROUTES: dict[str, str] = {
    "auth": "/auth",
    "users": "/users",
    "companies": "/companies",
    "courses": "/courses",
    "employees": "/employees",
    "schedules": "/schedules",
    "settings": "/settings",
    "tenants": "/tenants",
    "roles": "/roles",
    "permissions": "/permissions",
    "gdpr": "/gdpr",
    "person": "/persons",
    "sopralluogo": "/sopralluoghi",
    "reparto": "/reparti",
    "company-sites": "/company-sites",
    "public-courses": "/public",
    "cms": "/cms",
}


class RouteLoaderSettings(BaseModel):
    """Settings controlling how route modules are found and imported."""

    model_config = ConfigDict(validate_assignment=True)

    routes_directory: Path = Field(
        default=Path("routes"),
        description="Directory scanned (non-recursively) for route modules",
    )

    file_extensions: list[str] = Field(
        default_factory=lambda: [".py"],
        description="Filename extensions eligible as route modules",
    )

    exclude_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS),
        description="Regular expressions; a filename matching any of them is skipped",
    )

    name_suffixes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_NAME_SUFFIXES),
        description="Structural suffixes stripped from a filename stem to get the route name",
    )

    special_routes: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_SPECIAL_ROUTES),
        description="Route name to mount path overrides",
    )

    export_names: list[str] = Field(
        default_factory=lambda: ["router", "app"],
        description="Module attributes searched, in order, for the handler collection",
    )

    load_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Seconds allowed for importing a single route module",
    )

    versions: list[str] = Field(
        default_factory=list,
        description="Version subdirectories (e.g. v1) loaded during initialization",
    )

    @field_validator("exclude_patterns")
    @classmethod
    def validate_exclude_patterns(cls, v: list[str]) -> list[str]:
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid exclude pattern {pattern!r}: {e}") from e
        return v

    @field_validator("file_extensions")
    @classmethod
    def validate_file_extensions(cls, v: list[str]) -> list[str]:
        return [ext if ext.startswith(".") else f".{ext}" for ext in v]

    @field_validator("special_routes")
    @classmethod
    def validate_special_routes(cls, v: dict[str, str]) -> dict[str, str]:
        return {name: path if path.startswith("/") else f"/{path}" for name, path in v.items()}
