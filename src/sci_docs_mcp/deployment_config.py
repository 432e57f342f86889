"""Multi-library deployment configuration using Pydantic.

This module defines the schema for serving several scientific libraries'
documentation from one engine instance.

Architecture:
- Each library gets its own parser adapter and corpus
- Libraries may shorten or lengthen the shared cache TTL
- Configuration validates at startup (fail fast)
"""

import json
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator


_LOG_LEVEL_PATTERN = r"^(debug|info|warning|error|critical)$"


class LibraryConfig(BaseModel):
    """Configuration for a single documented library."""

    model_config = {"extra": "forbid"}  # Reject any extra keys not in schema

    codename: Annotated[
        str,
        Field(
            description="Short identifier used as the library id (e.g., 'numpy', 'scipy')",
            pattern=r"^[a-z][a-z0-9_-]*$",
            min_length=2,
            max_length=64,
        ),
    ]

    docs_name: Annotated[
        str,
        Field(
            description="Human-readable name for the documentation",
            examples=["NumPy", "SciPy", "pandas"],
            min_length=1,
            max_length=200,
        ),
    ]

    parser: Annotated[
        Literal["markdown", "html", "docstring-json"],
        Field(description="Format of the library's raw documentation source"),
    ] = "markdown"

    cache_ttl_seconds: Annotated[
        int | None,
        Field(
            ge=1,
            description="Per-library freshness window; falls back to the engine-wide setting when unset",
        ),
    ] = None

    test_queries: Annotated[
        dict[str, list[str]] | None,
        Field(
            description="Smoke-test queries grouped by mode: exact, prefix, keyword",
            examples=[
                {
                    "exact": ["numpy.zeros"],
                    "prefix": ["numpy.lin"],
                    "keyword": ["fast fourier transform"],
                }
            ],
        ),
    ] = None

    @field_validator("test_queries")
    @classmethod
    def validate_test_query_modes(cls, value: dict[str, list[str]] | None) -> dict[str, list[str]] | None:
        if value is None:
            return value
        unknown = sorted(set(value) - {"exact", "prefix", "keyword"})
        if unknown:
            raise ValueError(f"Unknown test query mode(s): {unknown}; expected exact, prefix or keyword")
        return value


class LogProfileConfig(BaseModel):
    """Logging profile applied at startup.

    Switches between quiet production logging and verbose debugging
    without code changes.
    """

    model_config = {"extra": "forbid"}

    level: Annotated[
        str,
        Field(
            pattern=_LOG_LEVEL_PATTERN,
            description="Root log level for this profile",
        ),
    ] = "info"

    json_output: Annotated[
        bool,
        Field(
            description="Emit structured JSON logs (recommended for production)",
        ),
    ] = True

    trace_categories: Annotated[
        list[str],
        Field(
            description="Logger names to set at trace_level for deep debugging",
            examples=[["sci_docs_mcp.services", "sci_docs_mcp.search"]],
        ),
    ] = Field(default_factory=list)

    trace_level: Annotated[
        str,
        Field(
            pattern=_LOG_LEVEL_PATTERN,
            description="Level applied to trace_categories loggers",
        ),
    ] = "debug"

    logger_levels: Annotated[
        dict[str, str],
        Field(
            description="Per-logger level overrides (logger name -> level)",
            examples=[{"sci_docs_mcp.parsers": "warning"}],
        ),
    ] = Field(default_factory=dict)

    @field_validator("logger_levels")
    @classmethod
    def validate_logger_levels(cls, value: dict[str, str]) -> dict[str, str]:
        """Validate that all logger_levels values use supported log levels."""
        allowed_levels = {"debug", "info", "warning", "error", "critical"}
        invalid = {name: level for name, level in value.items() if level not in allowed_levels}
        if invalid:
            details = ", ".join(f"{name}={level}" for name, level in invalid.items())
            raise ValueError(
                f"Invalid log level(s) in logger_levels; allowed levels are {sorted(allowed_levels)}; got: {details}"
            )
        return value


class DeploymentConfig(BaseModel):
    """Complete deployment configuration for a multi-library engine.

    Example:
        {
            "logging": {"level": "info", "json_output": true},
            "libraries": [
                {"codename": "numpy", "docs_name": "NumPy", "parser": "html"},
                {
                    "codename": "scipy",
                    "docs_name": "SciPy",
                    "parser": "docstring-json",
                    "cache_ttl_seconds": 600
                }
            ]
        }
    """

    model_config = {"extra": "forbid"}

    logging: LogProfileConfig = Field(default_factory=LogProfileConfig)
    libraries: Annotated[
        list[LibraryConfig],
        Field(
            min_length=1,
            description="Libraries whose documentation the engine serves",
        ),
    ]

    @model_validator(mode="after")
    def validate_unique_codenames(self) -> "DeploymentConfig":
        """Ensure codenames are unique across libraries."""
        codenames = [library.codename for library in self.libraries]
        if len(codenames) != len(set(codenames)):
            duplicates = sorted({c for c in codenames if codenames.count(c) > 1})
            raise ValueError(f"Duplicate library codenames found: {duplicates}")
        return self

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "DeploymentConfig":
        """Validate an already-loaded configuration mapping."""
        return cls.model_validate(data)

    @classmethod
    def from_json_file(cls, path: Path) -> "DeploymentConfig":
        """Load configuration from JSON file.

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not path.exists():
            raise FileNotFoundError(f"Deployment config not found: {path}")

        with path.open() as f:
            data = json.load(f)

        return cls.from_mapping(data)

    def library_ttls(self) -> dict[str, int]:
        """Per-library TTL overrides, only for libraries that set one."""
        return {
            library.codename: library.cache_ttl_seconds
            for library in self.libraries
            if library.cache_ttl_seconds is not None
        }
