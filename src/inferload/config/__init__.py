from __future__ import annotations

from inferload.config.models import (
    ConfigError,
    FramingType,
    LoadTestConfig,
    build_config,
    parse_body_template,
    parse_headers,
)

__all__ = [
    "ConfigError",
    "FramingType",
    "LoadTestConfig",
    "build_config",
    "parse_body_template",
    "parse_headers",
]
