"""Generator configuration loading and validation."""

from blur_codegen.configs.loader import (
    BlurConfig,
    ConfigError,
    GeneratorConfig,
    IdentifiersConfig,
    LoggingConfig,
    OutputConfig,
    load_config,
    validate_config,
)

__all__ = [
    "BlurConfig",
    "ConfigError",
    "GeneratorConfig",
    "IdentifiersConfig",
    "LoggingConfig",
    "OutputConfig",
    "load_config",
    "validate_config",
]
