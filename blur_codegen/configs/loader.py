"""Configuration loader for the blur generator.

Loads and validates ``blur.yaml`` into typed, frozen dataclasses.  The
numeric defaults come from ``blur_codegen.kernel.gaussian`` so the
shipped YAML and the weight engine cannot drift apart silently; the
loader rejects a YAML that disagrees with the engine's invariants.

Usage::

    from blur_codegen.configs.loader import load_config
    cfg = load_config()                    # default path
    cfg = load_config("/custom/blur.yaml") # explicit path
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from blur_codegen.kernel.gaussian import (
    MAX_POWER,
    QUANTIZATION_SCALE,
    QUANTIZATION_SHIFT,
)
from blur_codegen.utils.fs import load_yaml

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Names the generated body declares itself; a free variable may not shadow them.
_RESERVED = frozenset({"pixel", "begin", "end", "p", "i", "weight_sum", "value_sum"})


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


# ---------------------------------------------------------------------------
# Dataclasses -- mirror the YAML structure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GeneratorConfig:
    """Blur level range and fixed-point parameters."""

    max_power: int = MAX_POWER
    quantization_scale: int = QUANTIZATION_SCALE
    quantization_shift: int = QUANTIZATION_SHIFT


@dataclass(frozen=True)
class IdentifiersConfig:
    """Names used in the generated source.

    ``function_name`` and ``return_type`` form the signature; the rest
    are free variables the host program must define.
    """

    function_name: str = "value_blur"
    return_type: str = "uchar"
    buffer: str = "value_buffer"
    buffer_mask: str = "buffer_mask"
    buffer_length: str = "buffer_length"
    bitmap_width: str = "bitmap_width"
    blur_power: str = "blur_power"
    user_blur: str = "user_blur"


@dataclass(frozen=True)
class OutputConfig:
    """Layout of the emitted text."""

    header: str = "code generated by 'blur_codegen'"
    indent: str = "\t"


@dataclass(frozen=True)
class LoggingConfig:
    """Defaults for ``setup_logging`` when the CLI does not override them."""

    level: str = "INFO"
    json: bool = False
    color: bool = True


@dataclass(frozen=True)
class BlurConfig:
    """Complete generator configuration loaded from ``blur.yaml``."""

    generator: GeneratorConfig = field(default_factory=GeneratorConfig)
    identifiers: IdentifiersConfig = field(default_factory=IdentifiersConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> dict[str, Any]:
        """Plain-dict view (JSON-serializable), used for fingerprinting."""
        return asdict(self)


# ---------------------------------------------------------------------------
# Internal parsing helpers
# ---------------------------------------------------------------------------


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    """Return an optional mapping section, ``{}`` when absent."""
    raw = data.get(name)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Section '{name}' must be a mapping, got {type(raw).__name__}")
    return raw


def _as_int(section: str, key: str, value: Any) -> int:
    # bool is an int subclass; reject it so ``max_power: true`` is an error
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{section}.{key} must be an integer, got {value!r}")
    return value


def _as_bool(section: str, key: str, value: Any) -> bool:
    # no truthiness coercion; the string "false" must not enable a flag
    if not isinstance(value, bool):
        raise ConfigError(f"{section}.{key} must be a boolean, got {value!r}")
    return value


def _parse_generator(data: dict[str, Any]) -> GeneratorConfig:
    defaults = GeneratorConfig()
    return GeneratorConfig(
        max_power=_as_int("generator", "max_power", data.get("max_power", defaults.max_power)),
        quantization_scale=_as_int(
            "generator",
            "quantization_scale",
            data.get("quantization_scale", defaults.quantization_scale),
        ),
        quantization_shift=_as_int(
            "generator",
            "quantization_shift",
            data.get("quantization_shift", defaults.quantization_shift),
        ),
    )


def _parse_identifiers(data: dict[str, Any]) -> IdentifiersConfig:
    defaults = asdict(IdentifiersConfig())
    unknown = set(data) - set(defaults)
    if unknown:
        raise ConfigError(f"Unknown identifiers: {sorted(unknown)}")
    return IdentifiersConfig(**{key: str(data.get(key, value)) for key, value in defaults.items()})


def _parse_output(data: dict[str, Any]) -> OutputConfig:
    defaults = OutputConfig()
    return OutputConfig(
        header=str(data.get("header", defaults.header)),
        indent=str(data.get("indent", defaults.indent)),
    )


def _parse_logging(data: dict[str, Any]) -> LoggingConfig:
    defaults = LoggingConfig()
    return LoggingConfig(
        level=str(data.get("level", defaults.level)).upper(),
        json=_as_bool("logging", "json", data.get("json", defaults.json)),
        color=_as_bool("logging", "color", data.get("color", defaults.color)),
    )


def validate_config(cfg: BlurConfig) -> None:
    """Check cross-field invariants.

    Raises
    ------
    ConfigError
        On the first violated invariant.
    """
    g = cfg.generator
    if not 0 <= g.max_power <= MAX_POWER:
        raise ConfigError(
            f"generator.max_power must be in [0, {MAX_POWER}], got {g.max_power}"
        )
    if g.quantization_shift <= 0:
        raise ConfigError(
            f"generator.quantization_shift must be > 0, got {g.quantization_shift}"
        )
    if g.quantization_scale != 1 << g.quantization_shift:
        raise ConfigError(
            f"generator.quantization_scale ({g.quantization_scale}) must equal "
            f"1 << quantization_shift ({1 << g.quantization_shift})"
        )

    names = asdict(cfg.identifiers)
    for key, name in names.items():
        if not _IDENTIFIER.match(name):
            raise ConfigError(f"identifiers.{key} is not a valid C identifier: {name!r}")
        if name in _RESERVED:
            raise ConfigError(
                f"identifiers.{key} collides with a local of the generated function: {name!r}"
            )
    free = [v for k, v in names.items() if k not in ("function_name", "return_type")]
    if len(set(free)) != len(free):
        raise ConfigError(f"identifiers must be distinct, got {free}")

    if not cfg.output.indent or cfg.output.indent.strip():
        raise ConfigError(
            f"output.indent must be non-empty whitespace, got {cfg.output.indent!r}"
        )
    if "\n" in cfg.output.header or "*/" in cfg.output.header:
        raise ConfigError("output.header must be a single line without '*/'")

    if cfg.logging.level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise ConfigError(f"logging.level is not a log level: {cfg.logging.level!r}")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(path: str | Path | None = None) -> BlurConfig:
    """Load and validate generator configuration from YAML.

    Parameters
    ----------
    path : str | Path | None
        Path to ``blur.yaml``.  ``None`` loads the default shipped
        alongside this module.

    Returns
    -------
    BlurConfig
        Fully validated, frozen configuration object.

    Raises
    ------
    ConfigError
        If any field has the wrong type or fails validation.
    FileNotFoundError
        If *path* does not exist.
    """
    if path is None:
        path = Path(__file__).parent / "blur.yaml"
    else:
        path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    logger.info("Loading configuration from %s", path)

    data = load_yaml(path)
    if data is None:
        raise ConfigError(f"Empty configuration file: {path}")
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration root must be a mapping: {path}")

    try:
        config = BlurConfig(
            generator=_parse_generator(_section(data, "generator")),
            identifiers=_parse_identifiers(_section(data, "identifiers")),
            output=_parse_output(_section(data, "output")),
            logging=_parse_logging(_section(data, "logging")),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid configuration value: {exc}") from exc

    validate_config(config)
    logger.info(
        "Configuration loaded: max_power=%d scale=%d",
        config.generator.max_power,
        config.generator.quantization_scale,
    )
    return config
