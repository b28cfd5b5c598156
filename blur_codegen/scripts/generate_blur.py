#!/usr/bin/env python3
"""
Generate Blur Script.

Emit the source of the gaussian value_blur() helper.

Usage:
    python -m blur_codegen.scripts.generate_blur > value_blur.rsh
    python -m blur_codegen.scripts.generate_blur --output generated/value_blur.rsh
    python -m blur_codegen.scripts.generate_blur --config custom.yaml --verify

Without arguments the generated text is written to stdout and all log
output goes to stderr.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

import numpy as np

from blur_codegen.codegen.generator import BlurCodeGenerator, CodegenError
from blur_codegen.codegen.vm import BlurVM, BlurVMError
from blur_codegen.configs.loader import BlurConfig, ConfigError, load_config
from blur_codegen.utils.fs import atomic_write_text
from blur_codegen.utils.hashing import hash_dict, sha256_file, sha256_string
from blur_codegen.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

VERIFY_BUFFER_SIZE = 256
"""Sample store used by ``--verify``; a power of two so the mask is ``size - 1``."""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate the gaussian value_blur() function source",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        help="Configuration file path (default: bundled blur.yaml)",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        help="Write to this file atomically instead of stdout",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override logging.level from the config",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Log JSON lines on stderr",
    )
    parser.add_argument(
        "--verify",
        action="store_true",
        help="Dry-run the generated source on a flat buffer for every level",
    )
    return parser


def verify_source(source: str, config: BlurConfig) -> None:
    """Evaluate *source* at every level and check basic blur behaviour.

    A constant buffer must come back unchanged (within one step) on both
    paths, and saturated strengths must select the default case.

    Raises
    ------
    BlurVMError
        If the source does not parse or a check fails.
    """
    vm = BlurVM(config)
    vm.load_text(source)

    max_power = config.generator.max_power
    size = VERIFY_BUFFER_SIZE
    flat = np.full(size, 200, dtype=np.uint8)

    for power in range(max_power + 1):
        line = vm.blur_line(
            0, size, buffer=flat, buffer_length=size, bitmap_width=size, blur_power=power,
        )
        low, high = int(line.min()), int(line.max())
        if low < 199 or high > 200:
            raise BlurVMError(
                f"level {power}: flat input 200 produced range [{low}, {high}]"
            )
        logger.info("Verified level %d: flat input -> [%d, %d]", power, low, high)

    if vm.select_case(max_power + 4) != vm.default_case:
        raise BlurVMError("saturated strength does not select the default case")


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    # Bootstrap logging so config loading is visible, then apply config values.
    setup_logging(args.log_level or "INFO", json=args.json_logs, context={"run": "generate_blur"})

    try:
        config = load_config(args.config)
    except (ConfigError, FileNotFoundError) as exc:
        logger.error("Configuration error: %s", exc)
        return 1

    setup_logging(
        args.log_level or config.logging.level,
        json=args.json_logs or config.logging.json,
        color=config.logging.color,
    )
    logger.debug("Config fingerprint sha256=%s", hash_dict(config.to_dict()))

    generator = BlurCodeGenerator(config)
    try:
        if args.output:
            source = generator.emit_dispatch()
            atomic_write_text(args.output, source)
            logger.info("Wrote %s (sha256=%s)", args.output, sha256_file(args.output))
        else:
            parts = []
            for fragment in generator.iter_fragments():
                sys.stdout.write(fragment)
                sys.stdout.flush()
                parts.append(fragment)
            source = "".join(parts)
    except CodegenError as exc:
        logger.error("Generation failed: %s", exc)
        return 1

    logger.info("Generated %d bytes (sha256=%s)", len(source), sha256_string(source))

    if args.verify:
        try:
            verify_source(source, config)
        except BlurVMError as exc:
            logger.error("Verification failed: %s", exc)
            return 1
        logger.info("Verification passed")

    return 0


if __name__ == "__main__":
    sys.exit(main())
