"""
Blur Codegen Package.

Build-time generator for the gaussian value_blur() helper: computes
per-radius gaussian weights, quantizes them to fixed point and emits
boundary-aware, unrolled convolution code for each blur level.

Subpackages:
    kernel: Gaussian densities and fixed-point weight tables
    codegen: Source emitter and the dry-run evaluator for its output
    configs: Generator configuration loading and validation
    scripts: Command-line entry point
    utils: Logging, atomic output, hashing
"""

__version__ = "1.0.0"

__all__ = ["kernel", "codegen", "configs", "scripts", "utils"]
