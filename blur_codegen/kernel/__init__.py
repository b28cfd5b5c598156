"""
Gaussian weight engine.

Computes densities and fixed-point weight tables for each blur level.
"""

from blur_codegen.kernel.gaussian import (
    MAX_POWER,
    QUANTIZATION_SCALE,
    QUANTIZATION_SHIFT,
    BlurLevel,
    blur_levels,
    correction_factor,
    fast_weights,
    gaussian_density,
    quantize,
    raw_weights,
    weight_sum,
)

__all__ = [
    "MAX_POWER",
    "QUANTIZATION_SCALE",
    "QUANTIZATION_SHIFT",
    "BlurLevel",
    "blur_levels",
    "correction_factor",
    "fast_weights",
    "gaussian_density",
    "quantize",
    "raw_weights",
    "weight_sum",
]
