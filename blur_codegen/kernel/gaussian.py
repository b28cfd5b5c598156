"""Gaussian weight engine -- densities and fixed-point weight tables.

Every weight that ends up in the generated source is an integer literal
computed here.  Densities use ``math`` (scalar IEEE doubles) so the
same inputs always truncate to the same integers.

Blur levels:
    A level is selected by ``power`` in ``[0, MAX_POWER]`` and blurs
    over ``radius = (1 << power) | 1`` samples on each side::

        power   0  1  2  3   4   5   6
        radius  1  3  5  9  17  33  65

Quantization:
    Fallback path weights are ``int(density * 16384)``.  Fast path
    weights are rescaled so that, after the final ``>> 14``, the kernel
    has unit gain::

        correction = (16384 * 16384) // (sum(raw_weights) + 1)
        fast_weight[i] = int(density(i) * correction)
"""

from __future__ import annotations

import math
from dataclasses import dataclass

MAX_POWER = 6
"""Strongest precomputed blur level; larger strengths saturate to it."""

QUANTIZATION_SHIFT = 14
QUANTIZATION_SCALE = 1 << QUANTIZATION_SHIFT


@dataclass(frozen=True, slots=True)
class BlurLevel:
    """One precomputed blur strength.

    Parameters
    ----------
    power : int
        Strength index, ``>= 0``.
    """

    power: int

    def __post_init__(self) -> None:
        if self.power < 0:
            raise ValueError(f"power must be >= 0, got {self.power}")

    @property
    def radius(self) -> int:
        """Half-width in samples; always odd."""
        return (1 << self.power) | 1


def blur_levels(max_power: int = MAX_POWER) -> list[BlurLevel]:
    """Return levels ``0..max_power`` in increasing order."""
    if max_power < 0:
        raise ValueError(f"max_power must be >= 0, got {max_power}")
    return [BlurLevel(power) for power in range(max_power + 1)]


def gaussian_density(offset: float, radius: float) -> float:
    """Normal density at *offset* with ``sigma = radius / 3``.

    ``radius == 0`` is the in-focus case: a single sample with weight
    ``1.0`` regardless of *offset*.
    """
    if radius == 0:
        return 1.0
    sigma = radius / 3.0
    return math.exp(-offset * offset / (2.0 * sigma * sigma)) / math.sqrt(
        2.0 * math.pi * sigma * sigma
    )


def quantize(density: float, scale: int) -> int:
    """Truncate ``density * scale`` toward zero."""
    return int(density * scale)


def offsets(radius: int) -> range:
    """Sample offsets ``-radius..radius``."""
    return range(-radius, radius + 1)


def raw_weights(radius: int, scale: int = QUANTIZATION_SCALE) -> list[int]:
    """Unnormalized weights used by the boundary fallback path."""
    return [quantize(gaussian_density(i, radius), scale) for i in offsets(radius)]


def weight_sum(radius: int, scale: int = QUANTIZATION_SCALE) -> int:
    """Sum of the unnormalized weights over the full window."""
    return sum(raw_weights(radius, scale))


def correction_factor(radius: int, scale: int = QUANTIZATION_SCALE) -> int:
    """Scale for the fast path so that its weights sum to about ``scale``.

    The ``+ 1`` keeps the divisor positive and biases the factor low.
    """
    return (scale * scale) // (weight_sum(radius, scale) + 1)


def fast_weights(radius: int, scale: int = QUANTIZATION_SCALE) -> list[int]:
    """Renormalized weights used by the fast path (paired with ``>> shift``)."""
    factor = correction_factor(radius, scale)
    return [quantize(gaussian_density(i, radius), factor) for i in offsets(radius)]
