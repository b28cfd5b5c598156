"""Blur code generator -- weight tables to RenderScript/C source.

Emits one function that blurs a circular sample buffer along one
dimension.  All weights are integer literals computed at generation
time; the emitted code has no floating point.

Function layout::

    /* <header> */
    static uchar value_blur(int pixel, int begin, int end)
    {
        <map pixel into [begin, end) as p, mask it into the buffer as i>
        switch (max(0, blur_power + user_blur)) {
        case 0:       <level block, radius 1>
        ...
        case 6:
        default:      <level block, radius 65>
        }
        return 0;
    }

Level block:
    A single guard checks whether the full window ``p-R .. p+R`` lies
    inside ``[begin, end)`` and ``i-R .. i+R`` inside the backing store.
    If not, the fallback path accumulates only the in-range neighbours
    with unnormalized weights (scale 16384) and divides by their sum at
    runtime.  Otherwise the fast path applies the renormalized weights
    and a single ``>> 14``.
"""

from __future__ import annotations

import logging
from io import StringIO
from typing import Iterator

from blur_codegen.configs.loader import BlurConfig
from blur_codegen.kernel.gaussian import (
    MAX_POWER,
    blur_levels,
    correction_factor,
    fast_weights,
    offsets,
    raw_weights,
    weight_sum,
)

logger = logging.getLogger(__name__)


class CodegenError(Exception):
    """Raised when blur code generation is asked for an unsupported level."""

    pass


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _signed(offset: int) -> str:
    """Render an offset with an explicit sign (``-3``, ``+0``, ``+3``)."""
    return f"{offset:+d}"


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class BlurCodeGenerator:
    """Convert blur levels into the source of the dispatch function.

    Parameters
    ----------
    config : BlurConfig
        Validated generator configuration.

    Notes
    -----
    The generator keeps no state between calls; every public method
    builds its text in a fresh ``StringIO``.
    """

    def __init__(self, config: BlurConfig) -> None:
        self._cfg = config
        self._ids = config.identifiers
        self._t = config.output.indent
        self._scale = config.generator.quantization_scale
        self._shift = config.generator.quantization_shift

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def emit_level(self, radius: int) -> str:
        """Generate the code block for one blur radius.

        Parameters
        ----------
        radius : int
            Positive odd half-width, ``(1 << power) | 1``.

        Returns
        -------
        str
            Guarded fallback path followed by the fast path, indented
            for placement under a ``case`` label.

        Raises
        ------
        CodegenError
            If *radius* is not a positive odd integer.
        """
        if isinstance(radius, bool) or not isinstance(radius, int):
            raise CodegenError(f"radius must be an int, got {radius!r}")
        if radius <= 0 or radius % 2 == 0:
            raise CodegenError(f"radius must be positive and odd, got {radius}")

        buf = StringIO()
        self._write_fallback(radius, buf)
        self._write_fast(radius, buf)
        return buf.getvalue()

    def emit_dispatch(self, max_power: int | None = None) -> str:
        """Generate the complete function for levels ``0..max_power``.

        Parameters
        ----------
        max_power : int | None
            Strongest level; ``None`` uses ``generator.max_power``.

        Returns
        -------
        str
            Header comment plus the full function source.

        Raises
        ------
        CodegenError
            If *max_power* is outside ``[0, MAX_POWER]``.
        """
        return "".join(self.iter_fragments(max_power))

    def iter_fragments(self, max_power: int | None = None) -> Iterator[str]:
        """Yield the function source piece by piece.

        The prologue, each level (with its ``case`` labels) and the
        epilogue are separate fragments, so a caller can flush each one
        to the output stream as soon as it is produced.
        """
        if max_power is None:
            max_power = self._cfg.generator.max_power
        if isinstance(max_power, bool) or not isinstance(max_power, int):
            raise CodegenError(f"max_power must be an int, got {max_power!r}")
        if not 0 <= max_power <= MAX_POWER:
            raise CodegenError(f"max_power must be in [0, {MAX_POWER}], got {max_power}")

        yield self._prologue()

        for level in blur_levels(max_power):
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "Emitting level power=%d radius=%d weight_sum=%d correction=%d",
                    level.power,
                    level.radius,
                    weight_sum(level.radius, self._scale),
                    correction_factor(level.radius, self._scale),
                )
            t = self._t
            labels = f"{t}case {level.power}:\n"
            if level.power == max_power:
                labels += f"{t}default:\n"
            yield labels + self.emit_level(level.radius)

        yield self._epilogue()
        logger.info("Generated %s() with %d blur levels", self._ids.function_name, max_power + 1)

    # ------------------------------------------------------------------
    # Function skeleton
    # ------------------------------------------------------------------

    def _prologue(self) -> str:
        ids = self._ids
        t = self._t
        buf = StringIO()
        buf.write(f"/* {self._cfg.output.header} */\n")
        buf.write(f"static {ids.return_type} {ids.function_name}(int pixel, int begin, int end)\n{{\n")
        buf.write(
            f"{t}int p = (pixel * (end - begin) + (end - begin) / 2) / {ids.bitmap_width} + begin;\n"
        )
        buf.write(f"{t}int i = p & {ids.buffer_mask};\n")
        buf.write(f"{t}int weight_sum = 0;\n")
        buf.write(f"{t}int value_sum = 0;\n")
        buf.write(f"{t}switch (max(0, {ids.blur_power} + {ids.user_blur})) {{\n")
        return buf.getvalue()

    def _epilogue(self) -> str:
        t = self._t
        # Unreachable while the last case carries the default label.
        return f"{t}}}\n{t}return 0;\n}}\n"

    # ------------------------------------------------------------------
    # Level paths
    # ------------------------------------------------------------------

    def _write_fallback(self, radius: int, buf: StringIO) -> None:
        ids = self._ids
        t2, t3, t4 = self._t * 2, self._t * 3, self._t * 4
        buf.write(
            f"{t2}if ((p-{radius}) < begin || end <= (p+{radius}) || "
            f"(i-{radius}) < 0 || {ids.buffer_length} <= (i+{radius})) {{\n"
        )
        for offset, weight in zip(offsets(radius), raw_weights(radius, self._scale)):
            if offset < 0:
                buf.write(f"{t3}if (begin <= (p{_signed(offset)})) {{\n")
            else:
                buf.write(f"{t3}if ((p{_signed(offset)}) < end) {{\n")
            buf.write(f"{t4}weight_sum += {weight};\n")
            buf.write(
                f"{t4}value_sum += {weight} * "
                f"{ids.buffer}[(i{_signed(offset)})&{ids.buffer_mask}];\n"
            )
            buf.write(f"{t3}}}\n")
        buf.write(f"{t3}return value_sum / weight_sum;\n")
        buf.write(f"{t2}}}\n")

    def _write_fast(self, radius: int, buf: StringIO) -> None:
        ids = self._ids
        t2, t3 = self._t * 2, self._t * 3
        for offset, weight in zip(offsets(radius), fast_weights(radius, self._scale)):
            lead = f"{t2}return (" if offset == -radius else t3
            tail = f") >> {self._shift};" if offset == radius else " +"
            buf.write(f"{lead}{weight} * {ids.buffer}[i{_signed(offset)}]{tail}\n")
