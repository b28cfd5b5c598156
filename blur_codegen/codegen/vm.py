"""Offline evaluator for generated blur source.

Parses the text produced by ``BlurCodeGenerator`` and executes it with
C integer semantics against a numpy sample buffer, so the emitted code
can be checked without a RenderScript toolchain.

Provides:
    - Parsing: case labels, default label, guard radius, fallback and
      fast-path terms, final shift
    - Dispatch: ``max(0, blur_power + user_blur)`` routed to a case or
      to the default case
    - Execution: truncating division, arithmetic shift, ``uchar`` result

Usage:
    from blur_codegen.codegen.vm import BlurVM

    vm = BlurVM(config)
    vm.load_text(source)
    value = vm.run(pixel, begin, end, buffer=samples, buffer_length=len(samples),
                   bitmap_width=width, blur_power=3)
    print(vm.last_path)   # "fallback" or "fast"

The parser only understands the layout this package emits; any other
line that looks like code is reported as an error rather than skipped.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np

from blur_codegen.configs.loader import BlurConfig

logger = logging.getLogger(__name__)


class BlurVMError(Exception):
    """Raised when generated source cannot be parsed or executed."""

    pass


@dataclass(frozen=True)
class ParsedLevel:
    """One level block recovered from generated source.

    Attributes
    ----------
    radius : int
        Window half-width taken from the guard
    fallback_terms : tuple[tuple[int, int], ...]
        ``(offset, weight)`` pairs of the boundary path, in source order
    fast_terms : tuple[tuple[int, int], ...]
        ``(offset, weight)`` pairs of the unrolled fast path
    shift : int
        Right shift applied to the fast-path sum
    """

    radius: int
    fallback_terms: Tuple[Tuple[int, int], ...]
    fast_terms: Tuple[Tuple[int, int], ...]
    shift: int


def c_div(a: int, b: int) -> int:
    """Integer division truncating toward zero, as C does."""
    if b == 0:
        raise ZeroDivisionError("integer division by zero")
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


class BlurVM:
    """Evaluator for the generated blur function.

    Parameters
    ----------
    config : BlurConfig
        Configuration the source was generated with (identifier names).

    Attributes
    ----------
    levels : Dict[int, ParsedLevel]
        Level blocks keyed by case value
    default_case : Optional[int]
        Case value that also carries the ``default`` label
    last_path : Optional[str]
        ``"fallback"`` or ``"fast"`` for the most recent ``run``
    last_case : Optional[int]
        Case selected by the most recent ``run``
    """

    def __init__(self, config: BlurConfig) -> None:
        self._cfg = config
        ids = config.identifiers
        buf = re.escape(ids.buffer)
        mask = re.escape(ids.buffer_mask)
        length = re.escape(ids.buffer_length)

        self._re_signature = re.compile(
            rf"^\s*static\s+{re.escape(ids.return_type)}\s+{re.escape(ids.function_name)}"
            rf"\(int pixel, int begin, int end\)$"
        )
        self._re_case = re.compile(r"^\s*case (\d+):$")
        self._re_default = re.compile(r"^\s*default:$")
        self._re_guard = re.compile(
            rf"^\s*if \(\(p-(\d+)\) < begin \|\| end <= \(p\+(\d+)\) \|\| "
            rf"\(i-(\d+)\) < 0 \|\| {length} <= \(i\+(\d+)\)\) \{{$"
        )
        self._re_left = re.compile(r"^\s*if \(begin <= \(p(-\d+)\)\) \{$")
        self._re_right = re.compile(r"^\s*if \(\(p(\+\d+)\) < end\) \{$")
        self._re_weight = re.compile(r"^\s*weight_sum \+= (\d+);$")
        self._re_value = re.compile(
            rf"^\s*value_sum \+= (\d+) \* {buf}\[\(i([+-]\d+)\)&{mask}\];$"
        )
        self._re_divide = re.compile(r"^\s*return value_sum / weight_sum;$")
        self._re_fast = re.compile(
            rf"^\s*(return \()?(\d+) \* {buf}\[i([+-]\d+)\](?: \+|\) >> (\d+);)$"
        )
        # Lines that carry no information for evaluation.
        self._re_passive = re.compile(
            r"^\s*(/\*.*\*/|\{|\}|int (p|i|weight_sum|value_sum) = .*;|"
            r"switch \(max\(0, .*\)\) \{|return 0;)?$"
        )

        self.levels: Dict[int, ParsedLevel] = {}
        self.default_case: Optional[int] = None
        self.last_path: Optional[str] = None
        self.last_case: Optional[int] = None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_text(self, text: str) -> None:
        """Parse generated source.

        Raises
        ------
        BlurVMError
            If the signature, a level block or the default label is
            missing or malformed.
        """
        self.levels = {}
        self.default_case = None
        self.last_path = None
        self.last_case = None

        seen_signature = False
        pending: List[int] = []
        pending_default = False
        radius: Optional[int] = None
        fallback: List[Tuple[int, int]] = []
        fast: List[Tuple[int, int]] = []
        cond_offset: Optional[int] = None
        weight: Optional[int] = None
        in_fallback = False

        for lineno, line in enumerate(text.splitlines(), start=1):
            if self._re_signature.match(line):
                seen_signature = True
                continue

            m = self._re_case.match(line)
            if m:
                pending.append(int(m.group(1)))
                continue
            if self._re_default.match(line):
                if not pending:
                    raise BlurVMError(f"line {lineno}: default label without a case")
                pending_default = True
                continue

            m = self._re_guard.match(line)
            if m:
                values = {int(g) for g in m.groups()}
                if len(values) != 1 or not pending:
                    raise BlurVMError(f"line {lineno}: malformed guard: {line.strip()}")
                radius = values.pop()
                fallback, fast = [], []
                in_fallback = True
                continue

            m = self._re_left.match(line) or self._re_right.match(line)
            if m and in_fallback:
                cond_offset = int(m.group(1))
                continue

            m = self._re_weight.match(line)
            if m and in_fallback and cond_offset is not None:
                weight = int(m.group(1))
                continue

            m = self._re_value.match(line)
            if m and in_fallback:
                w, offset = int(m.group(1)), int(m.group(2))
                if w != weight or offset != cond_offset:
                    raise BlurVMError(
                        f"line {lineno}: value term does not match its condition/weight"
                    )
                fallback.append((offset, w))
                cond_offset, weight = None, None
                continue

            if self._re_divide.match(line) and in_fallback:
                in_fallback = False
                continue

            m = self._re_fast.match(line)
            if m and radius is not None and not in_fallback:
                if bool(m.group(1)) != (not fast):
                    raise BlurVMError(f"line {lineno}: misplaced fast-path term")
                fast.append((int(m.group(3)), int(m.group(2))))
                if m.group(4) is not None:
                    level = ParsedLevel(
                        radius=radius,
                        fallback_terms=tuple(fallback),
                        fast_terms=tuple(fast),
                        shift=int(m.group(4)),
                    )
                    for case in pending:
                        self.levels[case] = level
                    if pending_default:
                        self.default_case = pending[-1]
                    pending, pending_default, radius = [], False, None
                continue

            if self._re_passive.match(line):
                continue

            raise BlurVMError(f"line {lineno}: unrecognized source: {line.strip()}")

        if not seen_signature:
            raise BlurVMError(
                f"no definition of {self._cfg.identifiers.function_name}() found"
            )
        if pending or radius is not None:
            raise BlurVMError("source ends inside a level block")
        if self.default_case is None:
            raise BlurVMError("no default case; large strengths would fall through")

        logger.debug(
            "Parsed %d levels, default case %d", len(self.levels), self.default_case
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def select_case(self, strength: int) -> int:
        """Return the case the ``switch`` selects for *strength*."""
        if not self.levels:
            raise BlurVMError("no source loaded")
        key = max(0, strength)
        if key in self.levels:
            return key
        if self.default_case is None:
            raise BlurVMError(f"strength {strength} matches no case")
        return self.default_case

    def run(
        self,
        pixel: int,
        begin: int,
        end: int,
        *,
        buffer: np.ndarray,
        buffer_length: int,
        bitmap_width: int,
        blur_power: int,
        user_blur: int = 0,
        buffer_mask: Optional[int] = None,
    ) -> int:
        """Evaluate the generated function once.

        Parameters
        ----------
        pixel, begin, end : int
            Function arguments
        buffer : np.ndarray
            Circular sample store (``value_buffer``)
        buffer_length : int
            Readable length of the store (``buffer_length``)
        bitmap_width : int
            Output width the pixel index is scaled from
        blur_power, user_blur : int
            Strength globals
        buffer_mask : int, optional
            Defaults to ``len(buffer) - 1``

        Returns
        -------
        int
            Blurred sample, converted to ``uchar``.

        Raises
        ------
        BlurVMError
            On a runtime fault: division by zero or an out-of-range read.
        """
        buffer = np.asarray(buffer)
        if buffer_mask is None:
            buffer_mask = len(buffer) - 1

        try:
            span = end - begin
            p = c_div(pixel * span + c_div(span, 2), bitmap_width) + begin
        except ZeroDivisionError as exc:
            raise BlurVMError("bitmap_width is zero") from exc
        i = p & buffer_mask

        case = self.select_case(blur_power + user_blur)
        level = self.levels[case]
        r = level.radius
        self.last_case = case

        if (p - r) < begin or end <= (p + r) or (i - r) < 0 or buffer_length <= (i + r):
            self.last_path = "fallback"
            weight_sum = 0
            value_sum = 0
            for offset, weight in level.fallback_terms:
                inside = begin <= p + offset if offset < 0 else p + offset < end
                if inside:
                    weight_sum += weight
                    value_sum += weight * self._read(buffer, (i + offset) & buffer_mask)
            if weight_sum == 0:
                raise BlurVMError(f"division by zero at p={p}: no neighbour in range")
            return c_div(value_sum, weight_sum) & 0xFF

        self.last_path = "fast"
        total = 0
        for offset, weight in level.fast_terms:
            total += weight * self._read(buffer, i + offset)
        return (total >> level.shift) & 0xFF

    def blur_line(
        self,
        begin: int,
        end: int,
        *,
        buffer: np.ndarray,
        buffer_length: int,
        bitmap_width: int,
        blur_power: int,
        user_blur: int = 0,
    ) -> np.ndarray:
        """Evaluate every pixel ``0..bitmap_width-1`` of one output line."""
        return np.array(
            [
                self.run(
                    pixel,
                    begin,
                    end,
                    buffer=buffer,
                    buffer_length=buffer_length,
                    bitmap_width=bitmap_width,
                    blur_power=blur_power,
                    user_blur=user_blur,
                )
                for pixel in range(bitmap_width)
            ],
            dtype=np.uint8,
        )

    @staticmethod
    def _read(buffer: np.ndarray, index: int) -> int:
        if not 0 <= index < len(buffer):
            raise BlurVMError(f"read outside sample buffer: index {index}, size {len(buffer)}")
        return int(buffer[index])
