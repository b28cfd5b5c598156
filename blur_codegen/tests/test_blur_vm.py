"""Tests for the generated-source evaluator.

Runs the emitted value_blur() through BlurVM to check dispatch
saturation, the boundary fallback path, the fast path and their
agreement in the interior.
"""

from __future__ import annotations

import numpy as np
import pytest

from blur_codegen.codegen.generator import BlurCodeGenerator
from blur_codegen.codegen.vm import BlurVM, BlurVMError, c_div
from blur_codegen.configs.loader import BlurConfig, load_config
from blur_codegen.kernel.gaussian import MAX_POWER, fast_weights, raw_weights


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def config() -> BlurConfig:
    return load_config()


@pytest.fixture()
def source(config: BlurConfig) -> str:
    return BlurCodeGenerator(config).emit_dispatch()


@pytest.fixture()
def vm(config: BlurConfig, source: str) -> BlurVM:
    machine = BlurVM(config)
    machine.load_text(source)
    return machine


@pytest.fixture()
def noise() -> np.ndarray:
    rng = np.random.default_rng(1234)
    return rng.integers(0, 256, size=256, dtype=np.uint8)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestParsing:
    def test_all_levels_parsed(self, vm: BlurVM) -> None:
        assert sorted(vm.levels) == list(range(MAX_POWER + 1))
        assert vm.default_case == MAX_POWER

    @pytest.mark.parametrize("power", range(MAX_POWER + 1))
    def test_level_tables_match_engine(self, vm: BlurVM, power: int) -> None:
        level = vm.levels[power]
        radius = (1 << power) | 1
        assert level.radius == radius
        assert [w for _, w in level.fallback_terms] == raw_weights(radius)
        assert [w for _, w in level.fast_terms] == fast_weights(radius)
        assert [o for o, _ in level.fast_terms] == list(range(-radius, radius + 1))
        assert level.shift == 14

    def test_rejects_garbage(self, config: BlurConfig) -> None:
        with pytest.raises(BlurVMError):
            BlurVM(config).load_text("int main(void) { return 0; }\n")

    def test_rejects_missing_default(self, config: BlurConfig, source: str) -> None:
        with pytest.raises(BlurVMError, match="default"):
            BlurVM(config).load_text(source.replace("\tdefault:\n", ""))

    def test_rejects_truncated_source(self, config: BlurConfig, source: str) -> None:
        cut = source[: source.index("\tcase 3:")]
        with pytest.raises(BlurVMError):
            BlurVM(config).load_text(cut + "\tcase 3:\n")

    def test_rejects_mismatched_value_term(self, config: BlurConfig, source: str) -> None:
        bad = source.replace("value_buffer[(i-1)&buffer_mask]", "value_buffer[(i-2)&buffer_mask]", 1)
        with pytest.raises(BlurVMError):
            BlurVM(config).load_text(bad)

    def test_select_case_requires_source(self, config: BlurConfig) -> None:
        with pytest.raises(BlurVMError):
            BlurVM(config).select_case(0)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


class TestDispatch:
    def test_saturates_to_max_power(self, vm: BlurVM) -> None:
        assert vm.select_case(10) == vm.select_case(MAX_POWER) == MAX_POWER

    def test_negative_strength_floors_to_zero(self, vm: BlurVM) -> None:
        assert vm.select_case(-3) == 0

    @pytest.mark.parametrize("pixel", [0, 3, 64, 128, 200, 255])
    def test_strength_ten_matches_six(self, vm: BlurVM, noise: np.ndarray, pixel: int) -> None:
        kwargs = dict(buffer=noise, buffer_length=256, bitmap_width=256)
        strong = vm.run(pixel, 0, 256, blur_power=10, **kwargs)
        top = vm.run(pixel, 0, 256, blur_power=MAX_POWER, **kwargs)
        assert strong == top

    def test_user_blur_offsets_strength(self, vm: BlurVM, noise: np.ndarray) -> None:
        kwargs = dict(buffer=noise, buffer_length=256, bitmap_width=256)
        vm.run(128, 0, 256, blur_power=1, user_blur=2, **kwargs)
        assert vm.last_case == 3
        vm.run(128, 0, 256, blur_power=1, user_blur=-5, **kwargs)
        assert vm.last_case == 0


# ---------------------------------------------------------------------------
# Fallback path
# ---------------------------------------------------------------------------


class TestFallbackPath:
    def test_left_edge_uses_only_in_range_neighbours(self, vm: BlurVM) -> None:
        """begin=0, end=10, buffer_length=10, p=0, radius=5."""
        buffer = (np.arange(16) * 10 + 5).astype(np.uint8)
        value = vm.run(
            0, 0, 10,
            buffer=buffer, buffer_length=10, bitmap_width=10, blur_power=2,
        )
        assert vm.last_path == "fallback"
        weights = raw_weights(5)[5:]  # offsets 0..5
        expected = sum(w * int(buffer[k]) for k, w in enumerate(weights)) // sum(weights)
        assert value == expected

    def test_right_edge(self, vm: BlurVM) -> None:
        buffer = np.zeros(16, dtype=np.uint8)
        buffer[9] = 250
        value = vm.run(
            9, 0, 10,
            buffer=buffer, buffer_length=10, bitmap_width=10, blur_power=0,
        )
        assert vm.last_path == "fallback"
        w = raw_weights(1)  # offsets -1, 0, +1; +1 is past end
        assert value == (w[1] * 250) // (w[0] + w[1])

    def test_wraps_through_mask(self, vm: BlurVM) -> None:
        """A window inside [begin, end) may straddle the end of the store."""
        buffer = np.full(16, 40, dtype=np.uint8)
        # begin=14, end=20 maps p=16.. onto i=0.. via the mask
        value = vm.run(
            2, 14, 20,
            buffer=buffer, buffer_length=16, bitmap_width=6, blur_power=0,
        )
        assert vm.last_path == "fallback"
        assert value == 40

    def test_no_neighbour_in_range_faults(self, vm: BlurVM) -> None:
        buffer = np.zeros(16, dtype=np.uint8)
        with pytest.raises(BlurVMError, match="division by zero"):
            # end == begin: p == begin == end, so even the centre is out of range
            vm.run(0, 4, 4, buffer=buffer, buffer_length=16, bitmap_width=4, blur_power=0)


# ---------------------------------------------------------------------------
# Fast path
# ---------------------------------------------------------------------------


class TestFastPath:
    @pytest.mark.parametrize("power", range(MAX_POWER + 1))
    def test_interior_uses_fast_path(self, vm: BlurVM, noise: np.ndarray, power: int) -> None:
        radius = (1 << power) | 1
        value = vm.run(
            128, 0, 256, buffer=noise, buffer_length=256, bitmap_width=256, blur_power=power,
        )
        assert vm.last_path == "fast"
        window = noise[128 - radius: 128 + radius + 1].astype(np.int64)
        assert value == int(np.dot(np.array(fast_weights(radius), dtype=np.int64), window)) >> 14

    @pytest.mark.parametrize("power", range(MAX_POWER + 1))
    def test_fast_agrees_with_full_window_average(
        self, vm: BlurVM, noise: np.ndarray, power: int,
    ) -> None:
        radius = (1 << power) | 1
        fast = vm.run(
            128, 0, 256, buffer=noise, buffer_length=256, bitmap_width=256, blur_power=power,
        )
        w = np.array(raw_weights(radius), dtype=np.int64)
        window = noise[128 - radius: 128 + radius + 1].astype(np.int64)
        average = int(np.dot(w, window)) // int(w.sum())
        assert abs(fast - average) <= 2

    def test_out_of_store_read_faults(self, vm: BlurVM) -> None:
        """buffer_length larger than the actual store lets the guard pass."""
        buffer = np.zeros(16, dtype=np.uint8)
        with pytest.raises(BlurVMError, match="outside sample buffer"):
            vm.run(10, 0, 64, buffer=buffer, buffer_length=64, bitmap_width=64, blur_power=3)


# ---------------------------------------------------------------------------
# Whole lines
# ---------------------------------------------------------------------------


class TestBlurLine:
    @pytest.mark.parametrize("power", range(MAX_POWER + 1))
    def test_flat_input_preserved(self, vm: BlurVM, power: int) -> None:
        flat = np.full(256, 200, dtype=np.uint8)
        line = vm.blur_line(0, 256, buffer=flat, buffer_length=256, bitmap_width=256, blur_power=power)
        assert line.dtype == np.uint8
        assert line.shape == (256,)
        assert line.min() >= 199
        assert line.max() <= 200

    def test_blur_reduces_variation(self, vm: BlurVM, noise: np.ndarray) -> None:
        sharp = vm.blur_line(0, 256, buffer=noise, buffer_length=256, bitmap_width=256, blur_power=0)
        soft = vm.blur_line(0, 256, buffer=noise, buffer_length=256, bitmap_width=256, blur_power=4)
        assert np.std(soft.astype(float)) < np.std(sharp.astype(float))


class TestCDiv:
    def test_truncates_toward_zero(self) -> None:
        assert c_div(7, 2) == 3
        assert c_div(-7, 2) == -3
        assert c_div(7, -2) == -3
        assert c_div(-7, -2) == 3

    def test_zero_divisor(self) -> None:
        with pytest.raises(ZeroDivisionError):
            c_div(1, 0)
