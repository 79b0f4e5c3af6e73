from __future__ import annotations

import pytest

from preset_resizer.dimension_resolver import normalize_requested, resolve_dimensions


@pytest.mark.parametrize("size", [(1, 1), (4000, 3000), (123, 4567)])
def test_no_request_keeps_original_size(size):
    assert resolve_dimensions(*size, None, None) == size


def test_width_only_derives_height_from_ratio():
    assert resolve_dimensions(4000, 3000, 1280, None) == (1280, 960)


def test_height_only_derives_width_from_ratio():
    assert resolve_dimensions(4000, 3000, None, 600) == (800, 600)


def test_both_requested_never_upscale():
    assert resolve_dimensions(500, 500, 2000, 2000) == (500, 500)


def test_both_requested_are_clamped_per_axis_without_ratio_fix():
    assert resolve_dimensions(4000, 3000, 1280, 720) == (1280, 720)
    assert resolve_dimensions(1000, 300, 800, 600) == (800, 300)


def test_width_larger_than_original_keeps_original_width():
    assert resolve_dimensions(640, 480, 5000, None) == (640, 480)


def test_height_larger_than_original_keeps_original_height():
    assert resolve_dimensions(640, 480, None, 5000) == (640, 480)


@pytest.mark.parametrize(
    "original,requested_width",
    [((4000, 3000), 1280), ((333, 777), 100), ((1921, 1081), 1919), ((7, 3), 5)],
)
def test_width_only_height_matches_rounded_ratio(original, requested_width):
    ow, oh = original
    width, height = resolve_dimensions(ow, oh, requested_width, None)
    assert width == requested_width
    assert height == min(int(requested_width * oh / ow + 0.5), oh)
    assert height <= oh


def test_rounding_is_half_up():
    # 3 / (2/1) = 1.5 -> 2
    assert resolve_dimensions(2, 1, 3, None) == (2, 1)
    assert resolve_dimensions(4, 2, 3, None) == (3, 2)


def test_normalize_requested_treats_non_positive_as_absent():
    assert normalize_requested(None) is None
    assert normalize_requested(0) is None
    assert normalize_requested(-10) is None
    assert normalize_requested(720) == 720
