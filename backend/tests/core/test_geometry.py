import pytest

from labeler.core import geometry
from labeler.core.geometry import PixelRect


def test_normalize_divides_by_container():
    assert geometry.normalize(200, 150, 800, 600) == (0.25, 0.25)


@pytest.mark.parametrize("width,height", [(0, 0), (None, None)])
def test_normalize_unmeasured_container_uses_unit_divisor(width, height):
    # No division error before the container has been measured
    assert geometry.normalize(42.0, 7.0, width, height) == (42.0, 7.0)


def test_normalize_zero_width_only_guards_that_axis():
    assert geometry.normalize(10, 50, 0, 100) == (10, 0.5)


def test_denormalize_inverts_normalize():
    nx, ny = geometry.normalize(123.0, 456.0, 1000.0, 800.0)
    x, y = geometry.denormalize(nx, ny, 1000.0, 800.0)
    assert x == pytest.approx(123.0)
    assert y == pytest.approx(456.0)


def test_box_is_order_independent():
    a, b = (0.8, 0.1), (0.2, 0.9)
    assert geometry.box(a, b) == (0.2, 0.1, 0.8, 0.9)
    assert geometry.box(b, a) == geometry.box(a, b)


def test_box_degenerate_point():
    assert geometry.box((0.3, 0.3), (0.3, 0.3)) == (0.3, 0.3, 0.3, 0.3)


def test_clamp_unit():
    assert geometry.clamp_unit(-0.2) == 0.0
    assert geometry.clamp_unit(1.7) == 1.0
    assert geometry.clamp_unit(0.4) == 0.4


def test_box_rect_from_reversed_corners():
    rect = geometry.box_rect(300, 200, 100, 50)
    assert rect == PixelRect(left=100, top=50, width=200, height=150)
    assert rect.as_dict() == {"left": 100, "top": 50, "width": 200, "height": 150}


def test_normalized_box_rect_scales_with_container():
    bounds = (0.1, 0.2, 0.5, 0.6)
    small = geometry.normalized_box_rect(bounds, 100, 100)
    large = geometry.normalized_box_rect(bounds, 1000, 500)
    assert small.left == pytest.approx(10)
    assert small.width == pytest.approx(40)
    assert large.top == pytest.approx(100)
    assert large.height == pytest.approx(200)


def test_box_contains_is_inclusive():
    bounds = (0.1, 0.1, 0.5, 0.5)
    assert geometry.box_contains(bounds, 0.1, 0.5)
    assert geometry.box_contains(bounds, 0.3, 0.3)
    assert not geometry.box_contains(bounds, 0.51, 0.3)
