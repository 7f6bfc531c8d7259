import numpy as np
import pytest

import splinewarp.transform.engine as engine
from splinewarp.errors import OrderOutOfRange, SingularTransform
from splinewarp.geometry.output_window import OutputWindow, output_window
from splinewarp.interpolation.spline_plan import (
    MAX_ORDER,
    Boundary,
    InterpolationConfig,
)
from splinewarp.transform.engine import transform_image, warp_image


def ramp_image(h=8, w=10):
    yy, xx = np.mgrid[0:h, 0:w]
    return np.stack([xx + 10.0 * yy, 50.0 - xx, 3.0 * yy])


@pytest.mark.parametrize("boundary", list(Boundary))
@pytest.mark.parametrize("order", range(MAX_ORDER + 1))
def test_uniform_image_identity(boundary, order):
    img = np.full((3, 9, 11), 0.7)
    config = InterpolationConfig(order=order, boundary=boundary)
    out = transform_image(img, np.eye(3), config)
    assert out.shape == img.shape
    np.testing.assert_allclose(out, 0.7, atol=1e-6)


def test_identity_reproduces_image():
    img = ramp_image()
    np.testing.assert_allclose(transform_image(img, np.eye(3)), img, atol=1e-8)


def test_integer_translation_shifts_pixels():
    img = ramp_image()
    H = np.array([[1.0, 0, 2], [0, 1.0, 1], [0, 0, 1.0]])
    out = transform_image(img, H, InterpolationConfig(order=3,
                                                      fill_value=-1.0))
    np.testing.assert_allclose(out[:, 1:, 2:], img[:, :-1, :-2], atol=1e-8)
    # pixels whose source lies left of / above the image
    assert np.all(out[:, :, :2] == -1.0)
    assert np.all(out[:, 0, :] == -1.0)


def test_window_offset_selects_region():
    img = ramp_image()
    window = OutputWindow(3.0, 2.0, 4, 5)
    out = warp_image(img, np.eye(3), window)
    assert out.shape == (3, 5, 4)
    np.testing.assert_allclose(out, img[:, 2:7, 3:7], atol=1e-8)


def test_auto_window_of_translation_recovers_image():
    img = ramp_image()
    H = np.array([[1.0, 0, -4.0], [0, 1.0, 7.5], [0, 0, 1.0]])
    window = output_window("auto", H, 10, 8)
    np.testing.assert_allclose(warp_image(img, H, window), img, atol=1e-8)


def test_upscaling_interpolates_between_pixels():
    img = ramp_image()
    H = np.array([[2.0, 0, 0], [0, 2.0, 0], [0, 0, 1.0]])
    out = warp_image(img, H, OutputWindow(0.0, 0.0, 18, 14),
                     InterpolationConfig(order=1))
    # output (2i+1, 2j+1) samples source (i + 0.5, j + 0.5)
    np.testing.assert_allclose(out[0, 1::2, 1::2][:6, :8],
                               (img[0, :6, :8] + 5.5), atol=1e-8)


def test_singular_homography_builds_no_plan(monkeypatch):
    calls = []
    monkeypatch.setattr(engine, "spline_plan",
                        lambda *args: calls.append(args))
    H = np.array([[1.0, 2.0, 0], [2.0, 4.0, 0], [0, 0, 1.0]])
    with pytest.raises(SingularTransform):
        warp_image(ramp_image(), H, OutputWindow(0.0, 0.0, 4, 4))
    assert calls == []


def test_order_out_of_range_is_fatal():
    with pytest.raises(OrderOutOfRange):
        transform_image(ramp_image(), np.eye(3),
                        InterpolationConfig(order=MAX_ORDER + 1))


def test_plan_released_when_sampling_fails(monkeypatch):
    plans = []
    real_sample_points = engine.sample_points

    def failing_sample_points(plan, xs, ys):
        plans.append(plan)
        if len(plans) == 3:
            raise RuntimeError("sampling failed")
        return real_sample_points(plan, xs, ys)

    monkeypatch.setattr(engine, "sample_points", failing_sample_points)
    with pytest.raises(RuntimeError):
        transform_image(ramp_image(), np.eye(3))
    assert len(plans) == 3
    assert plans[0] is plans[2]
    assert plans[0].released


def test_constant_boundary_exact_domain_still_succeeds(capsys):
    img = np.full((1, 5, 6), 4.0)
    config = InterpolationConfig(boundary=Boundary.CONSTANT, larger=False)
    out = transform_image(img, np.eye(3), config)
    np.testing.assert_allclose(out, 4.0, atol=1e-6)
    assert "Parameter 'larger' changed to 1" in capsys.readouterr().err


def test_source_image_untouched():
    img = ramp_image()
    before = img.copy()
    H = np.array([[0.9, 0.1, 1.0], [-0.1, 0.9, 2.0], [1e-3, 0, 1.0]])
    warp_image(img, H, output_window("auto", H, 10, 8))
    np.testing.assert_array_equal(img, before)
