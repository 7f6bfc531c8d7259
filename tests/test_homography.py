import numpy as np
import pytest

from splinewarp.errors import MalformedHomography, SingularTransform
from splinewarp.geometry.homography import (
    apply_homography,
    compute_homography,
    format_homography,
    invert_homography,
    parse_homography,
)

PERSPECTIVE = np.array([
    [0.9,   0.15, 12.0],
    [-0.1,  1.1,  -4.0],
    [1e-4,  2e-4,  1.0],
])


def test_invert_identity_is_identity():
    np.testing.assert_allclose(invert_homography(np.eye(3)), np.eye(3))


def test_double_inversion_recovers_matrix():
    np.testing.assert_allclose(invert_homography(invert_homography(PERSPECTIVE)),
                               PERSPECTIVE, atol=1e-12)


def test_apply_then_inverse_round_trip():
    pts = np.array([[0.0, 10.5, -3.25, 200.0],
                    [0.0, 7.75, 40.0,  -15.0]])
    back = apply_homography(invert_homography(PERSPECTIVE),
                            apply_homography(PERSPECTIVE, pts))
    np.testing.assert_allclose(back, pts, atol=1e-9)


def test_apply_single_point_does_perspective_division():
    H = np.array([[2.0, 0, 0], [0, 2.0, 0], [0, 0, 2.0]])
    np.testing.assert_allclose(apply_homography(H, np.array([3.0, -4.0])),
                               [3.0, -4.0])

    T = np.array([[1.0, 0, 5], [0, 1.0, -2], [0, 0, 1]])
    x, y = apply_homography(T, (1.5, 2.5))
    assert x == pytest.approx(6.5)
    assert y == pytest.approx(0.5)


def test_point_at_infinity_is_not_finite():
    H = np.array([[1.0, 0, 0], [0, 1.0, 0], [1.0, 0, 0]])
    p = apply_homography(H, np.array([0.0, 3.0]))
    assert not np.all(np.isfinite(p))


def test_singular_homography_rejected():
    H = np.array([[1.0, 2.0, 3.0], [2.0, 4.0, 6.0], [0, 0, 1.0]])
    with pytest.raises(SingularTransform):
        invert_homography(H)
    with pytest.raises(SingularTransform):
        invert_homography(np.zeros((3, 3)))


def test_singularity_test_ignores_overall_scale():
    # projectively the identity; its raw determinant is tiny
    invert_homography(1e-6 * np.eye(3))


def test_parse_homography_separators():
    expected = np.array([[1, 0, 10], [0, 1, -5.5], [0, 0, 1]], dtype=float)
    for text in ("1 0 10; 0 1 -5.5; 0 0 1",
                 "1,0,10,0,1,-5.5,0,0,1",
                 "1 0 1e1 0 1 -5.5 0 0 1"):
        np.testing.assert_array_equal(parse_homography(text), expected)


@pytest.mark.parametrize("text", ["", "1 0 0 0 1 0 0 0", "1 0 0 0 1 0 0 0 1 7",
                                  "identity"])
def test_parse_homography_needs_nine_numbers(text):
    with pytest.raises(MalformedHomography):
        parse_homography(text)


def test_format_homography_parses_back():
    np.testing.assert_array_equal(parse_homography(format_homography(PERSPECTIVE)),
                                  PERSPECTIVE)


def test_compute_homography_maps_the_four_points():
    src = np.array([[0.0, 100.0, 100.0, 0.0],
                    [0.0, 0.0,   80.0,  80.0]])
    dst = np.array([[10.0, 95.0, 110.0, -5.0],
                    [5.0,  0.0,  90.0,  85.0]])
    H = compute_homography(src, dst)
    assert H[2, 2] == pytest.approx(1.0)
    np.testing.assert_allclose(apply_homography(H, src), dst, atol=1e-8)


def test_compute_homography_recovers_translation():
    src = np.array([[0.0, 1.0, 1.0, 0.0], [0.0, 0.0, 1.0, 1.0]])
    H = compute_homography(src, src + np.array([[3.0], [-2.0]]))
    np.testing.assert_allclose(H, [[1, 0, 3], [0, 1, -2], [0, 0, 1]],
                               atol=1e-10)


def test_compute_homography_rejects_collinear_points():
    src = np.array([[0.0, 1.0, 2.0, 0.0], [0.0, 1.0, 2.0, 5.0]])
    dst = np.array([[0.0, 1.0, 1.0, 0.0], [0.0, 0.0, 1.0, 1.0]])
    with pytest.raises(SingularTransform):
        compute_homography(src, dst)
