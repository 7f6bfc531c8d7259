"""
Homographic transformation of an image by inverse warping.

Every output pixel is mapped back into the source image through H⁻¹ and
the source is evaluated there with a B-spline interpolation plan.  The
output window is given in the coordinate frame of the transformed image
(see ``splinewarp.geometry.output_window``).
"""

from typing import Optional

import numpy as np

from splinewarp.geometry.homography import apply_homography, invert_homography
from splinewarp.geometry.output_window import OutputWindow
from splinewarp.interpolation.spline_plan import (
    InterpolationConfig,
    sample_points,
    spline_plan,
)


def warp_image(img: np.ndarray, H: np.ndarray, window: OutputWindow,
               config: Optional[InterpolationConfig] = None) -> np.ndarray:
    """Apply homography *H* to *img* and resample it on *window*.

    The output is walked row by row; pixel (i, j) of row j is the point
    ``(x0 + i, y0 + j)``, sent to ``H⁻¹ (x0 + i, y0 + j)`` in the source and
    sampled there.  Pixels are independent of one another, so any traversal
    order yields the same result.

    Parameters
    ----------
    img : np.ndarray
        ``(c, h, w)`` planar source image (2-D for a single channel).  Not
        modified.
    H : np.ndarray
        3 x 3 homography mapping source coordinates to output coordinates.
    window : OutputWindow
        Origin and size of the output grid.
    config : InterpolationConfig, optional
        Spline order, boundary extension, precision and domain options.

    Returns
    -------
    np.ndarray
        ``(c, window.height, window.width)`` float64 image.

    Raises
    ------
    SingularTransform
        If *H* cannot be inverted; no plan is built in that case.
    """
    config = config or InterpolationConfig()
    H_inv = invert_homography(H)

    planes = np.asarray(img, dtype=np.float64)
    if planes.ndim == 2:
        planes = planes[np.newaxis]
    x0, y0, w_out, h_out = window
    warped = np.empty((planes.shape[0], h_out, w_out), dtype=np.float64)
    xs = np.arange(w_out, dtype=np.float64) + x0

    with spline_plan(planes, config) as plan:
        for j in range(h_out):
            p_out = np.vstack([xs, np.full(w_out, j + y0)])
            p_in = apply_homography(H_inv, p_out)
            warped[:, j, :] = sample_points(plan, p_in[0], p_in[1])

    return warped


def transform_image(img: np.ndarray, H: np.ndarray,
                    config: Optional[InterpolationConfig] = None) -> np.ndarray:
    """Apply *H* to *img* keeping the source rectangle as output window."""
    planes = np.asarray(img)
    h, w = planes.shape[-2:]
    return warp_image(img, H, OutputWindow(0.0, 0.0, w, h), config)
