"""
Projective (homography) math on 2-D points.

A planar homography is a 3x3 matrix acting on homogeneous coordinates
``[x, y, 1]``; the transformed point is recovered by perspective division.
Points are handled as 2 x N arrays of (x, y) coordinates, x along image
columns and y along image rows.  Nothing in this module keeps state.
"""

import re

import numpy as np

from splinewarp.errors import MalformedHomography, SingularTransform

# Relative determinant below which a homography is treated as singular.
DET_TOLERANCE = 1e-12

_NUMBER = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")


def as_homography(values) -> np.ndarray:
    """Return *values* (nine numbers, flat or 3 x 3) as a float 3 x 3 matrix."""
    H = np.asarray(values, dtype=float)
    if H.size != 9:
        raise MalformedHomography(
            f"a homography needs 9 coefficients, got {H.size}")
    H = H.reshape(3, 3)
    if not np.all(np.isfinite(H)):
        raise MalformedHomography("homography coefficients must be finite")
    return H


def parse_numbers(text: str) -> list:
    """Extract every real number from *text*, in order."""
    return [float(f) for f in _NUMBER.findall(text)]


def parse_homography(text: str) -> np.ndarray:
    """Parse nine row-major coefficients from *text*.

    Any non-numeric characters act as separators, so
    ``"1 0 0; 0 1 0; 0 0 1"`` and ``"1,0,0,0,1,0,0,0,1"`` are equivalent.
    """
    fields = parse_numbers(text)
    if len(fields) != 9:
        raise MalformedHomography(
            f"wrong number of parameters in homography: expected 9, "
            f"got {len(fields)}")
    return as_homography(fields)


def format_homography(H: np.ndarray) -> str:
    """Format *H* as ``"h11 h12 h13; h21 h22 h23; h31 h32 h33"``."""
    H = as_homography(H)
    return "; ".join(" ".join(f"{v:.17g}" for v in row) for row in H)


def invert_homography(H: np.ndarray) -> np.ndarray:
    """Invert a 3x3 homography.

    The determinant is measured on *H* scaled so its largest coefficient is
    one, which makes the singularity test independent of the overall scale
    of the (projectively equivalent) matrix.

    Raises
    ------
    SingularTransform
        If the scaled determinant is below ``DET_TOLERANCE``.
    """
    H = as_homography(H)
    scale = np.max(np.abs(H))
    if scale == 0 or abs(np.linalg.det(H / scale)) < DET_TOLERANCE:
        raise SingularTransform("homography is not invertible")
    return np.linalg.inv(H)


def apply_homography(H: np.ndarray, points: np.ndarray) -> np.ndarray:
    """Apply a homography to one point or a set of (x, y) coordinates.

    Parameters
    ----------
    H : np.ndarray
        3 x 3 homography matrix.
    points : np.ndarray
        Either a single ``(x, y)`` pair or a 2 x N array of coordinates.

    Returns
    -------
    np.ndarray
        Transformed coordinates with the same shape as *points*.  A point
        whose perspective divisor is zero comes back non-finite (inf/nan);
        callers decide what such a point at infinity means for them.
    """
    H = as_homography(H)
    pts = np.asarray(points, dtype=float)
    single = pts.ndim == 1
    if single:
        pts = pts.reshape(2, 1)

    ones = np.ones((1, pts.shape[1]))
    transformed = H @ np.vstack([pts, ones])
    with np.errstate(divide="ignore", invalid="ignore"):
        transformed = transformed[:2] / transformed[2:3]

    return transformed[:, 0] if single else transformed


def _normalizing_transform(pts: np.ndarray) -> np.ndarray:
    """Similarity moving the centroid to 0 with mean distance sqrt(2)."""
    centroid = pts.mean(axis=1)
    avg_dist = np.mean(np.sqrt(np.sum((pts - centroid[:, None]) ** 2, axis=0)))
    if avg_dist < 1e-10:
        avg_dist = 1.0
    s = np.sqrt(2) / avg_dist
    return np.array([
        [s, 0, -s * centroid[0]],
        [0, s, -s * centroid[1]],
        [0, 0,  1              ],
    ])


def compute_homography(pts1: np.ndarray, pts2: np.ndarray) -> np.ndarray:
    """Estimate the homography mapping four points onto four others.

    Uses the Direct Linear Transform (DLT): each correspondence contributes
    two linear equations in the nine homography entries.  With four points
    the system is exactly determined (up to scale) and solved via SVD on
    Hartley-normalised coordinates.

    Parameters
    ----------
    pts1 : np.ndarray
        2 x 4 array of (x, y) source coordinates.
    pts2 : np.ndarray
        2 x 4 array of (x, y) destination coordinates.

    Returns
    -------
    H : np.ndarray
        3 x 3 homography (normalised so H[2, 2] == 1) such that
        ``pts2 ≈ H @ pts1`` in homogeneous coordinates.

    Raises
    ------
    SingularTransform
        If three of the points are collinear, or the solution sends the
        origin to infinity (H[2, 2] == 0).
    """
    pts1 = np.asarray(pts1, dtype=float).reshape(2, 4)
    pts2 = np.asarray(pts2, dtype=float).reshape(2, 4)
    T1 = _normalizing_transform(pts1)
    T2 = _normalizing_transform(pts2)
    n1 = apply_homography(T1, pts1)
    n2 = apply_homography(T2, pts2)

    A = []
    for i in range(4):
        x1, y1 = n1[0, i], n1[1, i]
        x2, y2 = n2[0, i], n2[1, i]

        A.append([-x1, -y1, -1,  0,   0,  0, x2 * x1, x2 * y1, x2])
        A.append([ 0,   0,  0, -x1, -y1, -1, y2 * x1, y2 * y1, y2])

    A = np.array(A, dtype=float)
    _, S, Vt = np.linalg.svd(A)
    # A is 8 x 9: a unique solution needs all eight singular values non-zero
    if S[-1] < 1e-10 * S[0]:
        raise SingularTransform("degenerate point configuration")

    H = np.linalg.inv(T2) @ Vt[-1].reshape(3, 3) @ T1
    if abs(H[2, 2]) < 1e-12 * np.max(np.abs(H)):
        raise SingularTransform("homography sends the origin to infinity")
    H = H / H[2, 2]
    invert_homography(H)
    return H
