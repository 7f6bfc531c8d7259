"""
Output window resolution.

The output of a transform is a ``wout x hout`` grid whose pixel (i, j) sits
at ``(x0 + i, y0 + j)`` in the coordinate frame of the *transformed* image.
The window is described in one of four mutually exclusive ways:

* default  - the source rectangle itself, ``(0, 0, w, h)``;
* explicit - ``WxH`` or ``WxH(+|-)X(+|-)Y``;
* auto     - bounding box of the transformed source corners;
* center   - the source rectangle translated so that the image centre
  stays where the homography sends it.

A geometry string is parsed once into a ``GeometrySpec`` and dispatched once
by ``resolve_window``.
"""

import math
import re
from enum import Enum
from typing import NamedTuple, Optional

import numpy as np

from splinewarp.errors import MalformedGeometry, SingularTransform
from splinewarp.geometry.homography import apply_homography


class GeometryMode(Enum):
    DEFAULT = "default"
    EXPLICIT = "explicit"
    AUTO = "auto"
    CENTER = "center"


class GeometrySpec(NamedTuple):
    mode: GeometryMode
    width: int = 0
    height: int = 0
    x0: float = 0.0
    y0: float = 0.0


class OutputWindow(NamedTuple):
    x0: float
    y0: float
    width: int
    height: int


DEFAULT_GEOMETRY = GeometrySpec(GeometryMode.DEFAULT)

_REAL = r"[-+](?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?"
_EXPLICIT = re.compile(
    rf"^\s*([-+]?\d+)x([-+]?\d+)(?:({_REAL})({_REAL}))?\s*$")


def parse_geometry(text: Optional[str]) -> GeometrySpec:
    """Parse a geometry string into a ``GeometrySpec``.

    ``None`` selects the default window.  The keywords may be abbreviated
    to any non-empty prefix (``a``, ``cent``...).

    Raises
    ------
    MalformedGeometry
        If *text* is neither a keyword nor ``WxH`` / ``WxH+X+Y`` with
        positive integer W and H.
    """
    if text is None:
        return DEFAULT_GEOMETRY

    g = text.strip()
    if g and "center".startswith(g):
        return GeometrySpec(GeometryMode.CENTER)
    if g and "auto".startswith(g):
        return GeometrySpec(GeometryMode.AUTO)

    m = _EXPLICIT.match(text)
    if m is None:
        raise MalformedGeometry(f"wrong format for geometry: {text!r}")
    width, height = int(m.group(1)), int(m.group(2))
    if width <= 0 or height <= 0:
        raise MalformedGeometry(
            f"geometry size must be positive, got {width}x{height}")
    x0 = float(m.group(3)) if m.group(3) is not None else 0.0
    y0 = float(m.group(4)) if m.group(4) is not None else 0.0
    return GeometrySpec(GeometryMode.EXPLICIT, width, height, x0, y0)


def _auto_window(H: np.ndarray, width: int, height: int) -> OutputWindow:
    corners = np.array([
        [0, width, 0,      width ],
        [0, 0,     height, height],
    ], dtype=float)
    warped = apply_homography(H, corners)
    if not np.all(np.isfinite(warped)):
        raise SingularTransform(
            "a corner of the image is sent to infinity; "
            "its bounding box is undefined")

    x_min, y_min = warped.min(axis=1)
    x_max, y_max = warped.max(axis=1)
    # ceil so the box covers the whole transformed image
    wout = int(math.ceil(x_max - x_min))
    hout = int(math.ceil(y_max - y_min))
    if wout <= 0 or hout <= 0:
        raise SingularTransform(
            "the transformed image has an empty bounding box")
    return OutputWindow(float(x_min), float(y_min), wout, hout)


def _center_window(H: np.ndarray, width: int, height: int) -> OutputWindow:
    c = apply_homography(H, np.array([width / 2.0, height / 2.0]))
    if not np.all(np.isfinite(c)):
        raise SingularTransform("the image center is sent to infinity")
    return OutputWindow(float(c[0] - width / 2.0), float(c[1] - height / 2.0),
                        width, height)


def resolve_window(spec: GeometrySpec, H: np.ndarray,
                   width: int, height: int) -> OutputWindow:
    """Compute the output window for a source image of size *width* x *height*.

    Parameters
    ----------
    spec : GeometrySpec
        Parsed geometry request.
    H : np.ndarray
        3 x 3 forward homography (source -> output frame).
    width, height : int
        Source image size.

    Returns
    -------
    OutputWindow
        ``(x0, y0, width, height)`` with positive integer size.
    """
    if spec.mode is GeometryMode.EXPLICIT:
        return OutputWindow(spec.x0, spec.y0, spec.width, spec.height)
    if spec.mode is GeometryMode.AUTO:
        return _auto_window(H, width, height)
    if spec.mode is GeometryMode.CENTER:
        return _center_window(H, width, height)
    return OutputWindow(0.0, 0.0, width, height)


def output_window(text: Optional[str], H: np.ndarray,
                  width: int, height: int) -> OutputWindow:
    """Parse *text* and resolve it in one step."""
    return resolve_window(parse_geometry(text), H, width, height)
