"""
B-spline interpolation plans.

A plan holds the prefiltered B-spline coefficients of a planar image
(channels first, ``(c, h, w)``) and can then be evaluated at any number of
real-valued points.  The usage pattern is create / sample ... / destroy:

    plan = create_plan(image, order=5, boundary=Boundary.HSYMMETRIC,
                       precision=1e-6, larger=False)
    values = sample(plan, 1.3, 2.4)      # one value per channel
    destroy_plan(plan)

or, with guaranteed release, ``with spline_plan(image, config) as plan``.

Prefiltering and evaluation are done by ``scipy.ndimage``; this module maps
the boundary extensions onto its modes and optionally enlarges the domain
with a margin wide enough for the requested precision.
"""

import math
import sys
from contextlib import contextmanager
from enum import Enum
from typing import NamedTuple

import numpy as np
from scipy import ndimage

from splinewarp.errors import (
    InvalidPrecision,
    OrderOutOfRange,
    PlanReleased,
    ResourceCreationFailure,
    UnsupportedBoundary,
)

# Highest spline order scipy.ndimage can prefilter and evaluate.
MAX_ORDER = 5


class Boundary(Enum):
    CONSTANT = "constant"
    PERIODIC = "periodic"
    HSYMMETRIC = "hsymmetric"
    WSYMMETRIC = "wsymmetric"


# boundary -> (numpy.pad mode for the enlarged domain, scipy.ndimage mode)
_MODES = {
    Boundary.CONSTANT:   ("constant",  "grid-constant"),
    Boundary.PERIODIC:   ("wrap",      "grid-wrap"),
    Boundary.HSYMMETRIC: ("symmetric", "reflect"),
    Boundary.WSYMMETRIC: ("reflect",   "mirror"),
}

# Pole of largest modulus of the B-spline prefilter, per order.
_DOMINANT_POLE = {
    2: math.sqrt(8.0) - 3.0,
    3: math.sqrt(3.0) - 2.0,
    4: -0.361341225900220177092,
    5: -0.430575347099973791851,
}


class InterpolationConfig(NamedTuple):
    order: int = MAX_ORDER
    boundary: Boundary = Boundary.HSYMMETRIC
    precision: float = 1e-6
    larger: bool = False
    extrapolate: bool = False
    fill_value: float = 0.0


class SplinePlan:
    """Prefiltered coefficients plus everything needed to evaluate them.

    Read-only once built, so concurrent ``sample_points`` calls on the same
    plan are safe.  Only ``destroy_plan`` mutates it.
    """

    def __init__(self, coefficients, order, boundary, mode, margin,
                 width, height, extrapolate, fill_value):
        self.coefficients = coefficients
        self.order = order
        self.boundary = boundary
        self.mode = mode
        self.margin = margin
        self.width = width
        self.height = height
        self.extrapolate = extrapolate
        self.fill_value = fill_value

    @property
    def channels(self) -> int:
        return 0 if self.coefficients is None else self.coefficients.shape[0]

    @property
    def released(self) -> bool:
        return self.coefficients is None


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------

def check_order(order) -> int:
    """Return *order* as an int, or raise ``OrderOutOfRange``."""
    try:
        value = float(order)
    except (TypeError, ValueError):
        raise OrderOutOfRange(f"order must be an integer, got {order!r}") from None
    if not value.is_integer():
        raise OrderOutOfRange(f"order must be an integer, got {order!r}")
    order = int(value)
    if order < 0 or order > MAX_ORDER:
        raise OrderOutOfRange(
            f"the maximal order authorized is {MAX_ORDER}, got {order}")
    return order


def parse_boundary(name) -> Boundary:
    """Resolve a boundary name, accepting any non-empty prefix."""
    if isinstance(name, Boundary):
        return name
    key = str(name).strip().lower()
    if key:
        for boundary in Boundary:
            if boundary.value.startswith(key):
                return boundary
    raise UnsupportedBoundary(f"unknown boundary condition {name!r}")


def fix_precision(eps: float) -> float:
    """Normalise a precision: ``eps >= 1`` means ``10**-ceil(eps)``."""
    eps = float(eps)
    if eps >= 1:
        eps = 0.1 ** math.ceil(eps)
    if not 0 < eps <= 1:
        raise InvalidPrecision(
            f"relative precision must lie in (0, 1], got {eps}")
    return eps


def check_domain(boundary: Boundary, larger: bool) -> bool:
    """Return the effective *larger* flag for *boundary*.

    The constant extension only makes sense on the enlarged domain; asking
    for it on the exact domain is corrected with a message on stderr.
    """
    if boundary is Boundary.CONSTANT and not larger:
        print("The constant extension is not compatible with computations "
              "in the exact domain.\n\tParameter 'larger' changed to 1.",
              file=sys.stderr)
        return True
    return bool(larger)


def domain_margin(order: int, precision: float) -> int:
    """Padding (pixels per side) used on the enlarged domain.

    The prefilter's impulse response decays like ``|z|**k`` for the dominant
    pole *z*; the margin is where that drops below *precision*, plus the
    half-support of the spline kernel.
    """
    support = (order + 1) // 2
    z = _DOMINANT_POLE.get(order)
    if z is None:
        return support
    return int(math.ceil(math.log(precision) / math.log(abs(z)))) + support


def interpolation_config(section=None) -> InterpolationConfig:
    """Build an ``InterpolationConfig`` from a config-file section (a dict)."""
    section = section or {}
    defaults = InterpolationConfig()
    return InterpolationConfig(
        order=check_order(section.get("order", defaults.order)),
        boundary=parse_boundary(section.get("boundary",
                                            defaults.boundary)),
        precision=fix_precision(section.get("precision", defaults.precision)),
        larger=bool(section.get("larger", defaults.larger)),
        extrapolate=bool(section.get("extrapolate", defaults.extrapolate)),
        fill_value=float(section.get("fill_value", defaults.fill_value)),
    )


# ---------------------------------------------------------------------------
# Plan lifecycle
# ---------------------------------------------------------------------------

def _as_planes(image) -> np.ndarray:
    planes = np.asarray(image, dtype=np.float64)
    if planes.ndim == 2:
        planes = planes[np.newaxis]
    if planes.ndim != 3 or min(planes.shape) == 0:
        raise ResourceCreationFailure(
            f"expected a non-empty (channels, height, width) image, "
            f"got shape {planes.shape}")
    if not np.all(np.isfinite(planes)):
        raise ResourceCreationFailure("image contains non-finite values")
    return planes


def create_plan(image, order: int, boundary, precision: float,
                larger: bool, extrapolate: bool = False,
                fill_value: float = 0.0) -> SplinePlan:
    """Prefilter *image* and return a plan ready for sampling.

    Parameters
    ----------
    image : np.ndarray
        ``(c, h, w)`` planar image (a 2-D array is taken as one channel).
        It is only read.
    order : int
        Spline order in ``[0, MAX_ORDER]``.
    boundary : Boundary or str
        Boundary extension.
    precision : float
        Relative precision in (0, 1]; sets the enlarged-domain margin.
    larger : bool
        Build the spline over an enlarged domain instead of the exact one.
    extrapolate : bool
        Evaluate outside the image rectangle instead of returning
        *fill_value* there.
    fill_value : float
        Value of points outside the image (and of points at infinity).
    """
    order = check_order(order)
    boundary = parse_boundary(boundary)
    if not 0 < precision <= 1:
        raise InvalidPrecision(
            f"relative precision must lie in (0, 1], got {precision}")
    larger = check_domain(boundary, larger)
    planes = _as_planes(image)
    height, width = planes.shape[1:]

    pad_mode, mode = _MODES[boundary]
    margin = domain_margin(order, precision) if larger else 0
    try:
        if margin:
            pad = ((0, 0), (margin, margin), (margin, margin))
            planes = np.pad(planes, pad, mode=pad_mode)
        elif boundary is Boundary.HSYMMETRIC:
            # the half-symmetric extension is the 2w x 2h periodic one of
            # the image followed by its mirror
            planes = np.concatenate([planes, planes[:, ::-1]], axis=1)
            planes = np.concatenate([planes, planes[:, :, ::-1]], axis=2)
            mode = "grid-wrap"
        if order > 1:
            coefficients = np.stack([
                ndimage.spline_filter(p, order=order, output=np.float64,
                                      mode=mode)
                for p in planes
            ])
        else:
            coefficients = planes.copy()
    except (RuntimeError, ValueError, MemoryError) as exc:
        raise ResourceCreationFailure(
            f"could not build the order-{order} spline: {exc}") from exc

    return SplinePlan(coefficients, order, boundary, mode, margin,
                      width=width, height=height,
                      extrapolate=bool(extrapolate),
                      fill_value=float(fill_value))


def _fold(t: np.ndarray, n: int, boundary: Boundary) -> np.ndarray:
    """Bring coordinates outside ``[-0.5, n-0.5]`` back into the image.

    Used on the enlarged domain, whose padding only holds the boundary
    extension up to the margin.
    """
    outside = (t < -0.5) | (t > n - 0.5)
    if boundary is Boundary.PERIODIC:
        folded = np.mod(t + 0.5, n) - 0.5
    elif boundary is Boundary.HSYMMETRIC:
        folded = np.mod(t + 0.5, 2 * n)
        folded = np.where(folded >= n, 2 * n - folded, folded) - 0.5
    elif boundary is Boundary.WSYMMETRIC:
        if n == 1:
            folded = np.zeros_like(t)
        else:
            folded = np.mod(t, 2 * n - 2)
            folded = np.where(folded > n - 1, 2 * n - 2 - folded, folded)
    else:
        return t
    return np.where(outside, folded, t)


def sample_points(plan: SplinePlan, xs, ys) -> np.ndarray:
    """Evaluate *plan* at the points ``(xs[k], ys[k])``.

    Returns
    -------
    np.ndarray
        ``(c, N)`` array, one row per channel.
    """
    if plan.released:
        raise PlanReleased("the spline plan has already been destroyed")

    xs = np.asarray(xs, dtype=float).ravel()
    ys = np.asarray(ys, dtype=float).ravel()
    valid = np.isfinite(xs) & np.isfinite(ys)
    if not plan.extrapolate:
        valid &= ((xs >= -0.5) & (xs <= plan.width - 0.5) &
                  (ys >= -0.5) & (ys <= plan.height - 0.5))

    out = np.full((plan.channels, xs.size), plan.fill_value, dtype=np.float64)
    if np.any(valid):
        xv, yv = xs[valid], ys[valid]
        if plan.margin:
            xv = _fold(xv, plan.width, plan.boundary)
            yv = _fold(yv, plan.height, plan.boundary)
        coords = np.vstack([yv + plan.margin, xv + plan.margin])
        for k, coefficients in enumerate(plan.coefficients):
            out[k, valid] = ndimage.map_coordinates(
                coefficients, coords, order=plan.order, mode=plan.mode,
                cval=0.0, prefilter=False)
    return out


def sample(plan: SplinePlan, x: float, y: float) -> np.ndarray:
    """Evaluate *plan* at one point; returns one value per channel."""
    return sample_points(plan, [x], [y])[:, 0]


def destroy_plan(plan: SplinePlan) -> None:
    """Release the coefficients held by *plan*.  Safe to call twice."""
    plan.coefficients = None


@contextmanager
def spline_plan(image, config: InterpolationConfig):
    """Create a plan from *config* and destroy it on every exit path."""
    plan = create_plan(image, config.order, config.boundary,
                       config.precision, config.larger,
                       extrapolate=config.extrapolate,
                       fill_value=config.fill_value)
    try:
        yield plan
    finally:
        destroy_plan(plan)
