"""
Error taxonomy for the homography transform pipeline.

Every failure is deterministic: retrying with the same inputs reproduces it,
so nothing here is retried.  The CLI catches ``SplineWarpError`` and turns it
into a non-zero exit status.
"""


class SplineWarpError(ValueError):
    """Base class for all pipeline errors."""


class SingularTransform(SplineWarpError):
    """The homography is not invertible, or maps a needed point to infinity."""


class MalformedHomography(SplineWarpError):
    """The homography does not consist of exactly nine finite numbers."""


class MalformedGeometry(SplineWarpError):
    """The geometry string does not match ``WxH[(+|-)X(+|-)Y]|auto|center``."""


class UnsupportedBoundary(SplineWarpError):
    """Unknown boundary extension name."""


class OrderOutOfRange(SplineWarpError):
    """Interpolation order outside ``[0, MAX_ORDER]``."""


class InvalidPrecision(SplineWarpError):
    """Relative precision outside ``(0, 1]`` after normalisation."""


class ResourceCreationFailure(SplineWarpError):
    """The spline plan could not be built for the given image/parameters."""


class PlanReleased(SplineWarpError):
    """A spline plan was sampled after being destroyed."""
