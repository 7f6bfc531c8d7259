"""
Image I/O helpers.

Thin wrappers around PIL and numpy converting between image files and the
planar ``(channels, height, width)`` float64 arrays used by the transform.
"""

import os
import tempfile

import numpy as np
from PIL import Image

# PIL modes read as-is; anything else is converted to RGB.
_KEEP_MODES = ("L", "LA", "RGB", "RGBA", "I", "I;16", "F")


def read_image(path: str) -> np.ndarray:
    """Load an image as a planar float64 array.

    ``.npy`` files are loaded directly (2-D arrays become one channel).
    16-bit and float images keep their value range; 8-bit images stay in
    [0, 255].

    Returns
    -------
    np.ndarray
        ``(c, h, w)`` float64 array.
    """
    if path.lower().endswith(".npy"):
        planes = np.load(path).astype(np.float64)
        if planes.ndim == 2:
            planes = planes[np.newaxis]
        return planes

    with Image.open(path) as im:
        if im.mode not in _KEEP_MODES:
            im = im.convert("RGB")
        pixels = np.array(im, dtype=np.float64)

    if pixels.ndim == 2:
        return pixels[np.newaxis]
    return np.ascontiguousarray(np.moveaxis(pixels, -1, 0))


def write_image(path: str, planes: np.ndarray) -> None:
    """Save a planar ``(c, h, w)`` image.

    ``.npy`` stores the raw float64 values, a single-channel ``.tif``/``.tiff``
    is written as 32-bit float, and every other format is rounded and
    clipped to 8 bits (1, 2, 3 or 4 channels).  The file is written under a
    temporary name and moved into place, so *path* never holds a partial
    image.
    """
    planes = np.asarray(planes, dtype=np.float64)
    if planes.ndim == 2:
        planes = planes[np.newaxis]

    ext = os.path.splitext(path)[1].lower()
    as_float = ext == ".npy" or (ext in (".tif", ".tiff")
                                 and planes.shape[0] == 1)
    if not as_float and planes.shape[0] not in (1, 2, 3, 4):
        raise ValueError(
            f"cannot store {planes.shape[0]} channels in {ext or 'an image'}; "
            f"use .npy")

    ensure_parent_dir(path)
    fd, tmp = tempfile.mkstemp(suffix=ext, prefix=".partial-",
                               dir=os.path.dirname(path) or ".")
    os.close(fd)
    try:
        _save(tmp, planes, ext)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.remove(tmp)
        raise


def _save(path: str, planes: np.ndarray, ext: str) -> None:
    if ext == ".npy":
        with open(path, "wb") as fh:
            np.save(fh, planes)
        return
    if ext in (".tif", ".tiff") and planes.shape[0] == 1:
        Image.fromarray(planes[0].astype(np.float32)).save(path)
        return

    pixels = np.clip(np.rint(planes), 0, 255).astype(np.uint8)
    if pixels.shape[0] == 1:
        Image.fromarray(pixels[0]).save(path)
    else:
        Image.fromarray(np.ascontiguousarray(np.moveaxis(pixels, 0, -1))).save(path)


def ensure_parent_dir(path: str) -> None:
    """Create the directory that will hold *path*, if missing."""
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
