#!/usr/bin/env python3
"""
run_hom4p.py – Homography from four point correspondences

Prints the homography sending four points onto four others, in the format
accepted by run_transform.py.

Usage
-----
    python run_hom4p.py "x1 y1 x2 y2 x3 y3 x4 y4" "x1' y1' x2' y2' x3' y3' x4' y4'"
    python run_transform.py "$(python run_hom4p.py "0 0 100 0 100 100 0 100" \
        "10 5 90 0 100 100 0 95")" in.png out.png
"""

import argparse
import os
import sys

import numpy as np

# Ensure the project root is on the Python path when invoked directly
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from splinewarp.errors import MalformedHomography
from splinewarp.geometry.homography import (
    compute_homography,
    format_homography,
    parse_numbers,
)


def parse_points(text: str) -> np.ndarray:
    """Parse eight numbers (four x, y pairs) into a 2 x 4 array."""
    fields = parse_numbers(text)
    if len(fields) != 8:
        raise MalformedHomography(
            f"expected 4 points (8 numbers), got {len(fields)} numbers")
    return np.array(fields).reshape(4, 2).T


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Homography mapping four points onto four others"
    )
    p.add_argument("src", help='source points "x1 y1 x2 y2 x3 y3 x4 y4"')
    p.add_argument("dst", help="destination points, same format")
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        H = compute_homography(parse_points(args.src), parse_points(args.dst))
    except ValueError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 1
    print(format_homography(H))
    return 0


if __name__ == "__main__":
    sys.exit(main())
