"""Locate the chess board in a screenshot by edge density.

No colors or coordinates are assumed. Square candidate regions are swept
over the whole screenshot and scored by the fraction of their pixels that
are Canny edges; the alternating squares and piece outlines of a board
give it the densest edges on screen. The winning candidate is then
snapped to the intensity steps of the board's outer border.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator

import cv2
import numpy as np

from errors import BoardNotFound, MalformedCrop

log = logging.getLogger(__name__)

CANNY_LOW = 50
CANNY_HIGH = 150

MIN_BOARD_SIZE = 200     # px
SIZE_STEP = 8            # px between candidate sizes
STRIDE_DIVISOR = 4       # position stride = size / 4 (75% overlap)
MIN_EDGE_DENSITY = 0.01  # below this nothing on screen looks like a board
ASPECT_TOLERANCE = 0.10
DENSITY_BAND = 0.85      # fraction of the best density still considered a board
EDGE_STEP = 30           # gray-level jump that marks a border
LINE_COVERAGE = 0.9      # share of lines a border step must cross


@dataclass(frozen=True)
class Region:
    """Square crop candidate in screenshot pixel coordinates."""

    x: int
    y: int
    size: int


def to_gray(image: np.ndarray) -> np.ndarray:
    """Single-channel intensity copy of a BGR, BGRA or gray image."""
    if image.ndim == 2:
        return image.copy()
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def edge_map(screenshot: np.ndarray) -> np.ndarray:
    """Canny edges (0 or 255) for the whole screenshot."""
    return cv2.Canny(to_gray(screenshot), CANNY_LOW, CANNY_HIGH)


def iter_candidates(width: int, height: int, min_size: int = MIN_BOARD_SIZE) -> Iterator[Region]:
    """Every square candidate region, smallest sizes first.

    Sizes grow in SIZE_STEP increments up to the shorter image dimension;
    at each size the positions overlap by 75%.
    """
    for size in range(min_size, min(width, height) + 1, SIZE_STEP):
        step = max(1, size // STRIDE_DIVISOR)
        for y in range(0, height - size + 1, step):
            for x in range(0, width - size + 1, step):
                yield Region(x, y, size)


def score_candidates(edges: np.ndarray, candidates) -> Iterator[tuple[Region, float]]:
    """Pair each candidate with its edge density.

    An integral image makes each score O(1) regardless of region size.
    """
    integral = cv2.integral((edges > 0).astype(np.uint8), sdepth=cv2.CV_64F)
    for r in candidates:
        x0, y0, x1, y1 = r.x, r.y, r.x + r.size, r.y + r.size
        count = integral[y1, x1] - integral[y0, x1] - integral[y1, x0] + integral[y0, x0]
        yield r, float(count) / (r.size * r.size)


def _border_lines(strip: np.ndarray, axis: int) -> np.ndarray:
    """Boundary positions along *axis* crossed by a step in nearly every line of *strip*."""
    steps = np.abs(np.diff(strip, axis=axis)) > EDGE_STEP
    coverage = steps.mean(axis=1 - axis)
    return np.flatnonzero(coverage >= LINE_COVERAGE) + 1


def snap_to_border(screenshot: np.ndarray, region: Region, min_size: int = MIN_BOARD_SIZE) -> Region:
    """Tighten a coarse candidate to the outer border of the board under it.

    Candidates sit on a coarse grid and only roughly cover the board. A
    board border is a straight intensity step crossing every line of the
    board; the outermost such steps seen through the middle half of
    *region* give the exact box.
    Returns *region* unchanged when no square box is found.
    """
    gray = to_gray(screenshot).astype(np.int16)
    q = region.size // 4
    xs = _border_lines(gray[region.y + q:region.y + region.size - q], axis=1)
    ys = _border_lines(gray[:, region.x + q:region.x + region.size - q], axis=0)

    cx = region.x + region.size // 2
    cy = region.y + region.size // 2
    left, right = xs[xs <= cx], xs[xs > cx]
    top, bottom = ys[ys <= cy], ys[ys > cy]
    if not (left.size and right.size and top.size and bottom.size):
        return region

    x0, x1 = int(left.min()), int(right.max())
    y0, y1 = int(top.min()), int(bottom.max())
    w, h = x1 - x0, y1 - y0
    if min(w, h) < min_size or abs(w / h - 1.0) > ASPECT_TOLERANCE:
        return region
    return Region(x0, y0, min(w, h))


def locate(screenshot: np.ndarray, min_size: int = MIN_BOARD_SIZE) -> Region:
    """Return the square region of *screenshot* holding the board.

    A patch crowded with pieces can be denser than the whole board, so the
    largest candidate within DENSITY_BAND of the best density wins; it is
    then snapped to the board border.

    Raises:
        BoardNotFound: the screenshot is too small, or no region reaches
            MIN_EDGE_DENSITY.
    """
    h, w = screenshot.shape[:2]
    edges = edge_map(screenshot)
    scored = list(score_candidates(edges, iter_candidates(w, h, min_size)))
    if not scored:
        raise BoardNotFound(
            f"Screenshot {w}x{h} is smaller than the minimum board size {min_size}px"
        )

    best_density = max(density for _, density in scored)
    if best_density < MIN_EDGE_DENSITY:
        raise BoardNotFound(
            f"No chessboard-like grid found (best edge density {best_density:.4f} "
            f"< {MIN_EDGE_DENSITY})"
        )

    floor = DENSITY_BAND * best_density
    seed, density = max(
        (item for item in scored if item[1] >= floor),
        key=lambda item: (item[0].size, item[1]),
    )
    region = snap_to_border(screenshot, seed, min_size)
    log.debug("Seed %s (density %.4f, best %.4f) snapped to %s", seed, density, best_density, region)
    return region


def crop_region(screenshot: np.ndarray, region: Region, min_size: int = MIN_BOARD_SIZE) -> np.ndarray:
    """Copy the region out of the screenshot after sanity-checking its shape."""
    img_h, img_w = screenshot.shape[:2]
    x0 = max(0, region.x)
    y0 = max(0, region.y)
    x1 = min(img_w, region.x + region.size)
    y1 = min(img_h, region.y + region.size)
    w, h = x1 - x0, y1 - y0

    if w < min_size or h < min_size:
        raise MalformedCrop(f"Board crop {w}x{h} is smaller than {min_size}px")
    aspect = w / h
    if abs(aspect - 1.0) > ASPECT_TOLERANCE:
        raise MalformedCrop(f"Board crop {w}x{h} is not square (aspect {aspect:.2f})")

    return screenshot[y0:y1, x0:x1].copy()
