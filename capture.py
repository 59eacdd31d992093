"""Screen capture using mss."""

from __future__ import annotations

import logging
import time

import cv2
import mss
import numpy as np

log = logging.getLogger(__name__)

# Larger screenshots are downsampled; bounds the board search on 4K+ displays
MAX_CAPTURE_WIDTH = 1920


def downsample(frame: np.ndarray, max_width: int = MAX_CAPTURE_WIDTH) -> np.ndarray:
    """Shrink *frame* to at most *max_width* pixels wide, keeping its aspect."""
    h, w = frame.shape[:2]
    if w <= max_width:
        return frame
    scale = max_width / w
    return cv2.resize(frame, (max_width, int(h * scale)), interpolation=cv2.INTER_AREA)


def capture_screen(monitor_index: int = 1, max_width: int = MAX_CAPTURE_WIDTH) -> np.ndarray:
    """Capture the screen and return as a BGR numpy array.

    Args:
        monitor_index: Which monitor to capture (1 = primary).
        max_width: Downsample wider screenshots to this width.

    Returns:
        Screenshot as BGR numpy array suitable for OpenCV.
    """
    start = time.perf_counter()
    with mss.mss() as sct:
        monitor = sct.monitors[monitor_index]
        screenshot = sct.grab(monitor)
        # mss returns BGRA, convert to BGR for OpenCV
        frame = np.array(screenshot)[:, :, :3].copy()

    result = downsample(frame, max_width)
    log.info(
        "Capturing screen... %.0fms (%dx%d -> %dx%d)",
        (time.perf_counter() - start) * 1000.0,
        frame.shape[1], frame.shape[0], result.shape[1], result.shape[0],
    )
    return result
