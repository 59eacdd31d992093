"""Optional dumps of intermediate images for inspection."""

from __future__ import annotations

import logging
import os

import cv2
import numpy as np

from config import DebugOptions

log = logging.getLogger(__name__)


def save_debug_image(options: DebugOptions, name: str, image: np.ndarray) -> str | None:
    """Write *image* to ``options.output_dir/name`` when debugging is on.

    Fire-and-forget: a failed write is logged and never affects recognition.
    """
    if not options.enabled:
        return None
    path = os.path.join(options.output_dir, name)
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        if not cv2.imwrite(path, image):
            log.warning("Could not write debug image %s", path)
            return None
    except (OSError, cv2.error) as e:
        log.warning("Could not write debug image %s: %s", path, e)
        return None
    return path


def save_debug_squares(options: DebugOptions, squares: list[list[np.ndarray]]) -> None:
    if not options.enabled:
        return
    for row, rank in enumerate(squares):
        for col, square in enumerate(rank):
            save_debug_image(options, os.path.join("squares", f"r{row}_c{col}.png"), square)
