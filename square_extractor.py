"""Split a cropped board into its 64 squares."""

from __future__ import annotations

import cv2
import numpy as np

from board_detector import to_gray

BOARD_SIZE = 512                # normalized board side, divisible by 8
SQUARE_SIZE = BOARD_SIZE // 8   # 64px cells


def normalize_board(board_img: np.ndarray, size: int = BOARD_SIZE) -> np.ndarray:
    """Resize the crop to size x size and convert it to grayscale."""
    h, w = board_img.shape[:2]
    if (w, h) == (size, size):
        resized = board_img
    else:
        # INTER_AREA for shrinking, INTER_CUBIC for enlarging
        interp = cv2.INTER_AREA if w > size or h > size else cv2.INTER_CUBIC
        resized = cv2.resize(board_img, (size, size), interpolation=interp)
    return to_gray(resized)


def segment_board(board_img: np.ndarray, size: int = BOARD_SIZE) -> list[list[np.ndarray]]:
    """Return an 8x8 list of square images, rows top-to-bottom.

    Squares do not overlap and each one is an independent copy.
    """
    board = normalize_board(board_img, size)
    sq = size // 8
    return [
        [board[row * sq:(row + 1) * sq, col * sq:(col + 1) * sq].copy() for col in range(8)]
        for row in range(8)
    ]
