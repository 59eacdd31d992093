"""Single entry point for board-to-FEN conversion.

- **LLM mode**: the full screenshot goes to the vision model, which finds
  the board itself.
- **Native mode**: the board is located and cropped first, then every
  square is matched against the site's piece templates.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

import llm_recognizer
from board_detector import crop_region, locate
from config import TEMPLATE_DIR, DebugOptions
from debug import save_debug_image, save_debug_squares
from fen_utils import PlayerSide, assemble_fen
from piece_recognizer import get_templates, recognize_squares
from square_extractor import segment_board

log = logging.getLogger(__name__)


class OcrMode(Enum):
    NATIVE = "native"
    LLM = "llm"

    def __str__(self):
        if self is OcrMode.LLM:
            return "LLM (GPT-4o)"
        return "Native (template matching)"


@dataclass(frozen=True)
class RecognitionContext:
    """Everything a recognition run needs besides the image."""

    side: PlayerSide = PlayerSide.WHITE
    site: str = "chesscom"
    template_dir: str = TEMPLATE_DIR
    workers: int = 8
    debug: DebugOptions = field(default_factory=DebugOptions)


def llm_available() -> bool:
    """Checks if the LLM OCR mode is available (API key is set)."""
    return llm_recognizer.has_api_key()


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


def board_image_to_fen(board_img: np.ndarray, context: RecognitionContext) -> str:
    """Segment, classify and assemble an already cropped board."""
    templates = get_templates(context.site, context.template_dir)

    start = time.perf_counter()
    squares = segment_board(board_img)
    save_debug_squares(context.debug, squares)
    grid = recognize_squares(squares, templates, workers=context.workers)
    log.info("Template matching... %.0fms", _elapsed_ms(start))

    return assemble_fen(grid, context.side)


def native_board_to_fen(screenshot: np.ndarray, context: RecognitionContext) -> str:
    start = time.perf_counter()
    region = locate(screenshot)
    board_img = crop_region(screenshot, region)
    log.info("Board detection... %.0fms (%s)", _elapsed_ms(start), region)
    save_debug_image(context.debug, "cropped_board.png", board_img)

    return board_image_to_fen(board_img, context)


def board_to_fen(
    screenshot: np.ndarray,
    mode: OcrMode = OcrMode.NATIVE,
    context: RecognitionContext | None = None,
    recognizer: llm_recognizer.LlmRecognizer | None = None,
) -> str:
    """Convert a screenshot into a validated FEN string.

    Both modes return the same FEN format and raise subclasses of
    RecognitionError, so callers need not know which one ran.
    """
    context = context or RecognitionContext()
    mode = OcrMode(mode)

    if mode is OcrMode.LLM:
        recognizer = recognizer or llm_recognizer.LlmRecognizer()
        start = time.perf_counter()
        fen = recognizer.recognize(screenshot, context.side)
        log.info("LLM OCR... %.0fms", _elapsed_ms(start))
        return fen

    return native_board_to_fen(screenshot, context)
