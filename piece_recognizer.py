"""Identify chess pieces on each square using template matching."""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

import cv2
import numpy as np

from board_detector import to_gray
from errors import TemplateLoadError
from square_extractor import SQUARE_SIZE

log = logging.getLogger(__name__)

TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), "templates")
EMPTY_VARIANCE_THRESHOLD = 100.0  # 8-bit intensity variance of a plain square
MATCH_THRESHOLD = 0.3             # TM_SQDIFF_NORMED, 0 = perfect match

# Base piece names -> FEN symbols
PIECE_NAMES = {
    "white_king": "K",
    "white_queen": "Q",
    "white_rook": "R",
    "white_bishop": "B",
    "white_knight": "N",
    "white_pawn": "P",
    "black_king": "k",
    "black_queen": "q",
    "black_rook": "r",
    "black_bishop": "b",
    "black_knight": "n",
    "black_pawn": "p",
}


@dataclass(frozen=True, eq=False)
class PieceTemplate:
    name: str
    symbol: str
    image: np.ndarray = field(repr=False)


@dataclass(frozen=True, eq=False)
class TemplateSet:
    """All reference images for one site. Never mutated after loading."""

    site: str
    templates: tuple[PieceTemplate, ...]

    def __iter__(self):
        return iter(self.templates)

    def __len__(self):
        return len(self.templates)


def load_templates(site: str, template_dir: str = TEMPLATE_DIR) -> TemplateSet:
    """Read every piece template for *site* from ``template_dir/site``.

    Each piece needs ``<name>.png``; ``<name>_light.png`` and
    ``<name>_dark.png`` variants are picked up as well.

    Raises:
        TemplateLoadError: the directory is missing, a file cannot be
            decoded, or any of the 12 pieces has no template.
    """
    site_dir = os.path.join(template_dir, site)
    if not os.path.isdir(site_dir):
        raise TemplateLoadError(f"No template directory for site '{site}': {site_dir}")

    templates = []
    for fname in sorted(os.listdir(site_dir)):
        if not fname.endswith(".png"):
            continue
        stem = fname[:-4]
        base = stem.replace("_light", "").replace("_dark", "")
        if base not in PIECE_NAMES:
            continue
        path = os.path.join(site_dir, fname)
        img = cv2.imread(path, cv2.IMREAD_GRAYSCALE)
        if img is None:
            raise TemplateLoadError(f"Unreadable template image: {path}")
        if img.shape != (SQUARE_SIZE, SQUARE_SIZE):
            img = cv2.resize(img, (SQUARE_SIZE, SQUARE_SIZE), interpolation=cv2.INTER_AREA)
        templates.append(PieceTemplate(base, PIECE_NAMES[base], img))

    missing = sorted(set(PIECE_NAMES) - {t.name for t in templates})
    if missing:
        raise TemplateLoadError(
            f"Incomplete template set for site '{site}': missing {', '.join(missing)}"
        )
    log.info("Loaded %d templates for %s", len(templates), site)
    return TemplateSet(site, tuple(templates))


_templates: dict[tuple[str, str], TemplateSet] = {}


def get_templates(site: str, template_dir: str = TEMPLATE_DIR) -> TemplateSet:
    """Cached template set, loaded on first use per site."""
    key = (template_dir, site)
    if key not in _templates:
        _templates[key] = load_templates(site, template_dir)
    return _templates[key]


def reload_templates(site: str, template_dir: str = TEMPLATE_DIR) -> TemplateSet:
    """Force reload templates from disk."""
    _templates.pop((template_dir, site), None)
    return get_templates(site, template_dir)


def is_empty_square(square_img: np.ndarray) -> bool:
    """A plain background square has almost no intensity variance."""
    return float(np.var(to_gray(square_img), dtype=np.float64)) < EMPTY_VARIANCE_THRESHOLD


def best_match(square_img: np.ndarray, templates: TemplateSet) -> tuple[str | None, float]:
    """Lowest normalized SSD over all templates, with its FEN symbol."""
    square = to_gray(square_img)
    h, w = square.shape[:2]

    best_score = float("inf")
    best_fen = None
    for tmpl in templates:
        img = tmpl.image
        if img.shape[:2] != (h, w):
            img = cv2.resize(img, (w, h), interpolation=cv2.INTER_AREA)
        score = float(cv2.matchTemplate(square, img, cv2.TM_SQDIFF_NORMED).min())
        if score < best_score:
            best_score = score
            best_fen = tmpl.symbol
    return best_fen, best_score


def recognize_square(square_img: np.ndarray, templates: TemplateSet) -> str | None:
    """Identify the piece on a single square image.

    Returns:
        FEN piece character (e.g., 'K', 'p') or None for empty.
    """
    if is_empty_square(square_img):
        return None
    fen_sym, score = best_match(square_img, templates)
    if fen_sym is not None and score < MATCH_THRESHOLD:
        return fen_sym
    # No confident match: background noise, not a piece
    return None


def recognize_squares(
    squares: list[list[np.ndarray]], templates: TemplateSet, workers: int = 8
) -> list[list[str | None]]:
    """Recognize all 64 squares, in parallel when workers > 1.

    Returns:
        8x8 list, rows top-to-bottom, cols left-to-right.
        Each cell is a FEN piece char or None.
    """
    flat = [sq for row in squares for sq in row]
    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            labels = list(pool.map(lambda sq: recognize_square(sq, templates), flat))
    else:
        labels = [recognize_square(sq, templates) for sq in flat]

    cols = len(squares[0]) if squares else 0
    return [labels[i:i + cols] for i in range(0, len(labels), cols)]
