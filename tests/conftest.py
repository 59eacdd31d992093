"""Shared fixtures: synthetic piece templates and boards."""

import os
from types import SimpleNamespace

import cv2
import numpy as np
import pytest

from fen_utils import STARTING_PLACEMENT, placement_to_board
from piece_recognizer import PIECE_NAMES, load_templates
from square_extractor import BOARD_SIZE, SQUARE_SIZE

SITE = "testsite"
TEMPLATE_BG = 170
LIGHT_SQUARE = 200
DARK_SQUARE = 100

PIECE_ORDER = ["king", "queen", "rook", "bishop", "knight", "pawn"]


def synthetic_template(name):
    """64x64 square with a vertical bar whose position encodes the piece."""
    color, piece = name.split("_")
    img = np.full((SQUARE_SIZE, SQUARE_SIZE), TEMPLATE_BG, dtype=np.uint8)
    k = PIECE_ORDER.index(piece)
    x = 6 + 8 * k
    img[10:54, x:x + 8] = 255 if color == "white" else 20
    return img


@pytest.fixture
def template_images():
    return {name: synthetic_template(name) for name in PIECE_NAMES}


@pytest.fixture
def template_dir(tmp_path, template_images):
    site_dir = tmp_path / "templates" / SITE
    site_dir.mkdir(parents=True)
    for name, img in template_images.items():
        cv2.imwrite(str(site_dir / f"{name}.png"), img)
    return str(tmp_path / "templates")


@pytest.fixture
def templates(template_dir):
    return load_templates(SITE, template_dir)


@pytest.fixture
def draw_board(template_images):
    """Render an image-oriented grid as a 512x512 grayscale board."""
    by_symbol = {sym: template_images[name] for name, sym in PIECE_NAMES.items()}

    def _draw(grid):
        board = np.zeros((BOARD_SIZE, BOARD_SIZE), dtype=np.uint8)
        for row in range(8):
            for col in range(8):
                y, x = row * SQUARE_SIZE, col * SQUARE_SIZE
                piece = grid[row][col]
                if piece is None:
                    value = LIGHT_SQUARE if (row + col) % 2 == 0 else DARK_SQUARE
                    board[y:y + SQUARE_SIZE, x:x + SQUARE_SIZE] = value
                else:
                    board[y:y + SQUARE_SIZE, x:x + SQUARE_SIZE] = by_symbol[piece]
        return board

    return _draw


@pytest.fixture
def start_grid():
    return placement_to_board(STARTING_PLACEMENT)


def chat_response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class FakeCompletions:
    """Stand-in for ``client.chat.completions``; replays canned replies."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return chat_response(reply)


@pytest.fixture
def fake_client():
    def _make(replies):
        completions = FakeCompletions(replies)
        return SimpleNamespace(chat=SimpleNamespace(completions=completions))

    return _make


@pytest.fixture
def no_api_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    return os.environ
