"""Template classifier and template store tests."""

import os

import cv2
import numpy as np
import pytest

from errors import TemplateLoadError
from piece_recognizer import (
    MATCH_THRESHOLD,
    PIECE_NAMES,
    best_match,
    get_templates,
    is_empty_square,
    load_templates,
    recognize_square,
    recognize_squares,
    reload_templates,
)
from square_extractor import segment_board

SITE = "testsite"


class TestTemplateStore:
    def test_loads_complete_set(self, templates):
        assert templates.site == SITE
        assert len(templates) == 12
        assert {t.symbol for t in templates} == set(PIECE_NAMES.values())
        for t in templates:
            assert t.image.shape == (64, 64)

    def test_light_and_dark_variants(self, template_dir, template_images):
        site_dir = f"{template_dir}/{SITE}"
        cv2.imwrite(f"{site_dir}/white_king_light.png", template_images["white_king"])
        cv2.imwrite(f"{site_dir}/white_king_dark.png", template_images["white_king"])
        with open(f"{site_dir}/notes.txt", "w") as f:
            f.write("not a template")

        templates = load_templates(SITE, template_dir)
        assert len(templates) == 14
        assert sum(1 for t in templates if t.symbol == "K") == 3

    def test_missing_piece_is_fatal(self, template_dir):
        os.remove(f"{template_dir}/{SITE}/black_queen.png")
        with pytest.raises(TemplateLoadError, match="black_queen"):
            load_templates(SITE, template_dir)

    def test_missing_site_is_fatal(self, template_dir):
        with pytest.raises(TemplateLoadError, match="nosuchsite"):
            load_templates("nosuchsite", template_dir)

    def test_unreadable_template_is_fatal(self, template_dir):
        with open(f"{template_dir}/{SITE}/white_pawn.png", "wb") as f:
            f.write(b"not a png")
        with pytest.raises(TemplateLoadError, match="Unreadable"):
            load_templates(SITE, template_dir)

    def test_larger_templates_are_resized(self, tmp_path, template_images):
        site_dir = tmp_path / SITE
        site_dir.mkdir()
        for name, img in template_images.items():
            cv2.imwrite(str(site_dir / f"{name}.png"), cv2.resize(img, (80, 80)))
        templates = load_templates(SITE, str(tmp_path))
        assert all(t.image.shape == (64, 64) for t in templates)

    def test_cache_and_reload(self, template_dir):
        first = get_templates(SITE, template_dir)
        assert get_templates(SITE, template_dir) is first
        reloaded = reload_templates(SITE, template_dir)
        assert reloaded is not first
        assert get_templates(SITE, template_dir) is reloaded


class TestClassification:
    @pytest.mark.parametrize("value", [0, 100, 200, 255])
    def test_uniform_square_is_empty(self, templates, value):
        square = np.full((64, 64), value, dtype=np.uint8)
        assert is_empty_square(square)
        assert recognize_square(square, templates) is None

    def test_template_copy_matches_exactly(self, templates, template_images):
        for name, symbol in PIECE_NAMES.items():
            square = template_images[name].copy()
            label, score = best_match(square, templates)
            assert label == symbol
            assert score == pytest.approx(0.0, abs=1e-6)
            assert recognize_square(square, templates) == symbol

    def test_color_square_is_accepted(self, templates, template_images):
        square = cv2.cvtColor(template_images["black_knight"], cv2.COLOR_GRAY2BGR)
        assert recognize_square(square, templates) == "n"

    def test_different_resolution_square(self, templates, template_images):
        square = cv2.resize(template_images["white_rook"], (80, 80), interpolation=cv2.INTER_NEAREST)
        assert recognize_square(square, templates) == "R"

    def test_unconfident_match_is_empty(self, templates):
        # Busy square that resembles no piece
        square = np.zeros((64, 64), dtype=np.uint8)
        square[:, ::2] = 255
        assert not is_empty_square(square)
        _, score = best_match(square, templates)
        assert score >= MATCH_THRESHOLD
        assert recognize_square(square, templates) is None

    def test_recognize_whole_board(self, templates, draw_board, start_grid):
        squares = segment_board(draw_board(start_grid))
        assert recognize_squares(squares, templates, workers=4) == start_grid

    def test_parallel_matches_serial(self, templates, draw_board, start_grid):
        squares = segment_board(draw_board(start_grid))
        assert recognize_squares(squares, templates, workers=8) == recognize_squares(
            squares, templates, workers=1
        )
