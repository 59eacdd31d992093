"""Orchestration loop tests (capture and engine replaced)."""

import numpy as np

import main
from errors import BoardNotFound, EngineError
from ocr import OcrMode, RecognitionContext

START_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"


class FakeEngine:
    def __init__(self, error=None):
        self.error = error
        self.fens = []

    def analyze(self, fen):
        self.fens.append(fen)
        if self.error:
            raise self.error
        return "e2e4", "+0.35"


def test_build_config_applies_overrides(tmp_path, monkeypatch):
    monkeypatch.delenv("DEBUG_CAPTURE", raising=False)
    args = main.parse_args(["--config", str(tmp_path / "none.json"), "--site", "lichess",
                            "--side", "black", "--debug"])
    config = main.build_config(args)
    assert config.site == "lichess"
    assert config.side == "black"
    assert config.mode == "native"
    assert config.debug.enabled


def test_debug_shorthand_in_config_file(tmp_path, monkeypatch):
    monkeypatch.delenv("DEBUG_CAPTURE", raising=False)
    path = tmp_path / "board_config.json"
    path.write_text('{"debug": true}')
    config = main.build_config(main.parse_args(["--config", str(path)]))
    assert config.debug.enabled


def test_llm_falls_back_without_key(tmp_path, monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    args = main.parse_args(["--config", str(tmp_path / "none.json"), "--mode", "llm"])
    assert main.resolve_mode(main.build_config(args)) is OcrMode.NATIVE


def test_scan_prints_move(monkeypatch, capsys):
    monkeypatch.setattr(main, "capture_screen", lambda: np.zeros((10, 10, 3), np.uint8))
    monkeypatch.setattr(main, "board_to_fen", lambda *a: START_FEN)
    engine = FakeEngine()

    assert main.scan(engine, OcrMode.NATIVE, RecognitionContext()) == START_FEN
    out = capsys.readouterr().out
    assert "Detected FEN" in out and "Best move: e2e4" in out
    assert engine.fens == [START_FEN]


def test_scan_survives_missing_board(monkeypatch, capsys):
    def not_found(*args):
        raise BoardNotFound("nothing here")

    monkeypatch.setattr(main, "capture_screen", lambda: np.zeros((10, 10, 3), np.uint8))
    monkeypatch.setattr(main, "board_to_fen", not_found)
    engine = FakeEngine()

    assert main.scan(engine, OcrMode.NATIVE, RecognitionContext()) is None
    assert "no board found" in capsys.readouterr().out
    assert engine.fens == []


def test_scan_reports_engine_errors(monkeypatch, capsys):
    monkeypatch.setattr(main, "capture_screen", lambda: np.zeros((10, 10, 3), np.uint8))
    monkeypatch.setattr(main, "board_to_fen", lambda *a: START_FEN)

    assert main.scan(FakeEngine(EngineError("bad")), OcrMode.NATIVE, RecognitionContext()) == START_FEN
    assert "Engine error: bad" in capsys.readouterr().out
