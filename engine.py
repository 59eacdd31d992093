"""Stockfish engine integration."""

from __future__ import annotations

import os
import shutil

import chess
from stockfish import Stockfish

from errors import EngineError

STOCKFISH_DIRS = ("/opt/homebrew/bin", "/usr/local/bin", "/usr/games")


def find_stockfish() -> str:
    """Stockfish binary from $STOCKFISH_PATH, then PATH, then the usual install dirs."""
    candidates = [os.environ.get("STOCKFISH_PATH"), shutil.which("stockfish")]
    candidates += [os.path.join(d, "stockfish") for d in STOCKFISH_DIRS]
    for path in filter(None, candidates):
        if os.path.isfile(path):
            return path
    raise EngineError("Stockfish not found: install it or set STOCKFISH_PATH")


def format_eval(evaluation: dict, white_to_move: bool = True) -> str:
    """Format a Stockfish evaluation from the side-to-move perspective.

    Stockfish reports scores from White's point of view.
    """
    value = evaluation["value"]
    if not white_to_move:
        value = -value
    if evaluation["type"] == "mate":
        return f"#{value}"
    pawns = value / 100.0
    return f"+{pawns:.2f}" if pawns >= 0 else f"{pawns:.2f}"


class ChessEngine:
    def __init__(self, depth: int = 12, threads: int = 2, stockfish=None):
        self.depth = depth
        if stockfish is None:
            stockfish = Stockfish(
                path=find_stockfish(),
                depth=depth,
                parameters={"Threads": threads, "Hash": 128},
            )
        self.engine = stockfish

    def analyze(self, fen: str) -> tuple[str, str]:
        """Return (best move, evaluation) for a FEN position.

        Terminal positions return ``"--"`` and a description instead of a
        move.

        Raises:
            EngineError: the FEN is invalid or the engine finds no move.
        """
        try:
            board = chess.Board(fen)
        except ValueError as e:
            raise EngineError(f"Invalid FEN: {fen}") from e

        if board.is_checkmate():
            winner = "Black" if board.turn == chess.WHITE else "White"
            return "--", f"{winner} wins by checkmate"
        if board.is_stalemate():
            return "--", "Stalemate"

        if not self.engine.is_fen_valid(fen):
            raise EngineError(f"Stockfish rejected FEN: {fen}")
        self.engine.set_fen_position(fen)
        move = self.engine.get_best_move()
        if move is None:
            raise EngineError(f"No legal move found for {fen}")
        evaluation = format_eval(self.engine.get_evaluation(), board.turn == chess.WHITE)
        return move, evaluation
