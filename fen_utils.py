"""Convert recognized 8x8 grids to FEN and keep the result honest.

Grids are ``list[list[str | None]]`` indexed ``[rank][file]``: rank 0 is
the top row of the image, file 0 the left column. Each cell is a FEN piece
symbol or ``None`` for an empty square.

Castling rights are never guessed. They are derived from whether each king
and rook still stand on their home squares, for grids recognized from
templates as well as for FEN strings returned by the vision model.
"""

from __future__ import annotations

from enum import Enum
from itertools import groupby

import chess

from errors import InvalidPosition

PIECE_SYMBOLS = "PNBRQKpnbrqk"
STARTING_PLACEMENT = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR"
MAX_PAWNS = 8
EMPTY_RUNS = "12345678"

Grid = list[list[str | None]]


class PlayerSide(str, Enum):
    """The side the user plays; that color is at the bottom of the image."""

    WHITE = "w"
    BLACK = "b"

    @classmethod
    def parse(cls, value) -> "PlayerSide":
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        if key in ("w", "white"):
            return cls.WHITE
        if key in ("b", "black"):
            return cls.BLACK
        raise ValueError(f"Unknown side '{value}'. Use 'white' or 'black'.")

    @property
    def turn(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        return "White" if self is PlayerSide.WHITE else "Black"


def _check_grid(grid: Grid) -> None:
    if len(grid) != 8 or any(len(row) != 8 for row in grid):
        raise InvalidPosition(
            f"Board grid must be 8x8, got {len(grid)} rows "
            f"of lengths {[len(row) for row in grid]}"
        )
    for r, row in enumerate(grid):
        for c, piece in enumerate(row):
            if piece is not None and (len(piece) != 1 or piece not in PIECE_SYMBOLS):
                raise InvalidPosition(f"Unknown piece symbol {piece!r} at row {r}, col {c}")


def board_to_placement(grid: Grid) -> str:
    """Run-length encode the grid into the FEN piece-placement field."""
    _check_grid(grid)
    ranks = []
    for row in grid:
        rank = ""
        for piece, run in groupby(row):
            count = len(list(run))
            rank += str(count) if piece is None else piece * count
        ranks.append(rank)
    return "/".join(ranks)


def placement_to_board(placement: str) -> Grid:
    """Expand a FEN piece-placement field back into an 8x8 grid."""
    rows = placement.split("/")
    if len(rows) != 8:
        raise InvalidPosition(f"Expected 8 ranks, got {len(rows)} in {placement!r}")

    grid: Grid = []
    for row_str in rows:
        rank: list[str | None] = []
        for ch in row_str:
            if ch in EMPTY_RUNS:
                rank.extend([None] * int(ch))
            elif ch in PIECE_SYMBOLS:
                rank.append(ch)
            else:
                raise InvalidPosition(f"Unknown character {ch!r} in {placement!r}")
        if len(rank) != 8:
            raise InvalidPosition(f"Rank {row_str!r} does not describe 8 squares")
        grid.append(rank)
    return grid


def orient_board(grid: Grid, side: PlayerSide) -> Grid:
    """Rotate an image-oriented grid so rank 8 is first.

    When the user plays Black the board is drawn from Black's point of
    view, so the grid is turned 180 degrees.
    """
    if PlayerSide.parse(side) is PlayerSide.BLACK:
        return [list(reversed(row)) for row in reversed(grid)]
    return [list(row) for row in grid]


def castling_rights(board: Grid) -> str:
    """Castling field for a FEN-oriented grid (row 0 = rank 8)."""
    rank8 = board[0]
    rank1 = board[7]

    castling = ""
    if rank1[4] == "K" and rank1[7] == "R":
        castling += "K"
    if rank1[4] == "K" and rank1[0] == "R":
        castling += "Q"
    if rank8[4] == "k" and rank8[7] == "r":
        castling += "k"
    if rank8[4] == "k" and rank8[0] == "r":
        castling += "q"
    return castling or "-"


def piece_count_violations(placement: str) -> list[str]:
    """Problems with the material in a placement field.

    Exactly one king per color and at most eight pawns per color. A ninth
    pawn usually means a piece was not removed from its origin square.
    """
    violations = []
    white_kings = placement.count("K")
    black_kings = placement.count("k")
    if white_kings != 1 or black_kings != 1:
        violations.append(
            f"expected exactly 1 king per side, got {white_kings} white kings "
            f"and {black_kings} black kings"
        )
    for color, symbol in (("White", "P"), ("Black", "p")):
        pawns = placement.count(symbol)
        if pawns > MAX_PAWNS:
            violations.append(f"{color} has {pawns} pawns (max {MAX_PAWNS})")
    return violations


def check_fen_syntax(fen: str) -> str:
    """Raise InvalidPosition unless python-chess accepts the FEN."""
    try:
        chess.Board(fen)
    except ValueError as e:
        raise InvalidPosition(f"Invalid FEN syntax: {e} (fen: '{fen}')") from e
    return fen


def fix_castling_rights(fen: str, turn: str | None = None) -> str:
    """Rebuild the trailing fields of *fen* from its piece placement.

    The castling field is recomputed from the position, en-passant and the
    clocks are reset. *turn* overrides the side-to-move field; without it
    the FEN's own field is kept when it is ``w`` or ``b``.
    """
    parts = fen.split()
    if not parts:
        raise InvalidPosition("Empty FEN")
    placement = parts[0]
    board = placement_to_board(placement)
    if turn is None:
        turn = parts[1] if len(parts) > 1 and parts[1] in ("w", "b") else "w"
    return f"{placement} {turn} {castling_rights(board)} - 0 1"


def assemble_fen(grid: Grid, side: PlayerSide | str = PlayerSide.WHITE) -> str:
    """Turn an image-oriented grid into a full, validated FEN string.

    *side* is the user's color: it decides the board orientation and is
    used as the side to move. Fails closed with InvalidPosition.
    """
    side = PlayerSide.parse(side)
    _check_grid(grid)
    board = orient_board(grid, side)
    placement = board_to_placement(board)

    violations = piece_count_violations(placement)
    if violations:
        raise InvalidPosition(f"Illegal position {placement}: " + "; ".join(violations))

    fen = f"{placement} {side.turn} {castling_rights(board)} - 0 1"
    return check_fen_syntax(fen)
