"""Chess rules: board representation, move legality, check detection and move execution.

Squares are small integers: the low three bits hold the piece and bit 3 holds the
colour; ``EMPTY`` (0) marks an empty square. The board is indexed ``board[y][x]``
with ``y == 0`` being black's back rank.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum

__all__ = [
    "EMPTY",
    "Piece",
    "Color",
    "MoveKind",
    "Game",
    "new_square",
    "piece_from_square",
    "color_from_square",
    "pretty_square",
    "stringify_piece",
    "stringify_color",
]

EMPTY = 0
LETTERS = "abcdefgh"

_ENPASSANT_FLAG = 0x01
_ENPASSANT_MASK = 0x1F
_INITIAL_META = 0x03 << 5


class Piece(IntEnum):
    PAWN = 1
    BISHOP = 2
    KNIGHT = 3
    ROOK = 4
    QUEEN = 5
    KING = 6


class Color(IntEnum):
    BLACK = 0
    WHITE = 1


class MoveKind(IntEnum):
    ILLEGAL = 0
    LEGAL = 1
    TAKE = 2
    TAKE_ENPASSANT = 3
    CASTLE = 4
    UNSAFE = 5


def new_square(piece: Piece, color: Color) -> int:
    """Encode a piece of the given colour as a square value."""
    return int(piece) | (int(color) << 3)


def piece_from_square(square: int) -> Piece | None:
    """Return the piece on a square, or None for an empty square."""
    bits = square & 0x07
    return Piece(bits) if bits else None


def color_from_square(square: int) -> Color:
    """Return the colour bit of a square (empty squares read as black)."""
    return Color(square >> 3)


def pretty_square(x: int, y: int) -> str:
    """Return the algebraic name of a board coordinate, e.g. ``e1``."""
    return f"{LETTERS[x]}{8 - y}"


def stringify_piece(piece: Piece) -> str:
    return Piece(piece).name.lower()


def stringify_color(color: Color) -> str:
    return Color(color).name.lower()


def _on_board(*coords: int) -> bool:
    return all(0 <= c <= 7 for c in coords)


def _empty_board() -> list[list[int]]:
    return [[EMPTY] * 8 for _ in range(8)]


@dataclass
class Game:
    """A board plus the metadata byte holding en passant and castling state."""

    board: list[list[int]] = field(default_factory=_empty_board)
    meta: int = 0

    @classmethod
    def new(cls) -> Game:
        """Return a game in the standard starting position."""
        game = cls(meta=_INITIAL_META)
        back_rank = (
            Piece.ROOK, Piece.KNIGHT, Piece.BISHOP, Piece.QUEEN,
            Piece.KING, Piece.BISHOP, Piece.KNIGHT, Piece.ROOK,
        )
        for color, back_row, pawn_row in ((Color.BLACK, 0, 1), (Color.WHITE, 7, 6)):
            game.board[back_row] = [new_square(piece, color) for piece in back_rank]
            game.board[pawn_row] = [new_square(Piece.PAWN, color)] * 8
        return game

    @classmethod
    def empty(cls) -> Game:
        """Return a game with an empty board and cleared metadata."""
        return cls()

    def copy(self) -> Game:
        return Game([list(row) for row in self.board], self.meta)

    def enpassant_file(self) -> int | None:
        if self.meta & _ENPASSANT_FLAG:
            return (self.meta >> 2) & 0x07
        return None

    def enpassant_color(self) -> Color | None:
        if self.meta & _ENPASSANT_FLAG:
            return Color((self.meta >> 1) & 0x01)
        return None

    def castling_rights(self, color: Color) -> bool:
        return bool(self.meta & (0x01 << (int(color) + 5)))

    def _find_king(self, color: Color) -> tuple[int, int]:
        for y, row in enumerate(self.board):
            for x, square in enumerate(row):
                if piece_from_square(square) is Piece.KING and color_from_square(square) == color:
                    return x, y
        return 0, 0

    def is_check(self, color: Color) -> bool:
        """Return True if a non-king piece of the other colour attacks ``color``'s king."""
        kx, ky = self._find_king(color)
        for y, row in enumerate(self.board):
            for x, square in enumerate(row):
                if (
                    square != EMPTY
                    and piece_from_square(square) is not Piece.KING
                    and color_from_square(square) != color
                    and self.legal_move(x, y, kx, ky)
                ):
                    return True
        return False

    def _pawn_legal(self, ax: int, ay: int, bx: int, by: int) -> MoveKind:
        color = color_from_square(self.board[ay][ax])
        direction = 1 - 2 * int(color)
        if self.board[by][bx] == EMPTY:
            if (
                bx == self.enpassant_file()
                and color != self.enpassant_color()
                and by == (2 if color == Color.WHITE else 5)
            ):
                if abs(ax - bx) == 1 and by == ay + direction:
                    return MoveKind.TAKE_ENPASSANT
                return MoveKind.ILLEGAL
            start_row = 6 if color == Color.WHITE else 1
            forward = by == ay + direction or (
                ay == start_row
                and by == ay + 2 * direction
                and self.board[ay + direction][ax] == EMPTY
            )
            return MoveKind.LEGAL if bx == ax and forward else MoveKind.ILLEGAL
        if abs(ax - bx) == 1 and by == ay + direction:
            return MoveKind.LEGAL
        return MoveKind.ILLEGAL

    def _bishop_legal(self, ax: int, ay: int, bx: int, by: int) -> MoveKind:
        distance = abs(bx - ax)
        if distance != abs(by - ay):
            return MoveKind.ILLEGAL
        vx = -1 if bx < ax else 1
        vy = -1 if by < ay else 1
        if any(self.board[ay + vy * i][ax + vx * i] != EMPTY for i in range(1, distance)):
            return MoveKind.ILLEGAL
        return MoveKind.LEGAL

    @staticmethod
    def _knight_legal(ax: int, ay: int, bx: int, by: int) -> MoveKind:
        dx, dy = abs(bx - ax), abs(by - ay)
        return MoveKind.LEGAL if {dx, dy} == {1, 2} else MoveKind.ILLEGAL

    def _rook_legal(self, ax: int, ay: int, bx: int, by: int) -> MoveKind:
        if bx != ax and by != ay:
            return MoveKind.ILLEGAL
        if bx == ax:
            step = -1 if by < ay else 1
            path = (self.board[ay + step * i][ax] for i in range(1, abs(by - ay)))
        else:
            step = -1 if bx < ax else 1
            path = (self.board[ay][ax + step * i] for i in range(1, abs(bx - ax)))
        return MoveKind.ILLEGAL if any(sq != EMPTY for sq in path) else MoveKind.LEGAL

    def _queen_legal(self, ax: int, ay: int, bx: int, by: int) -> MoveKind:
        if self._bishop_legal(ax, ay, bx, by) or self._rook_legal(ax, ay, bx, by):
            return MoveKind.LEGAL
        return MoveKind.ILLEGAL

    def _king_legal(self, ax: int, ay: int, bx: int, by: int) -> MoveKind:
        if abs(bx - ax) <= 1 and abs(by - ay) <= 1:
            return MoveKind.LEGAL

        king = self.board[ay][ax]
        color = color_from_square(king)
        if not (
            abs(bx - ax) == 2
            and by == ay
            and self.castling_rights(color)
            and not self.is_check(color)
            and self.board[by][bx] == EMPTY
        ):
            return MoveKind.ILLEGAL

        step = -1 if bx < ax else 1
        rook = self.board[ay][0 if step == -1 else 7]
        if rook == EMPTY or color_from_square(rook) != color or piece_from_square(rook) is not Piece.ROOK:
            return MoveKind.ILLEGAL

        # The walk of the king across the path is tried on a scratch copy.
        trial = self.copy()
        row = trial.board[ay]
        for i in range(1, (3 if step == -1 else 2) + 1):
            target = ax + step * i
            if not _on_board(target) or row[target] != EMPTY:
                return MoveKind.ILLEGAL
            row[ax + step] = row[ax + step - 1]
            row[ax + step - 1] = EMPTY
            if trial.is_check(color):
                return MoveKind.ILLEGAL
        return MoveKind.CASTLE

    def legal_move(self, ax: int, ay: int, bx: int, by: int) -> MoveKind:
        """Classify a move by the piece's movement rules, ignoring self-check."""
        if not _on_board(ax, ay, bx, by) or (ax == bx and ay == by):
            return MoveKind.ILLEGAL
        source = self.board[ay][ax]
        target = self.board[by][bx]
        if target != EMPTY and color_from_square(target) == color_from_square(source):
            return MoveKind.ILLEGAL

        piece = piece_from_square(source)
        if piece is Piece.PAWN:
            result = self._pawn_legal(ax, ay, bx, by)
        elif piece is Piece.BISHOP:
            result = self._bishop_legal(ax, ay, bx, by)
        elif piece is Piece.KNIGHT:
            result = self._knight_legal(ax, ay, bx, by)
        elif piece is Piece.ROOK:
            result = self._rook_legal(ax, ay, bx, by)
        elif piece is Piece.QUEEN:
            result = self._queen_legal(ax, ay, bx, by)
        elif piece is Piece.KING:
            result = self._king_legal(ax, ay, bx, by)
        else:
            return MoveKind.ILLEGAL

        if result == MoveKind.LEGAL and target != EMPTY:
            return MoveKind.TAKE
        return result

    def safe_move(self, ax: int, ay: int, bx: int, by: int) -> MoveKind:
        """Classify a move, reporting UNSAFE when it leaves the mover in check."""
        move = self.legal_move(ax, ay, bx, by)
        if move in (MoveKind.ILLEGAL, MoveKind.CASTLE, MoveKind.UNSAFE):
            return move

        mover = self.board[ay][ax]
        captured = self.board[by][bx]
        color = color_from_square(mover)

        if move == MoveKind.TAKE_ENPASSANT:
            ey = by + (1 if color == Color.WHITE else -1)
            victim = self.board[ey][bx]
            self.board[ay][ax] = EMPTY
            self.board[by][bx] = mover
            self.board[ey][bx] = EMPTY
            in_check = self.is_check(color)
            self.board[ay][ax] = mover
            self.board[by][bx] = EMPTY
            self.board[ey][bx] = victim
        else:
            self.board[ay][ax] = EMPTY
            self.board[by][bx] = mover
            in_check = self.is_check(color)
            self.board[ay][ax] = mover
            self.board[by][bx] = captured

        return MoveKind.UNSAFE if in_check else move

    def do_move(self, ax: int, ay: int, bx: int, by: int) -> MoveKind:
        """Play a move if it is safe and return how it was classified.

        Castling and en passant state is updated before the move is validated,
        so it changes even when the move is then rejected.
        """
        if not _on_board(ax, ay, bx, by):
            return MoveKind.ILLEGAL

        square = self.board[ay][ax]
        color = color_from_square(square)
        piece = piece_from_square(square)

        if piece is Piece.KING:
            self.meta &= ~(0x01 << (5 + int(color))) & 0xFF
        if color == self.enpassant_color():
            self.meta &= ~_ENPASSANT_MASK & 0xFF
        if piece is Piece.PAWN and abs(ay - by) == 2:
            self.meta = (
                (self.meta & ~_ENPASSANT_MASK & 0xFF)
                | _ENPASSANT_FLAG
                | (int(color) << 1)
                | (ax << 2)
            )

        move = self.safe_move(ax, ay, bx, by)
        if move in (MoveKind.LEGAL, MoveKind.TAKE):
            self.board[by][bx] = self.board[ay][ax]
            self.board[ay][ax] = EMPTY
        elif move == MoveKind.TAKE_ENPASSANT:
            ey = by + (1 if color == Color.WHITE else -1)
            self.board[by][bx] = self.board[ay][ax]
            self.board[ay][ax] = EMPTY
            self.board[ey][bx] = EMPTY
        elif move == MoveKind.CASTLE:
            rook_src, rook_dst = (0, 3) if bx < ax else (7, 5)
            self.board[by][bx] = self.board[ay][ax]
            self.board[by][rook_dst] = self.board[by][rook_src]
            self.board[by][rook_src] = EMPTY
        else:
            return move

        promotion_row = 0 if color == Color.WHITE else 7
        if piece is Piece.PAWN and by == promotion_row:
            self.board[by][bx] = new_square(Piece.QUEEN, color)
        return move