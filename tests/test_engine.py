import numpy as np
import pytest

from poulet.ai import Brain, Layer
from poulet.chess import Color, Game, MoveKind, Piece, new_square
from poulet.engine import (
    INPUT_SIZE,
    MOVE_COUNT,
    NoLegalMove,
    encode_board,
    move_from_index,
    new_brain,
    next_move,
)


def _flat_brain(biases=None):
    """A single-layer brain whose outputs are just its biases."""
    if biases is None:
        biases = np.zeros(MOVE_COUNT)
    return Brain([Layer(np.zeros((MOVE_COUNT, INPUT_SIZE)), biases)])


def _index(ax, ay, bx, by):
    return (ay * 8 + ax) * 64 + by * 8 + bx


def test_encode_empty_board_is_zero():
    encoded = encode_board(Game.empty().board)
    assert encoded.shape == (INPUT_SIZE,)
    assert not encoded.any()


def test_encode_start_position_counts_pieces():
    encoded = encode_board(Game.new().board)
    assert encoded.sum() == 32
    assert set(np.unique(encoded).tolist()) == {0.0, 1.0}


def test_encode_black_rook_in_corner():
    game = Game.empty()
    game.board[0][0] = new_square(Piece.ROOK, Color.BLACK)
    encoded = encode_board(game.board)
    assert np.flatnonzero(encoded).tolist() == [int(Piece.ROOK)]


def test_encode_distinguishes_colours():
    white = Game.empty()
    black = Game.empty()
    white.board[3][3] = new_square(Piece.KNIGHT, Color.WHITE)
    black.board[3][3] = new_square(Piece.KNIGHT, Color.BLACK)
    assert not np.array_equal(encode_board(white.board), encode_board(black.board))


def test_move_from_index_extremes():
    assert move_from_index(0) == (0, 0, 0, 0)
    assert move_from_index(MOVE_COUNT - 1) == (7, 7, 7, 7)


def test_move_from_index_is_a_bijection():
    moves = {move_from_index(i) for i in range(MOVE_COUNT)}
    assert len(moves) == MOVE_COUNT
    assert all(0 <= c <= 7 for move in moves for c in move)


def test_move_from_index_layout():
    assert move_from_index(_index(4, 6, 4, 4)) == (4, 6, 4, 4)


def test_new_brain_architecture():
    brain = new_brain(np.random.default_rng(0))
    assert [(l.input_size, l.output_size) for l in brain.layers] == [
        (INPUT_SIZE, 1024),
        (1024, 512),
        (512, MOVE_COUNT),
    ]
    assert brain.forward(encode_board(Game.new().board)).shape == (MOVE_COUNT,)


@pytest.mark.parametrize("color", [Color.WHITE, Color.BLACK])
def test_next_move_is_safe_and_own_piece(color):
    game = Game.new()
    rng = np.random.default_rng(7)
    for _ in range(5):
        ax, ay, bx, by = next_move(game, _flat_brain(), color, 1.2, rng)
        assert game.board[ay][ax] != 0
        assert Color(game.board[ay][ax] >> 3) == color
        assert game.safe_move(ax, ay, bx, by) not in (MoveKind.ILLEGAL, MoveKind.UNSAFE)


def test_next_move_follows_strong_preference():
    biases = np.zeros(MOVE_COUNT)
    biases[_index(4, 6, 4, 4)] = 1000.0
    move = next_move(Game.new(), _flat_brain(biases), Color.WHITE, 1.0, np.random.default_rng(3))
    assert move == (4, 6, 4, 4)


def test_next_move_ignores_illegal_preference():
    biases = np.zeros(MOVE_COUNT)
    biases[_index(4, 7, 4, 3)] = 1000.0
    biases[_index(3, 6, 3, 4)] = 500.0
    game = Game.new()
    move = next_move(game, _flat_brain(biases), Color.WHITE, 1.0, np.random.default_rng(3))
    assert move == (3, 6, 3, 4)


def test_next_move_leaves_board_unchanged():
    game = Game.new()
    before = game.copy()
    next_move(game, _flat_brain(), Color.BLACK, 1.2, np.random.default_rng(5))
    assert game.board == before.board
    assert game.meta == before.meta


@pytest.mark.parametrize("color", [Color.WHITE, Color.BLACK])
def test_next_move_without_pieces_raises(color):
    with pytest.raises(NoLegalMove):
        next_move(Game.empty(), _flat_brain(), color, 1.0, np.random.default_rng(0))


def test_next_move_pinned_side_raises():
    game = Game.empty()
    game.board[0][0] = new_square(Piece.KING, Color.BLACK)
    game.board[2][1] = new_square(Piece.QUEEN, Color.WHITE)
    game.board[1][2] = new_square(Piece.ROOK, Color.WHITE)
    game.board[7][7] = new_square(Piece.KING, Color.WHITE)
    with pytest.raises(NoLegalMove):
        next_move(game, _flat_brain(), Color.BLACK, 1.0, np.random.default_rng(0))


def test_next_move_rejects_wrong_output_size():
    brain = Brain([Layer(np.zeros((10, INPUT_SIZE)), np.zeros(10))])
    with pytest.raises(ValueError):
        next_move(Game.new(), brain, Color.WHITE, 1.0, np.random.default_rng(0))