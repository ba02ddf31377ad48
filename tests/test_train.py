import math

import numpy as np
import pytest

from poulet.ai import Activation, ActivationType, Brain, Layer
from poulet.chess import Color, Game, Piece, new_square
from poulet.engine import INPUT_SIZE, MOVE_COUNT
from poulet.train import (
    RankedBrain,
    _play_from,
    breed_population,
    main,
    piece_value,
    play_game,
    play_group,
    rank_brains,
)

KNIGHT_SHUFFLE = [
    (6, 7, 5, 5), (6, 7, 7, 5), (5, 5, 6, 7), (7, 5, 6, 7),
    (6, 0, 5, 2), (6, 0, 7, 2), (5, 2, 6, 0), (7, 2, 6, 0),
]

SMALL = ["--population", "2", "--group-size", "2", "--elite", "1"]


def _index(ax, ay, bx, by):
    return (ay * 8 + ax) * 64 + by * 8 + bx


def _biased_brain(moves):
    biases = np.zeros(MOVE_COUNT, dtype=np.float32)
    for move in moves:
        biases[_index(*move)] = 1000.0
    weights = np.zeros((MOVE_COUNT, INPUT_SIZE), dtype=np.float32)
    return Brain([Layer(weights, biases, Activation(ActivationType.NONE))])


def _tiny_brain(value):
    return Brain([Layer(np.full((2, 3), value, dtype=np.float32), np.zeros(2, dtype=np.float32))])


def test_piece_value():
    assert piece_value(Piece.PAWN) == 1
    assert piece_value(Piece.QUEEN) == 9
    assert piece_value(Piece.BISHOP) == piece_value(Piece.KNIGHT)
    assert piece_value(Piece.ROOK) > piece_value(Piece.KNIGHT)
    assert piece_value(Piece.KING) == 0


def test_knight_shuffle_ends_as_scoreless_draw():
    brain = _biased_brain(KNIGHT_SHUFFLE)
    scores = play_game(brain, brain, np.random.default_rng(1))
    assert scores == (0.0, 0.0)


def test_side_without_moves_loses_before_any_move():
    game = Game.empty()
    game.board[7][7] = new_square(Piece.KING, Color.WHITE)
    game.board[6][5] = new_square(Piece.QUEEN, Color.BLACK)
    game.board[0][0] = new_square(Piece.KING, Color.BLACK)
    brain = _biased_brain(KNIGHT_SHUFFLE)
    scores = _play_from(game, brain, brain, np.random.default_rng(2))
    assert scores[Color.WHITE] == -math.inf
    assert scores[Color.BLACK] == math.inf


def test_capture_then_stalemate_favours_white():
    game = Game.empty()
    game.board[7][0] = new_square(Piece.KING, Color.WHITE)
    game.board[3][6] = new_square(Piece.QUEEN, Color.WHITE)
    game.board[2][6] = new_square(Piece.ROOK, Color.BLACK)
    game.board[0][7] = new_square(Piece.KING, Color.BLACK)
    white = _biased_brain([(6, 3, 6, 2)])
    black = _biased_brain(KNIGHT_SHUFFLE)
    scores = _play_from(game, white, black, np.random.default_rng(3))
    assert game.board[2][6] == new_square(Piece.QUEEN, Color.WHITE)
    assert scores[Color.WHITE] + scores[Color.BLACK] == 0
    assert scores[Color.WHITE] > 0


def test_play_group_fills_off_diagonal_games():
    brain = _biased_brain(KNIGHT_SHUFFLE)
    results = play_group([brain, brain], np.random.default_rng(4))
    assert results.shape == (2, 2, 2)
    assert np.all(results == 0)


def test_rank_brains_orders_across_groups():
    first = np.zeros((2, 2, 2))
    first[0, 1, 0] = 5.0
    second = np.zeros((2, 2, 2))
    second[1, 0, 0] = 2.0
    ranking = rank_brains([first, second])
    assert [r.index for r in ranking] == [0, 3, 1, 2]
    assert [r.score for r in ranking] == [5.0, 2.0, 0.0, 0.0]


def test_rank_brains_ignores_diagonal():
    results = np.zeros((2, 2, 2))
    results[0, 0] = (7.0, 7.0)
    results[1, 1] = (7.0, 7.0)
    ranking = rank_brains([results])
    assert all(r.score == 0 for r in ranking)


def test_rank_brains_total_and_order_invariants():
    rng = np.random.default_rng(5)
    groups = [rng.normal(size=(4, 4, 2)) for _ in range(3)]
    ranking = rank_brains(groups)
    assert sorted(r.index for r in ranking) == list(range(12))
    scores = [r.score for r in ranking]
    assert scores == sorted(scores, reverse=True)
    expected_total = sum(g.sum() - np.einsum("iik->", g) for g in groups)
    assert sum(scores) == pytest.approx(expected_total)


def test_rank_brains_rejects_bad_shape():
    with pytest.raises(ValueError):
        rank_brains([np.zeros((2, 3, 2))])


def test_breed_population_keeps_elites_and_replaces_the_rest():
    brains = [_tiny_brain(float(i)) for i in range(6)]
    order = [4, 1, 0, 2, 3, 5]
    ranking = [RankedBrain(index, float(len(order) - rank)) for rank, index in enumerate(order)]
    result = breed_population(brains, ranking, 2, np.random.default_rng(6))

    assert len(result) == len(brains)
    for kept in (4, 1):
        assert any(b is brains[kept] for b in result)
    for dropped in (0, 2, 3, 5):
        assert not any(b is brains[dropped] for b in result)

    children = [b for b in result if not any(b is x for x in brains)]
    assert len(children) == 4
    for child in children:
        mean = float(child.layers[0].weights.mean())
        assert abs(mean - 4.0) < 1.0 or abs(mean - 1.0) < 1.0


def test_breed_population_rejects_bad_arguments():
    brains = [_tiny_brain(1.0), _tiny_brain(2.0)]
    ranking = [RankedBrain(0, 1.0), RankedBrain(1, 0.0)]
    rng = np.random.default_rng(7)
    with pytest.raises(ValueError):
        breed_population(brains, ranking, 0, rng)
    with pytest.raises(ValueError):
        breed_population(brains, ranking[:1], 1, rng)


def test_main_without_generations_just_initialises(tmp_path, capsys):
    code = main(["0", "0", "--models-dir", str(tmp_path), *SMALL])
    out = capsys.readouterr().out
    assert code == 0
    assert "done" in out
    assert "GENERATION" not in out


def test_main_runs_a_generation_and_saves_elite(tmp_path, capsys):
    _biased_brain(KNIGHT_SHUFFLE).save(tmp_path / "4-0.model")
    code = main(["4", "5", "--models-dir", str(tmp_path), "--seed", "8", *SMALL])
    out = capsys.readouterr().out
    assert code == 0
    assert "loaded gen 4 brains" in out
    assert "saving elite" in out
    saved = Brain.load(tmp_path / "5-0.model")
    assert saved.layers[0].weights.shape == (MOVE_COUNT, INPUT_SIZE)


def test_main_rejects_uneven_groups(tmp_path):
    with pytest.raises(SystemExit):
        main(["0", "0", "--models-dir", str(tmp_path), "--population", "3", "--group-size", "2"])