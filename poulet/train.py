"""Evolutionary training of move-prediction networks through self-play tournaments."""

from __future__ import annotations

import argparse
import logging
import math
import signal
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import numpy as np

from .ai import Brain
from .chess import Color, Game, MoveKind, Piece, piece_from_square
from .engine import NoLegalMove, new_brain, next_move

__all__ = [
    "POPULATION_SIZE",
    "GROUP_SIZE",
    "ELITE_SIZE",
    "TEMPERATURE",
    "RankedBrain",
    "piece_value",
    "play_game",
    "play_group",
    "rank_brains",
    "breed_population",
    "main",
]

logger = logging.getLogger(__name__)

POPULATION_SIZE = 256
GROUP_SIZE = 16
ELITE_SIZE = 8
TEMPERATURE = 1.2
SAVE_INTERVAL = 5

_DRAW_HALF_MOVES = 50
_MAX_MOVES = 2048
_DRAW_SWING = 100
_LOSS_PENALTY = 1000

_PIECE_VALUES = {
    Piece.PAWN: 1,
    Piece.BISHOP: 3,
    Piece.KNIGHT: 3,
    Piece.ROOK: 5,
    Piece.QUEEN: 9,
}


@dataclass(frozen=True)
class RankedBrain:
    """A population index together with its tournament score."""

    index: int
    score: float


def piece_value(piece: Piece | None) -> int:
    """Return the material value of a captured piece; kings and empty squares count 0."""
    return _PIECE_VALUES.get(piece, 0)


def _per_move(score: float, total_moves: int) -> float:
    if total_moves:
        return score / total_moves
    if score == 0:
        return math.nan
    return math.copysign(math.inf, score)


def _finish(scores: list[float], total_moves: int) -> tuple[float, float]:
    black, white = (_per_move(s, total_moves) for s in scores)
    return black, white


def _play_from(
    game: Game, white: Brain, black: Brain, rng: np.random.Generator
) -> tuple[float, float]:
    """Play ``game`` to its end and return per-move scores indexed by ``Color``."""
    scores = [0.0, 0.0]
    quiet_moves = 0
    total_moves = 0
    players = ((white, Color.WHITE), (black, Color.BLACK))

    while True:
        for brain, color in players:
            other = Color(1 - int(color))
            try:
                ax, ay, bx, by = next_move(game, brain, color, TEMPERATURE, rng)
            except NoLegalMove:
                scores[color] -= _LOSS_PENALTY
                scores[other] += _LOSS_PENALTY
                return _finish(scores, total_moves)

            kind = game.legal_move(ax, ay, bx, by)
            if kind == MoveKind.TAKE:
                quiet_moves = 0
                value = piece_value(piece_from_square(game.board[by][bx]))
                scores[color] += value
                scores[other] -= value
            elif kind == MoveKind.TAKE_ENPASSANT:
                quiet_moves = 0
                scores[color] += 1
                scores[other] -= 1
            elif piece_from_square(game.board[ay][ax]) is Piece.PAWN:
                quiet_moves = 0
            else:
                quiet_moves += 1

            if quiet_moves >= _DRAW_HALF_MOVES or total_moves > _MAX_MOVES:
                if scores[color] > scores[other]:
                    scores[color] -= _DRAW_SWING
                    scores[other] += _DRAW_SWING
                elif scores[color] < scores[other]:
                    scores[color] += _DRAW_SWING
                    scores[other] -= _DRAW_SWING
                return _finish(scores, total_moves)

            game.do_move(ax, ay, bx, by)
            total_moves += 1


def play_game(white: Brain, black: Brain, rng: np.random.Generator) -> tuple[float, float]:
    """Play one game from the starting position.

    The result holds each side's score divided by the number of moves played,
    indexed by ``Color`` (black first, white second).
    """
    return _play_from(Game.new(), white, black, rng)


def play_group(brains: Sequence[Brain], rng: np.random.Generator) -> np.ndarray:
    """Play every ordered pairing within a group, the first brain taking white.

    Returns an array of shape ``(n, n, 2)`` where entry ``[i, j]`` holds the
    scores of the game brains[i] (white) versus brains[j] (black); the diagonal
    stays zero.
    """
    count = len(brains)
    results = np.zeros((count, count, 2), dtype=np.float64)
    for i, white in enumerate(brains):
        for j, black in enumerate(brains):
            if i == j:
                continue
            results[i, j] = play_game(white, black, rng)
            logger.info(
                "game over (%d,%d: white: %f, black: %f)",
                i, j, results[i, j, Color.WHITE], results[i, j, Color.BLACK],
            )
    return results


def rank_brains(group_results: Sequence[np.ndarray]) -> list[RankedBrain]:
    """Rank all brains across groups, best score first.

    Brain ``j`` of a group is credited with entry 0 of every game ``[j, k]``
    and entry 1 of every game ``[k, j]``. Indices run across groups in order.
    """
    ranked: list[RankedBrain] = []
    offset = 0
    for results in group_results:
        results = np.asarray(results, dtype=np.float64)
        size = results.shape[0] if results.ndim else 0
        if results.shape != (size, size, 2):
            raise ValueError(f"group results must have shape (n, n, 2), got {results.shape}")
        off_diagonal = ~np.eye(size, dtype=bool)
        as_first = np.where(off_diagonal, results[..., 0], 0.0).sum(axis=1)
        as_second = np.where(off_diagonal, results[..., 1], 0.0).sum(axis=0)
        for j, score in enumerate(as_first + as_second):
            ranked.append(RankedBrain(offset + j, float(score)))
        offset += size
    return sorted(ranked, key=lambda r: r.score, reverse=True)


def _offspring(elites: Sequence[Brain], rng: np.random.Generator) -> Brain:
    # Each child is bred from one elite crossed with itself.
    parent = elites[int(rng.integers(len(elites)))]
    return Brain.crossover(parent, parent, rng)


def breed_population(
    brains: Sequence[Brain],
    ranking: Sequence[RankedBrain],
    elite_size: int,
    rng: np.random.Generator,
) -> list[Brain]:
    """Keep the elite, replace everyone else with offspring, and shuffle."""
    if len(ranking) != len(brains):
        raise ValueError("ranking must cover the whole population")
    if not 0 < elite_size <= len(brains):
        raise ValueError(f"elite size must be between 1 and {len(brains)}")

    population = list(brains)
    elites = [population[r.index] for r in ranking[:elite_size]]
    for ranked in ranking[elite_size:]:
        population[ranked.index] = _offspring(elites, rng)
    return [population[i] for i in rng.permutation(len(population))]


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="poulet-train",
        description="Train chess move-prediction networks by self-play.",
    )
    parser.add_argument("start_gen", nargs="?", type=int, default=0,
                        help="generation to start from (loads saved elites when above 0)")
    parser.add_argument("stop_gen", nargs="?", type=int, default=None,
                        help="generation to stop at (default: start + 10)")
    parser.add_argument("--models-dir", type=Path, default=Path("models"),
                        help="directory holding saved models")
    parser.add_argument("--population", type=int, default=POPULATION_SIZE)
    parser.add_argument("--group-size", type=int, default=GROUP_SIZE)
    parser.add_argument("--elite", type=int, default=ELITE_SIZE)
    parser.add_argument("--seed", type=int, default=None)
    args = parser.parse_args(argv)

    if args.stop_gen is None:
        args.stop_gen = args.start_gen + 10
    if args.population <= 0 or args.group_size <= 0:
        parser.error("population and group size must be positive")
    if args.population % args.group_size:
        parser.error("population must be a multiple of the group size")
    if not 0 < args.elite <= args.population:
        parser.error("elite size must be between 1 and the population size")
    return args


def main(argv: Sequence[str] | None = None) -> int:
    """Run the training loop from the command line."""
    args = _parse_args(argv)
    rng = np.random.default_rng(args.seed)
    stopping = False

    def _on_sigint(signum, frame):
        nonlocal stopping
        stopping = True
        print("got sigint, stopping after this generation")

    previous_handler = signal.signal(signal.SIGINT, _on_sigint)
    try:
        generation = args.start_gen
        if generation > 0:
            elites = []
            for i in range(args.elite):
                path = args.models_dir / f"{generation}-{i}.model"
                print(f"loading brain: {path}")
                elites.append(Brain.load(path))
            print(f"loaded gen {generation} brains")
            brains = elites + [
                _offspring(elites, rng) for _ in range(args.population - args.elite)
            ]
        else:
            brains = [new_brain(rng) for _ in range(args.population)]

        group_count = args.population // args.group_size
        while generation < args.stop_gen and not stopping:
            print(f"-- GENERATION {generation}/{args.stop_gen} --")
            results = [
                play_group(brains[g * args.group_size:(g + 1) * args.group_size], rng)
                for g in range(group_count)
            ]
            print("done with groups!")

            ranking = rank_brains(results)
            generation += 1

            if generation % SAVE_INTERVAL == 0:
                print("saving elite")
                args.models_dir.mkdir(parents=True, exist_ok=True)
                for i, ranked in enumerate(ranking[:args.elite]):
                    print(f"saving {ranked.index}")
                    brains[ranked.index].save(args.models_dir / f"{generation}-{i}.model")
                print("saved elite brains")

            print("generating offspring")
            print("shuffling new brains")
            brains = breed_population(brains, ranking, args.elite, rng)

        print("done")
    finally:
        signal.signal(signal.SIGINT, previous_handler)
    return 0