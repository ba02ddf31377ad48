"""Chess move selection driven by a neural network."""

from __future__ import annotations

import numpy as np

from .ai import Activation, ActivationType, Brain, Layer, softmax
from .chess import EMPTY, Color, Game, MoveKind, color_from_square, piece_from_square

__all__ = [
    "INPUT_SIZE",
    "MOVE_COUNT",
    "NoLegalMove",
    "encode_board",
    "move_from_index",
    "new_brain",
    "next_move",
]

INPUT_SIZE = 768
MOVE_COUNT = 4096
_SLOTS_PER_SQUARE = 12


class NoLegalMove(Exception):
    """Raised when the side to move has no legal, safe move."""


def encode_board(board) -> np.ndarray:
    """One-hot encode a board into a vector of ``INPUT_SIZE`` floats."""
    inputs = np.zeros(INPUT_SIZE, dtype=np.float32)
    for y, row in enumerate(board):
        for x, square in enumerate(row):
            if square == EMPTY:
                continue
            index = (
                (y * 8 + x) * _SLOTS_PER_SQUARE
                + int(piece_from_square(square))
                + int(color_from_square(square)) * 6
            )
            # A white king on the last square would land one past the end.
            if index < INPUT_SIZE:
                inputs[index] = 1.0
    return inputs


def move_from_index(index: int) -> tuple[int, int, int, int]:
    """Decode an output index into ``(ax, ay, bx, by)``."""
    source, target = divmod(index, 64)
    ay, ax = divmod(source, 8)
    by, bx = divmod(target, 8)
    return ax, ay, bx, by


def new_brain(rng: np.random.Generator) -> Brain:
    """Return a freshly initialised move-prediction network."""
    return Brain(
        [
            Layer.random(INPUT_SIZE, 1024, Activation(ActivationType.RELU), rng),
            Layer.random(1024, 512, Activation(ActivationType.RELU), rng),
            Layer.random(512, MOVE_COUNT, Activation(ActivationType.NONE), rng),
        ]
    )


def _valid_moves(game: Game, color: Color) -> np.ndarray:
    valid = np.zeros(MOVE_COUNT, dtype=bool)
    for ay, row in enumerate(game.board):
        for ax, square in enumerate(row):
            if square == EMPTY or color_from_square(square) != color:
                continue
            base = (ay * 8 + ax) * 64
            for by in range(8):
                for bx in range(8):
                    move = game.safe_move(ax, ay, bx, by)
                    if move not in (MoveKind.ILLEGAL, MoveKind.UNSAFE):
                        valid[base + by * 8 + bx] = True
    return valid


def next_move(
    game: Game,
    brain: Brain,
    color: Color,
    temperature: float,
    rng: np.random.Generator,
) -> tuple[int, int, int, int]:
    """Sample a safe move for ``color`` from the network's output distribution."""
    logits = np.array(brain.forward(encode_board(game.board)), dtype=np.float32)
    if logits.shape != (MOVE_COUNT,):
        raise ValueError(f"brain must produce {MOVE_COUNT} outputs, got {logits.shape}")

    valid = _valid_moves(game, color)
    if not valid.any():
        raise NoLegalMove(f"{color.name.lower()} has no legal move")

    logits[~valid] = -np.inf
    probs = softmax(logits, temperature)

    candidates = np.flatnonzero(probs > 0)
    cumulative = np.cumsum(probs[candidates], dtype=np.float32)
    total = float(cumulative[-1]) if cumulative.size else 0.0
    r = rng.random() * total
    position = int(np.searchsorted(cumulative, r, side="left"))
    if position < candidates.size:
        selected = int(candidates[position])
    else:
        selected = int(np.argmax(probs))
    return move_from_index(selected)