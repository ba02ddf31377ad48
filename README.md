# poulet

poulet plays chess with small feed-forward neural networks. It trains them
through self-play and a genetic algorithm.

The package has four modules:

- `poulet.chess` holds the board and the rules. It covers move validation,
  check detection, castling, en passant and automatic promotion to queen.
- `poulet.ai` holds dense layers (`Layer`) and networks built from them
  (`Brain`). It also has `softmax`, crossover with mutation, and a binary
  model format.
- `poulet.engine` turns a board into network inputs (`encode_board`) and
  samples a safe move for the side to play (`next_move`).
- `poulet.train` runs self-play tournaments, ranks the players and breeds
  new generations. The `poulet-train` command starts it.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Playing a move

```python
import numpy as np

from poulet.chess import Color, Game
from poulet.engine import NoLegalMove, new_brain, next_move

rng = np.random.default_rng()
game = Game.new()
brain = new_brain(rng)

try:
    ax, ay, bx, by = next_move(game, brain, Color.WHITE, 1.2, rng)
except NoLegalMove:
    print("no legal move left")
else:
    game.do_move(ax, ay, bx, by)
```

Coordinates are `(x, y)`:

- `x` is the file, 0 to 7 from a to h.
- `y` is the row, 0 to 7. Row 0 is black's back rank and row 7 is white's.
- The board is indexed `game.board[y][x]`.
- `pretty_square(x, y)` gives the usual square name, for example `"e2"`.

`Game.legal_move` and `Game.safe_move` return a `MoveKind`: `ILLEGAL`,
`LEGAL`, `TAKE`, `TAKE_ENPASSANT`, `CASTLE` or `UNSAFE`. `Game.safe_move`
reports `UNSAFE` for a move that leaves the mover's own king in check.

`Game.do_move` plays the move only if it is safe, and returns its `MoveKind`.

- The castling and en passant state in `Game.meta` is updated before the
  move is checked, so it can change even when the move is rejected.
- A pawn that reaches the last row becomes a queen.

`next_move` raises `NoLegalMove` when the colour has no safe move. It raises
`ValueError` if the brain does not produce 4096 outputs.

## Networks

`new_brain(rng)` builds a network with three layers:

- 768 → 1024, ReLU
- 1024 → 512, ReLU
- 512 → 4096, no activation

`Brain.forward` runs an input vector through all layers.
`Brain.crossover(a, b, rng)` blends two parents gene by gene and adds
Gaussian noise to the child.

## Saving and loading brains

```python
from poulet.ai import Brain

brain.save("0-0.model")
same = Brain.load("0-0.model")
```

`Brain.to_bytes` and `Brain.from_bytes` do the same in memory. All values
in the format are little-endian, in this order:

1. The number of layers, as an unsigned 64-bit integer.
2. For each layer:
   - the activation type, as a 32-bit integer;
   - for softmax layers only, the temperature as a 32-bit float;
   - the input size and then the output size, as unsigned 64-bit integers;
   - the weights, as 32-bit floats, one output row after another;
   - the biases, as 32-bit floats.

Truncated data or an unknown activation type raises `ValueError`.

## Training

```
poulet-train [START_GEN] [STOP_GEN] [--models-dir DIR] [--population N]
             [--group-size N] [--elite N] [--seed N]
```

The defaults are:

- a population of 256 brains, split into groups of 16;
- an elite of 8;
- models kept in `models/`;
- a random seed.

Within each group, every brain plays every other brain, once as white and
once as black.

Each game is scored as follows:

- Captures earn their material value.
- A side with no legal move loses 1000 points.
- The game also ends after 50 moves in a row without a capture or pawn move,
  or after 2048 moves. The leading side then gives up 100 points to the
  trailing side.
- Scores are divided by the number of moves played.

After each generation, all brains are ranked by their total score. The best
brains are kept as the elite. Every other brain is replaced by an offspring
bred from a randomly chosen elite brain, and then the population is shuffled.

Every fifth generation, the elite are saved as `<DIR>/<gen>-<n>.model`. The
directory is created if it does not exist.

When `START_GEN` is greater than 0, training resumes from the elite saved
for that generation. `STOP_GEN` defaults to `START_GEN + 10`. Ctrl-C stops
training after the current generation.

The functions behind the command can also be called directly:
`play_game`, `play_group`, `rank_brains` and `breed_population`. Finished
games are reported through the `poulet.train` logger at INFO level.

## What it does not do

- There is no command for a person to play against a trained network.
- There is no board display.
- Training games are played one after another in a single process.