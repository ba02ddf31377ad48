"""A small fully connected network with genetic crossover and a binary model format."""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass, field
from enum import IntEnum
from os import PathLike
from pathlib import Path

import numpy as np

__all__ = [
    "ActivationType",
    "Activation",
    "Layer",
    "Brain",
    "gaussian_noise",
    "softmax",
]

_NOISE_CHANCE = 0.01
_NOISE_AMPLITUDE = 0.1
_ALPHA_LOW = 0.4
_ALPHA_SPAN = 0.2


class ActivationType(IntEnum):
    NONE = 0
    RELU = 1
    SOFTMAX = 2


@dataclass(frozen=True)
class Activation:
    """An activation function; ``temperature`` only matters for softmax."""

    type: ActivationType = ActivationType.NONE
    temperature: float = 1.0


def gaussian_noise(rng: np.random.Generator) -> float:
    """Draw one standard normal sample with the Box-Muller transform."""
    u1 = 1.0 - rng.random()
    u2 = rng.random()
    return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)


def _gaussian_array(rng: np.random.Generator, size: int) -> np.ndarray:
    u1 = 1.0 - rng.random(size)
    u2 = rng.random(size)
    return (np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)).astype(np.float32)


def softmax(logits, temperature: float) -> np.ndarray:
    """Return the temperature-scaled softmax of ``logits`` as a new array."""
    scaled = np.asarray(logits, dtype=np.float32) / np.float32(temperature)
    exps = np.exp(scaled - scaled.max())
    return exps / exps.sum()


def _crossover_array(a: np.ndarray, b: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    if a.shape != b.shape:
        raise ValueError(f"parent shapes differ: {a.shape} and {b.shape}")
    alpha = (_ALPHA_LOW + rng.random(a.shape) * _ALPHA_SPAN).astype(np.float32)
    child = alpha * a + (1 - alpha) * b
    # Mutation is applied to every gene except a small fraction of them.
    mutate = rng.random(a.shape) >= _NOISE_CHANCE
    noise = _gaussian_array(rng, a.size).reshape(a.shape)
    child += np.where(mutate, _NOISE_AMPLITUDE * noise, 0.0).astype(np.float32)
    return child.astype(np.float32)


@dataclass(eq=False)
class Layer:
    """A dense layer; ``weights`` has shape (output_size, input_size)."""

    weights: np.ndarray
    biases: np.ndarray
    activation: Activation = field(default_factory=Activation)

    def __post_init__(self) -> None:
        self.weights = np.asarray(self.weights, dtype=np.float32)
        self.biases = np.asarray(self.biases, dtype=np.float32)
        if self.weights.ndim != 2:
            raise ValueError("weights must be a 2-D array")
        if self.biases.shape != (self.weights.shape[0],):
            raise ValueError(
                f"biases must have shape ({self.weights.shape[0]},), got {self.biases.shape}"
            )

    @property
    def input_size(self) -> int:
        return self.weights.shape[1]

    @property
    def output_size(self) -> int:
        return self.weights.shape[0]

    @classmethod
    def random(
        cls,
        input_size: int,
        output_size: int,
        activation: Activation,
        rng: np.random.Generator,
    ) -> Layer:
        """Return a layer with He-scaled uniform weights and zero biases."""
        scale = math.sqrt(2.0 / input_size)
        weights = scale * (rng.random((output_size, input_size)) * 2 - 1)
        return cls(weights, np.zeros(output_size, dtype=np.float32), activation)

    def forward(self, inputs) -> np.ndarray:
        x = np.asarray(inputs, dtype=np.float32)
        if x.shape != (self.input_size,):
            raise ValueError(f"expected input of shape ({self.input_size},), got {x.shape}")
        out = self.weights @ x + self.biases
        if self.activation.type == ActivationType.RELU:
            out = np.maximum(out, np.float32(0))
        elif self.activation.type == ActivationType.SOFTMAX:
            out = softmax(out, self.activation.temperature)
        return out.astype(np.float32)

    @classmethod
    def crossover(cls, a: Layer, b: Layer, rng: np.random.Generator) -> Layer:
        """Blend two parent layers gene by gene and mutate the result."""
        return cls(
            _crossover_array(a.weights, b.weights, rng),
            _crossover_array(a.biases, b.biases, rng),
            a.activation,
        )


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._view = memoryview(data)
        self._offset = 0

    def take(self, size: int) -> memoryview:
        end = self._offset + size
        if end > len(self._view):
            raise ValueError("model data is truncated")
        chunk = self._view[self._offset:end]
        self._offset = end
        return chunk

    def unpack(self, fmt: str):
        return struct.unpack(fmt, self.take(struct.calcsize(fmt)))

    def floats(self, count: int) -> np.ndarray:
        return np.frombuffer(self.take(4 * count), dtype="<f4").astype(np.float32)


@dataclass(eq=False)
class Brain:
    """A stack of layers applied in order."""

    layers: list[Layer] = field(default_factory=list)

    def forward(self, inputs) -> np.ndarray:
        current = np.asarray(inputs, dtype=np.float32)
        for layer in self.layers:
            current = layer.forward(current)
        return current

    @classmethod
    def crossover(cls, a: Brain, b: Brain, rng: np.random.Generator) -> Brain:
        if len(a.layers) != len(b.layers):
            raise ValueError("parents have different numbers of layers")
        return cls([Layer.crossover(la, lb, rng) for la, lb in zip(a.layers, b.layers)])

    def to_bytes(self) -> bytes:
        parts = [struct.pack("<Q", len(self.layers))]
        for layer in self.layers:
            parts.append(struct.pack("<i", int(layer.activation.type)))
            if layer.activation.type == ActivationType.SOFTMAX:
                parts.append(struct.pack("<f", layer.activation.temperature))
            parts.append(struct.pack("<QQ", layer.input_size, layer.output_size))
            parts.append(layer.weights.astype("<f4").tobytes())
            parts.append(layer.biases.astype("<f4").tobytes())
        return b"".join(parts)

    @classmethod
    def from_bytes(cls, data: bytes) -> Brain:
        reader = _Reader(data)
        (count,) = reader.unpack("<Q")
        layers = []
        for _ in range(count):
            (raw_type,) = reader.unpack("<i")
            try:
                kind = ActivationType(raw_type)
            except ValueError:
                raise ValueError(f"unknown activation type {raw_type}") from None
            temperature = 1.0
            if kind == ActivationType.SOFTMAX:
                (temperature,) = reader.unpack("<f")
            input_size, output_size = reader.unpack("<QQ")
            weights = reader.floats(input_size * output_size).reshape(output_size, input_size)
            biases = reader.floats(output_size)
            layers.append(Layer(weights, biases, Activation(kind, temperature)))
        return cls(layers)

    def save(self, path: str | PathLike) -> None:
        Path(path).write_bytes(self.to_bytes())

    @classmethod
    def load(cls, path: str | PathLike) -> Brain:
        return cls.from_bytes(Path(path).read_bytes())