"""
export-validator — record sampling strategies

File: src/export_validator/inference/sampling.py
Last updated: 2026-10-18

Purpose
- Select a bounded subset of records (or array elements) to infer from.

Functional requirements
- ``first``: the initial N items; reads lazily so large streams are not materialized.
- ``random``: N distinct items drawn uniformly without replacement, returned in
  source order. Iterators are drawn from with a reservoir, so at most N items
  are held at once.
- ``stratified``: the first ``min(1000, N)`` items plus a random draw of the
  remainder from the tail.
- All randomness comes from the injected ``random.Random``; equal seeds give
  equal samples.
"""

from __future__ import annotations

import itertools
import random
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TypeVar

from export_validator.constants import STRATIFIED_HEAD_SIZE

T = TypeVar("T")


class SampleStrategy(StrEnum):
    FIRST = "first"
    RANDOM = "random"
    STRATIFIED = "stratified"


@dataclass(slots=True)
class Sampler:
    strategy: SampleStrategy = SampleStrategy.FIRST
    rng: random.Random = field(default_factory=random.Random)
    head_size: int = STRATIFIED_HEAD_SIZE

    def __post_init__(self) -> None:
        self.strategy = SampleStrategy(self.strategy)
        if self.head_size <= 0:
            raise ValueError("head_size must be > 0")

    def sample(self, items: Iterable[T], size: int) -> list[T]:
        if size <= 0:
            raise ValueError("sample size must be > 0")

        if self.strategy is SampleStrategy.FIRST:
            if isinstance(items, Sequence):
                return list(items[:size])
            return list(itertools.islice(items, size))

        head_count = 0 if self.strategy is SampleStrategy.RANDOM else min(self.head_size, size)
        if isinstance(items, Sequence):
            if len(items) <= size:
                return list(items)
            return list(items[:head_count]) + self._draw(items[head_count:], size - head_count)

        stream = iter(items)
        head = list(itertools.islice(stream, head_count))
        return head + self._reservoir(stream, size - head_count)

    def _draw(self, population: Sequence[T], size: int) -> list[T]:
        if len(population) <= size:
            return list(population)
        indices = sorted(self.rng.sample(range(len(population)), size))
        return [population[index] for index in indices]

    def _reservoir(self, stream: Iterator[T], size: int) -> list[T]:
        """Uniform draw of ``size`` items from ``stream`` in one pass, kept in source order."""

        if size == 0:
            return []
        kept: list[tuple[int, T]] = []
        for index, item in enumerate(stream):
            if index < size:
                kept.append((index, item))
                continue
            slot = self.rng.randrange(index + 1)
            if slot < size:
                kept[slot] = (index, item)
        kept.sort(key=lambda entry: entry[0])
        return [item for _, item in kept]


__all__ = ["SampleStrategy", "Sampler"]
