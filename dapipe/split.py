from __future__ import annotations
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from dapipe.dataset import Dataset
from dapipe.errors import ParseError


def _strata(labels: Sequence[Any]) -> Dict[Any, np.ndarray]:
    """
    Positions of each label value, with the label values in sorted order so that the random draws made for
    a given seed don't depend on the order the labels happen to appear in.
    """
    positions: Dict[Any, List[int]] = {}
    for i, label in enumerate(labels):
        positions.setdefault(label, []).append(i)
    return {
        label: np.array(positions[label])
        for label in sorted(positions, key=lambda v: (str(type(v).__name__), v))
    }


def stratified_split(
    dataset: Dataset,
    label_column: Optional[str] = None,
    train_fraction: float = 0.7,
    seed: int = 0,
) -> Tuple[Dataset, Dataset]:
    """
    Split a dataset into a training and a test part, so that each label keeps its share of the data in
    both parts. Within each label, round(train_fraction * count) records, drawn at random, go to the
    training part.

    The split only depends on the labels and the seed. Both parts keep the order of the input dataset.

    Args:
        dataset: The data to split.
        label_column: The column to stratify on; the dataset's label column by default.
        train_fraction: Fraction of each label's records that go into the training part.
        seed: Seed for the random draw.

    Returns:
        (train, test)
    """
    if not 0 < train_fraction < 1:
        raise ValueError("train_fraction must be between 0 and 1, got %r" % train_fraction)
    labels = dataset.labels(label_column)
    if any(label is None or label != label for label in labels):  # NaN
        raise ParseError("Can't stratify on missing labels", stage="split", subject=label_column)
    rng = np.random.RandomState(seed)
    in_train = np.zeros(len(labels), dtype=bool)
    for positions in _strata(labels).values():
        n_train = int(round(train_fraction * len(positions)))
        in_train[rng.permutation(positions)[:n_train]] = True
    return dataset.take(np.flatnonzero(in_train)), dataset.take(np.flatnonzero(~in_train))


def stratified_folds(labels: Sequence[Any], k: int, seed: int = 0) -> List[np.ndarray]:
    """
    Assign every position to one of k folds, so that each label is spread as evenly as possible over the
    folds. The records of each label are shuffled and then dealt out to the folds in turn; the dealing
    continues across labels, so fold sizes differ by at most one.

    Returns:
        k sorted arrays of positions -- the held-out part of each fold.
    """
    if k < 2:
        raise ValueError("Need at least 2 folds, got %d" % k)
    if k > len(labels):
        raise ValueError("Can't make %d folds out of %d records" % (k, len(labels)))
    rng = np.random.RandomState(seed)
    folds: List[List[int]] = [[] for _ in range(k)]
    next_fold = 0
    for positions in _strata(labels).values():
        for position in rng.permutation(positions):
            folds[next_fold].append(int(position))
            next_fold = (next_fold + 1) % k
    return [np.array(sorted(fold), dtype=int) for fold in folds]


def repeated_stratified_folds(
    labels: Sequence[Any],
    k: int,
    repeats: int = 1,
    seed: int = 0,
) -> Iterator[Tuple[int, int, np.ndarray, np.ndarray]]:
    """
    Repeated stratified k-fold cross-validation. Each repeat draws a new fold assignment (with seed
    seed + repeat).

    Yields:
        (repeat, fold, train_positions, test_positions)
    """
    if repeats < 1:
        raise ValueError("Need at least one repeat, got %d" % repeats)
    everything = np.arange(len(labels))
    for repeat in range(repeats):
        for fold, held_out in enumerate(stratified_folds(labels, k, seed + repeat)):
            yield repeat, fold, np.setdiff1d(everything, held_out), held_out
