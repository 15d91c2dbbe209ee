"""
Hyperparameter grid search with repeated stratified k-fold cross-validation.

Every combination of hyperparameter values is scored the same way: the training data is split into k
stratified folds, a model is trained on k-1 of them and evaluated on the one held out, for each fold in turn,
and the whole thing is repeated with fresh fold assignments. The mean of the chosen metric over all
fold evaluations is the combination's score. Results are collected as explicit (parameters -> scores)
points, so the whole grid can be inspected afterwards, not just the winner.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from itertools import product
from typing import Any, Dict, List, Mapping, Optional, Sequence
import logging

import pandas as pd

from dapipe.dataset import Dataset
from dapipe.errors import MetricUndefined
from dapipe.evaluation import METRICS, evaluate
from dapipe.models import Model, resolve_method, train
from dapipe.split import repeated_stratified_folds
from dapipe.utils import progressify

logger = logging.getLogger(__name__)


def expand_grid(param_grid: Mapping[str, Sequence[Any]]) -> List[Dict[str, Any]]:
    """
    All combinations of the grid's values, the first axis varying slowest.

    Example:
        expand_grid({"C": [1, 10], "sigma": [0.1, 0.2]})
        == [{"C": 1, "sigma": 0.1}, {"C": 1, "sigma": 0.2}, {"C": 10, "sigma": 0.1}, {"C": 10, "sigma": 0.2}]
    """
    names = list(param_grid)
    for name in names:
        if isinstance(param_grid[name], (str, bytes)) or len(param_grid[name]) == 0:
            raise ValueError("Grid axis %r must be a non-empty list of values" % name)
    return [dict(zip(names, values)) for values in product(*(param_grid[name] for name in names))]


@dataclass(frozen=True)
class GridPoint:
    params: Dict[str, Any]
    # one entry per repeat x fold; None where the metric was undefined on that fold
    scores: List[Optional[float]]

    @property
    def mean(self) -> Optional[float]:
        defined = [s for s in self.scores if s is not None]
        if not defined:
            return None
        return sum(defined) / len(defined)

    @property
    def n_undefined(self) -> int:
        return sum(1 for s in self.scores if s is None)


@dataclass
class GridSearchResult:
    method: str
    metric: str
    results: List[GridPoint]
    best_index: int
    best_model: Optional[Model] = field(default=None, repr=False)

    @property
    def best(self) -> GridPoint:
        return self.results[self.best_index]

    @property
    def best_params(self) -> Dict[str, Any]:
        return self.best.params

    @property
    def best_score(self) -> float:
        score = self.best.mean
        assert score is not None
        return score

    def to_frame(self) -> pd.DataFrame:
        """
        One row per combination, with a column per hyperparameter plus the mean score (named after the
        metric) and the number of undefined fold scores.
        """
        rows = []
        for point in self.results:
            row = dict(point.params)
            row[self.metric] = point.mean
            row["undefined"] = point.n_undefined
            rows.append(row)
        return pd.DataFrame(rows)

    def report(self) -> str:
        lines = ["Grid search for %s, %s:" % (self.method, self.metric)]
        for i, point in enumerate(self.results):
            mean = "n/a" if point.mean is None else "%.4f" % point.mean
            marker = " <- best" if i == self.best_index else ""
            lines.append("  %s: %s%s" % (point.params, mean, marker))
        return "\n".join(lines) + "\n"


def _best_index(points: Sequence[GridPoint]) -> Optional[int]:
    best: Optional[int] = None
    for i, point in enumerate(points):
        mean = point.mean
        if mean is None:
            continue
        # strictly greater: ties go to the first combination
        if best is None or mean > points[best].mean:  # type: ignore
            best = i
    return best


def grid_search(
    dataset: Dataset,
    label_column: Optional[str],
    method: str,
    param_grid: Mapping[str, Sequence[Any]],
    cv_folds: int = 10,
    cv_repeats: int = 3,
    metric: str = "accuracy",
    seed: int = 0,
    positive: Optional[Any] = None,
    refit: bool = False,
    progress: bool = False,
) -> GridSearchResult:
    """
    Find the hyperparameter combination with the best cross-validated metric.

    Args:
        dataset: The training data.
        label_column: The label column; the dataset's label column if None.
        method: The model method (see dapipe.models).
        param_grid: For every hyperparameter to tune, the values to try.
        cv_folds: Number of folds.
        cv_repeats: How many times the fold assignment is redrawn.
        metric: One of "accuracy", "kappa", "precision", "recall", "f1". The last three refer to the
            positive class.
        seed: Seed of the first fold assignment; repeat r uses seed + r.
        positive: The positive class for precision, recall and F1; the first label by default.
        refit: Also train a model on the whole dataset with the best hyperparameters.
        progress: Show a progress bar.

    Returns:
        The GridSearchResult, holding a GridPoint per combination in grid order.

    Raises:
        MetricUndefined: if the metric is undefined on every fold of every combination.
    """
    method = resolve_method(method)
    if metric not in METRICS:
        raise ValueError("Unknown metric %r, expected one of %s" % (metric, ", ".join(METRICS)))
    if label_column is not None and label_column != dataset.label_column:
        dataset = dataset.with_label(label_column)
    labels = dataset.labels()
    all_labels = sorted(set(labels), key=lambda v: (str(type(v).__name__), v))
    folds = list(repeated_stratified_folds(labels, cv_folds, cv_repeats, seed))
    combinations = expand_grid(param_grid)
    logger.info(
        "[tune] %s: %d combinations x %d folds x %d repeats", method, len(combinations), cv_folds, cv_repeats
    )

    points = []
    for params in progressify(combinations, "combination %i/%n", enabled=progress):
        scores: List[Optional[float]] = []
        for _repeat, _fold, train_positions, test_positions in folds:
            train_part = dataset.take(train_positions)
            test_part = dataset.take(test_positions)
            model = train(train_part, None, method, params)
            result = evaluate(model.predict(test_part), test_part.labels(), positive, all_labels)
            try:
                scores.append(result.metric(metric))
            except MetricUndefined:
                scores.append(None)
        point = GridPoint(params, scores)
        logger.debug("[tune] %s -> %s", params, point.mean)
        points.append(point)

    best_index = _best_index(points)
    if best_index is None:
        raise MetricUndefined(metric, positive, stage="tune", subject=method)
    search = GridSearchResult(method, metric, points, best_index)
    logger.info("[tune] best %s: %s (%s=%.4f)", method, search.best_params, metric, search.best_score)
    if refit:
        search.best_model = train(dataset, None, method, search.best_params)
    return search
