from __future__ import annotations
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from dapipe.errors import MetricUndefined

METRICS = ("accuracy", "kappa", "precision", "recall", "f1")


def _ratio(numerator: int, denominator: int) -> Optional[float]:
    # a zero denominator leaves the metric undefined, which is not the same as zero
    if denominator == 0:
        return None
    return numerator / denominator


def _label_order(values: Sequence[Any]) -> List[Any]:
    return sorted(set(values), key=lambda v: (str(type(v).__name__), v))


@dataclass(frozen=True)
class ClassMetrics:
    label: Any
    tp: int
    fp: int
    fn: int

    @property
    def support(self) -> int:
        """
        Number of records whose actual label is this class.
        """
        return self.tp + self.fn

    @property
    def predicted(self) -> int:
        return self.tp + self.fp

    @property
    def precision(self) -> Optional[float]:
        return _ratio(self.tp, self.tp + self.fp)

    @property
    def recall(self) -> Optional[float]:
        return _ratio(self.tp, self.tp + self.fn)

    @property
    def f1(self) -> Optional[float]:
        """
        The harmonic mean of precision and recall. Undefined when either of them is, and when both are 0.
        """
        precision = self.precision
        recall = self.recall
        if precision is None or recall is None or precision + recall == 0:
            return None
        return 2 * precision * recall / (precision + recall)


@dataclass(frozen=True)
class EvaluationResult:
    """
    Evaluation of predicted labels against actual labels: overall accuracy and Cohen's kappa, and for every
    class its true positive, false positive and false negative counts, from which precision, recall and F1
    are derived. Metrics whose denominator is zero are None ("undefined") rather than 0; asking for one of
    them through metric() raises MetricUndefined.

    One class is designated as the positive class. Its metrics are the ones reported when a single
    precision/recall/F1 figure is wanted.
    """
    n: int
    correct: int
    labels: Tuple[Any, ...]
    classes: Tuple[ClassMetrics, ...]
    confusion: Tuple[Tuple[Tuple[Any, Any], int], ...]
    positive: Any

    @property
    def accuracy(self) -> float:
        return self.correct / self.n

    @property
    def kappa(self) -> Optional[float]:
        expected = sum(c.support * c.predicted for c in self.classes) / (self.n * self.n)
        if expected == 1:
            return None
        return (self.accuracy - expected) / (1 - expected)

    def confusion_matrix(self) -> Dict[Tuple[Any, Any], int]:
        """
        Mapping from (actual, predicted) to the number of records, for every pair of labels.
        """
        return dict(self.confusion)

    def class_metrics(self, label: Any) -> ClassMetrics:
        for c in self.classes:
            if c.label == label:
                return c
        raise KeyError("Unknown class %r" % (label,))

    def headline(self) -> ClassMetrics:
        return self.class_metrics(self.positive)

    def metric(self, name: str, positive: Optional[Any] = None) -> float:
        """
        Look up a metric by name: "accuracy", "kappa", or the "precision", "recall" or "f1" of the positive
        class (or of another class, if one is given).

        Raises:
            MetricUndefined: if the metric's denominator is zero.
        """
        if name == "accuracy":
            return self.accuracy
        if name == "kappa":
            kappa = self.kappa
            if kappa is None:
                raise MetricUndefined("kappa")
            return kappa
        if name not in METRICS:
            raise ValueError("Unknown metric %r, expected one of %s" % (name, ", ".join(METRICS)))
        label = self.positive if positive is None else positive
        value = getattr(self.class_metrics(label), name)
        if value is None:
            raise MetricUndefined(name, label)
        return value

    def report(self) -> str:
        """
        Return a pretty-printed report, with a row per class and overall accuracy and kappa.

        Returns:
            A string containing the report, rendered as an ascii-art table.
        """
        def pct(value: Optional[float]) -> str:
            return "n/a" if value is None else "%.2f" % (100 * value)

        table: List[Union[List[Any], str]] = [[
            "Class", "actual", "predicted", "match", "recall", "prec.", "fscore"
        ]]
        table.append("-" * 56)
        for c in self.classes:
            name = str(c.label) + (" *" if c.label == self.positive else "")
            table.append([name, c.support, c.predicted, c.tp, pct(c.recall), pct(c.precision), pct(c.f1)])
        table.append("-" * 56)
        table.append("accuracy: %s  kappa: %s  (n=%d)" % (pct(self.accuracy), pct(self.kappa), self.n))
        return _string_table(table)


def evaluate(
    predicted: Sequence[Any],
    actual: Sequence[Any],
    positive: Optional[Any] = None,
    labels: Optional[Sequence[Any]] = None,
) -> EvaluationResult:
    """
    Compare predicted labels with actual labels.

    Args:
        predicted: The predicted label of each record.
        actual: The actual label of each record, in the same order.
        positive: The class whose metrics are headlined; the first label by default.
        labels: The classes to report on, in order. By default, every label occurring in either sequence,
            sorted.

    Returns:
        The EvaluationResult.
    """
    predicted = list(predicted)
    actual = list(actual)
    if len(predicted) != len(actual):
        raise ValueError("Got %d predictions for %d records" % (len(predicted), len(actual)))
    if not actual:
        raise MetricUndefined("accuracy", subject="no records")
    label_list = list(labels) if labels is not None else _label_order(predicted + actual)
    if positive is None:
        positive = label_list[0]
    elif positive not in label_list:
        raise ValueError("Positive class %r is not among the labels %r" % (positive, label_list))

    pairs = Counter(zip(actual, predicted))
    classes = []
    for label in label_list:
        tp = pairs[(label, label)]
        fp = sum(n for (a, p), n in pairs.items() if p == label and a != label)
        fn = sum(n for (a, p), n in pairs.items() if a == label and p != label)
        classes.append(ClassMetrics(label, tp, fp, fn))
    confusion = tuple(((a, p), pairs[(a, p)]) for a in label_list for p in label_list)
    correct = sum(n for (a, p), n in pairs.items() if a == p)
    return EvaluationResult(
        n=len(actual),
        correct=correct,
        labels=tuple(label_list),
        classes=tuple(classes),
        confusion=confusion,
        positive=positive,
    )


def _string_table(table: List[Union[List[Any], str]], padding: int = 2) -> str:
    column_widths: Dict[int, int] = {}
    for row in table:
        if not isinstance(row, str):
            for i, col in enumerate(row):
                column_widths[i] = max(len(str(col)), column_widths.get(i, 0))
    lines = []
    for row in table:
        if isinstance(row, str):
            lines.append(row)
        else:
            line = "".join(str(col).ljust(column_widths[i] + padding) for i, col in enumerate(row))
            lines.append(line.rstrip())
    return "\n".join(lines) + "\n"
