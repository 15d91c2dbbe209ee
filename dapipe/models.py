from __future__ import annotations
from typing import Any, Dict, List, Optional
import logging

import numpy as np
import pandas as pd
from sklearn.base import ClassifierMixin
from sklearn.feature_extraction.text import CountVectorizer
from sklearn.impute import SimpleImputer
from sklearn.naive_bayes import MultinomialNB
from sklearn.preprocessing import StandardScaler
from sklearn.svm import SVC
from sklearn.tree import DecisionTreeClassifier

from dapipe.dataset import CATEGORICAL, NUMERIC, TEXT, Dataset
from dapipe.errors import TrainError
from dapipe.features import DummyEncoder

logger = logging.getLogger(__name__)

NAIVE_BAYES = "naive_bayes"
DECISION_TREE = "decision_tree"
SVM_RADIAL = "svm_radial"

METHOD_ALIASES = {
    "naive_bayes": NAIVE_BAYES,
    "nb": NAIVE_BAYES,
    "decision_tree": DECISION_TREE,
    "tree": DECISION_TREE,
    "rpart": DECISION_TREE,
    "svm_radial": SVM_RADIAL,
    "svm": SVM_RADIAL,
}

DEFAULT_HYPERPARAMETERS: Dict[str, Dict[str, Any]] = {
    NAIVE_BAYES: {"laplace": 1.0},
    DECISION_TREE: {"max_depth": None, "min_samples_split": 2, "cp": 0.0, "random_state": 0},
    # sigma=None lets scikit-learn pick the kernel width from the data
    SVM_RADIAL: {"sigma": None, "C": 1.0},
}


def resolve_method(method: str) -> str:
    try:
        return METHOD_ALIASES[method.lower()]
    except KeyError:
        raise TrainError(
            "Unknown method %r, expected one of %s" % (method, ", ".join(sorted(METHOD_ALIASES))),
            subject=method,
        ) from None


def _estimator(method: str, params: Dict[str, Any]) -> ClassifierMixin:
    if method == NAIVE_BAYES:
        return MultinomialNB(alpha=params["laplace"])
    elif method == DECISION_TREE:
        return DecisionTreeClassifier(
            max_depth=params["max_depth"],
            min_samples_split=params["min_samples_split"],
            ccp_alpha=params["cp"],
            random_state=params["random_state"],
        )
    else:
        # the radial kernel is exp(-sigma * |x - x'|^2), i.e. scikit-learn's gamma
        gamma = "scale" if params["sigma"] is None else params["sigma"]
        return SVC(kernel="rbf", gamma=gamma, C=params["C"])


class FeatureEncoder:
    """
    Turns the feature columns of a Dataset into a numeric matrix: categorical columns become indicator
    columns, text columns become bag-of-words counts, numeric columns have missing values filled in with
    the training mean and are optionally standardized.
    """
    def __init__(self, dataset: Dataset, scale_numeric: bool = False) -> None:
        self.categorical = list(dataset.schema.of_kind(CATEGORICAL))
        self.numeric = list(dataset.schema.of_kind(NUMERIC))
        self.text = list(dataset.schema.of_kind(TEXT))
        self.scale_numeric = scale_numeric
        self.dummies = DummyEncoder()
        self.imputer: Optional[SimpleImputer] = None
        self.scaler: Optional[StandardScaler] = None
        self.vectorizers: Dict[str, CountVectorizer] = {}

    @property
    def n_columns(self) -> int:
        return len(self.categorical) + len(self.numeric) + len(self.text)

    def fit(self, frame: pd.DataFrame) -> FeatureEncoder:
        if self.categorical:
            self.dummies.fit(frame[self.categorical], columns=self.categorical)
        if self.numeric:
            self.imputer = SimpleImputer(strategy="mean").fit(frame[self.numeric])
            if self.scale_numeric:
                self.scaler = StandardScaler().fit(self.imputer.transform(frame[self.numeric]))
        for column in self.text:
            self.vectorizers[column] = CountVectorizer().fit(frame[column].fillna("").astype(str))
        return self

    def transform(self, frame: pd.DataFrame) -> np.ndarray:
        blocks = []
        if self.categorical:
            blocks.append(self.dummies.transform(frame[self.categorical]).to_numpy(dtype=float))
        if self.numeric:
            assert self.imputer is not None
            numeric = self.imputer.transform(frame[self.numeric])
            if self.scaler is not None:
                numeric = self.scaler.transform(numeric)
            blocks.append(numeric)
        for column in self.text:
            counts = self.vectorizers[column].transform(frame[column].fillna("").astype(str))
            blocks.append(counts.toarray().astype(float))
        return np.hstack(blocks)


class Model:
    """
    A fitted classifier: the feature encoding learnt from the training data plus a scikit-learn estimator.
    Create Models with train().
    """
    def __init__(
        self,
        method: str,
        hyperparameters: Dict[str, Any],
        label_column: str,
        encoder: FeatureEncoder,
        estimator: ClassifierMixin,
    ) -> None:
        self.method = method
        self.hyperparameters = hyperparameters
        self.label_column = label_column
        self.encoder = encoder
        self.estimator = estimator

    @property
    def classes(self) -> List[Any]:
        return self.estimator.classes_.tolist()

    def predict(self, dataset: Dataset) -> List[Any]:
        if len(dataset) == 0:
            return []
        x = self.encoder.transform(dataset.frame)
        return self.estimator.predict(x).tolist()

    def __repr__(self) -> str:
        return "Model(%s, %s)" % (self.method, self.hyperparameters)


def train(
    dataset: Dataset,
    label_column: Optional[str] = None,
    method: str = DECISION_TREE,
    hyperparameters: Optional[Dict[str, Any]] = None,
) -> Model:
    """
    Fit a classifier of the given method to a dataset.

    Args:
        dataset: The training data.
        label_column: The column holding the labels to learn; the dataset's label column by default.
        method: "naive_bayes", "decision_tree" or "svm_radial" (or one of their aliases).
        hyperparameters: Method-specific settings, overriding DEFAULT_HYPERPARAMETERS[method]:
            naive_bayes: laplace (additive smoothing).
            decision_tree: max_depth, min_samples_split, cp (cost-complexity pruning), random_state.
            svm_radial: sigma (kernel width), C (cost).

    Returns:
        The fitted Model.
    """
    method = resolve_method(method)
    params = dict(DEFAULT_HYPERPARAMETERS[method])
    unknown = set(hyperparameters or {}) - set(params)
    if unknown:
        raise TrainError("Unknown hyperparameters for %s: %s" % (method, ", ".join(sorted(unknown))), subject=method)
    params.update(hyperparameters or {})

    if label_column is not None and label_column != dataset.label_column:
        dataset = dataset.with_label(label_column)
    if dataset.label_column is None:
        raise TrainError("No label column to train on", subject=method)
    if len(dataset) == 0:
        raise TrainError("No training data", subject=method)
    labels = dataset.labels()
    if len(set(labels)) < 2:
        raise TrainError(
            "Label column %r has a single class %r" % (dataset.label_column, labels[0]), subject=method
        )

    encoder = FeatureEncoder(dataset, scale_numeric=(method == SVM_RADIAL))
    if encoder.n_columns == 0:
        raise TrainError("No feature columns", subject=method)
    estimator = _estimator(method, params)
    logger.debug("[train] %s %s on %d records", method, params, len(dataset))
    try:
        x = encoder.fit(dataset.frame).transform(dataset.frame)
        estimator.fit(x, np.asarray(labels))
    except ValueError as e:
        raise TrainError("Fitting %s failed: %s" % (method, e), subject=method) from e
    return Model(method, params, dataset.label_column, encoder, estimator)


def predict(model: Model, dataset: Dataset) -> List[Any]:
    return model.predict(dataset)
