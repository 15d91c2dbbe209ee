from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from pandas.api import types as ptypes

THRESHOLD = 0.5


def _indicator_name(column: str, value: Any) -> str:
    return "%s_%s" % (column, value)


def _sort_key(value: Any) -> Any:
    return (str(type(value).__name__), value)


class DummyEncoder:
    """
    Expands categorical columns into one 0/1 indicator column per observed value, so that distance- and
    margin-based models can use them. Numeric columns are passed through unchanged.

    The expansion can be undone with inverse_transform(): an indicator counts as set when it is above 0.5,
    which also works on smoothed or averaged indicator values.
    """
    def __init__(self) -> None:
        self.categories: Dict[str, List[Any]] = {}
        self.numeric: List[str] = []
        self.columns: List[str] = []

    def fit(self, frame: pd.DataFrame, columns: Optional[Sequence[str]] = None) -> DummyEncoder:
        """
        Record the categories of each categorical column.

        Args:
            frame: The training data.
            columns: The columns to treat as categorical. By default, every column that is not numeric (or
                is boolean) is categorical.
        """
        if columns is None:
            columns = [
                c for c in frame.columns
                if ptypes.is_bool_dtype(frame[c]) or not ptypes.is_numeric_dtype(frame[c])
            ]
        self.columns = [str(c) for c in frame.columns]
        self.categories = {
            str(c): sorted(frame[c].dropna().unique().tolist(), key=_sort_key) for c in columns
        }
        self.numeric = [c for c in self.columns if c not in self.categories]
        return self

    @property
    def feature_names(self) -> List[str]:
        names = []
        for column in self.columns:
            if column in self.categories:
                names.extend(_indicator_name(column, value) for value in self.categories[column])
            else:
                names.append(column)
        return names

    def transform(self, frame: pd.DataFrame) -> pd.DataFrame:
        """
        Encode a frame with the columns seen in fit(). Values that were not seen in fit() get all-zero
        indicators.
        """
        missing = [c for c in self.columns if c not in frame.columns]
        if missing:
            raise KeyError("Columns missing from data: %s" % ", ".join(missing))
        parts: Dict[str, np.ndarray] = {}
        for column in self.columns:
            values = frame[column].to_numpy()
            if column in self.categories:
                for value in self.categories[column]:
                    parts[_indicator_name(column, value)] = (values == value).astype(np.int8)
            else:
                parts[column] = values.astype(float)
        return pd.DataFrame(parts, index=frame.index, columns=self.feature_names)

    def fit_transform(self, frame: pd.DataFrame, columns: Optional[Sequence[str]] = None) -> pd.DataFrame:
        return self.fit(frame, columns).transform(frame)

    def inverse_transform(self, encoded: pd.DataFrame) -> pd.DataFrame:
        """
        Recover the original columns from their encoding. For each categorical column, the category whose
        indicator is largest wins, provided it is above 0.5; otherwise the value is missing (None).
        """
        result: Dict[str, Any] = {}
        for column in self.columns:
            if column not in self.categories:
                result[column] = encoded[column].to_numpy()
                continue
            values = self.categories[column]
            if not values:
                result[column] = pd.Series([None] * len(encoded), index=encoded.index, dtype=object)
                continue
            indicators = encoded[[_indicator_name(column, v) for v in values]].to_numpy(dtype=float)
            best = indicators.argmax(axis=1)
            decoded = []
            for row, i in zip(indicators, best):
                decoded.append(values[i] if row[i] > THRESHOLD else None)
            # object dtype keeps None as the missing value
            result[column] = pd.Series(decoded, index=encoded.index, dtype=object)
        return pd.DataFrame(result, index=encoded.index, columns=self.columns)
