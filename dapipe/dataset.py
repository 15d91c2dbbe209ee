from __future__ import annotations
from typing import Any, Dict, Hashable, Iterable, Iterator, List, Optional, Sequence, Tuple
from dataclasses import dataclass

import pandas as pd
from pandas.api import types as ptypes

from dapipe.errors import ParseError

CATEGORICAL = "categorical"
NUMERIC = "numeric"
TEXT = "text"
LABEL = "label"
KINDS = (CATEGORICAL, NUMERIC, TEXT, LABEL)


@dataclass(frozen=True)
class Field:
    name: str
    kind: str

    def __post_init__(self) -> None:
        if self.kind not in KINDS:
            raise ValueError("Unknown field kind %r for field %r" % (self.kind, self.name))


@dataclass(frozen=True)
class Schema:
    fields: Tuple[Field, ...]

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    def field_lookup(self, name: str) -> Optional[Field]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def of_kind(self, kind: str) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields if f.kind == kind)

    @classmethod
    def infer(
        cls,
        frame: pd.DataFrame,
        id_column: str,
        label_column: Optional[str] = None,
        text_columns: Iterable[str] = (),
    ) -> Schema:
        text_columns = set(text_columns)
        fields = []
        for name in frame.columns:
            if name == id_column:
                continue
            if name == label_column:
                kind = LABEL
            elif name in text_columns:
                kind = TEXT
            elif ptypes.is_bool_dtype(frame[name]):
                kind = CATEGORICAL
            elif ptypes.is_numeric_dtype(frame[name]):
                kind = NUMERIC
            else:
                kind = CATEGORICAL
            fields.append(Field(str(name), kind))
        return cls(tuple(fields))


@dataclass(frozen=True)
class Record:
    id: Hashable
    values: Dict[str, Any]
    label: Optional[Any] = None


class Dataset:
    """
    An ordered collection of Records sharing one Schema. The Schema is worked out once, when the Dataset is
    built, and is carried over unchanged by subset() -- so the training and test halves of a split always
    agree on which columns are categorical, numeric or text.

    Records are identified by the values of the id column, which have to be unique.
    """
    def __init__(
        self,
        frame: pd.DataFrame,
        id_column: str,
        label_column: Optional[str],
        schema: Schema,
    ) -> None:
        """
        This constructor should not be used directly -- use Dataset.from_frame() instead, which checks the
        invariants and infers the Schema.
        """
        self.frame = frame
        self.id_column = id_column
        self.label_column = label_column
        self.schema = schema

    @classmethod
    def from_frame(
        cls,
        frame: pd.DataFrame,
        id_column: Optional[str] = None,
        label_column: Optional[str] = None,
        text_columns: Iterable[str] = (),
    ) -> Dataset:
        """
        Build a Dataset from a data frame.

        Args:
            frame: The data, one row per record.
            id_column: The column holding record identifiers. If None (or absent from the frame), a column
                named "id" with 1-based row numbers is added.
            label_column: The column holding gold labels, if there is one.
            text_columns: Columns holding free text, as opposed to categorical values.

        Returns:
            The new Dataset.
        """
        frame = frame.reset_index(drop=True)
        if id_column is None or id_column not in frame.columns:
            id_column = id_column or "id"
            frame = frame.copy()
            frame.insert(0, id_column, range(1, len(frame) + 1))
        if label_column is not None and label_column not in frame.columns:
            raise ParseError("Label column %r not found" % label_column, subject=list(frame.columns))
        for column in text_columns:
            if column not in frame.columns:
                raise ParseError("Text column %r not found" % column, subject=list(frame.columns))
        duplicated = frame[id_column].duplicated()
        if duplicated.any():
            raise ParseError(
                "Identifiers must be unique, found duplicates",
                subject=list(frame.loc[duplicated, id_column][:5]),
            )
        schema = Schema.infer(frame, id_column, label_column, text_columns)
        return cls(frame, id_column, label_column, schema)

    def __len__(self) -> int:
        return len(self.frame)

    def __iter__(self) -> Iterator[Record]:
        return self.records()

    @property
    def ids(self) -> List[Hashable]:
        return list(self.frame[self.id_column])

    def labels(self, label_column: Optional[str] = None) -> List[Any]:
        column = label_column or self.label_column
        if column is None:
            raise ValueError("Dataset has no label column")
        return list(self.frame[column])

    @property
    def feature_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.schema.fields if f.kind != LABEL)

    def features(self) -> pd.DataFrame:
        return self.frame[list(self.feature_names)]

    def records(self) -> Iterator[Record]:
        names = self.feature_names
        for row in self.frame.to_dict(orient="records"):
            yield Record(
                id=row[self.id_column],
                values={name: row[name] for name in names},
                label=row[self.label_column] if self.label_column is not None else None,
            )

    def take(self, positions: Sequence[int]) -> Dataset:
        """
        Select records by position, in the given order, keeping the Schema.
        """
        frame = self.frame.iloc[list(positions)].reset_index(drop=True)
        return Dataset(frame, self.id_column, self.label_column, self.schema)

    def subset(self, ids: Iterable[Hashable]) -> Dataset:
        """
        Select records by identifier, in the given order, keeping the Schema.
        """
        position = {id_: i for i, id_ in enumerate(self.frame[self.id_column])}
        try:
            positions = [position[id_] for id_ in ids]
        except KeyError as e:
            raise KeyError("Unknown record id %r" % (e.args[0],)) from None
        return self.take(positions)

    def with_column(self, name: str, values: Sequence[Any], kind: str) -> Dataset:
        """
        Returns a copy of this Dataset with one column added (or replaced), and the Schema extended
        accordingly.
        """
        if len(values) != len(self.frame):
            raise ValueError("Expected %d values for column %r, got %d" % (len(self.frame), name, len(values)))
        frame = self.frame.copy()
        frame[name] = list(values)
        fields = tuple(f for f in self.schema.fields if f.name != name) + (Field(name, kind),)
        return Dataset(frame, self.id_column, self.label_column, Schema(fields))

    def with_label(self, label_column: str) -> Dataset:
        """
        Returns a copy of this Dataset with another column treated as the gold label.
        """
        if label_column not in self.frame.columns:
            raise ParseError("Label column %r not found" % label_column, subject=list(self.frame.columns))
        fields = []
        for f in self.schema.fields:
            if f.name == label_column:
                fields.append(Field(f.name, LABEL))
            elif f.kind == LABEL:
                fields.append(Field(f.name, CATEGORICAL))
            else:
                fields.append(f)
        return Dataset(self.frame, self.id_column, label_column, Schema(tuple(fields)))
