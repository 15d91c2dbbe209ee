from __future__ import annotations
from typing import Dict, FrozenSet, Hashable, Iterable, Mapping, Sequence, Tuple
from collections import Counter
import logging

import numpy as np
import pandas as pd

from dapipe.errors import ParseError

logger = logging.getLogger(__name__)

POSITIVE_CATEGORIES = ("positive", "trust")
NEGATIVE_CATEGORIES = ("negative", "fear")
SCORE_COLUMNS = ("positive", "negative", "fear", "trust")


class Dictionary:
    """
    A sentiment lexicon: for each category (positive, negative, fear, trust, ...) the set of terms that
    signal it. Terms and category names are lowercase. A Dictionary can't be changed once it is built.
    """
    def __init__(self, categories: Mapping[str, Iterable[str]]) -> None:
        self._categories: Dict[str, FrozenSet[str]] = {
            name.lower(): frozenset(term.lower() for term in terms) for name, terms in categories.items()
        }

    @property
    def categories(self) -> Tuple[str, ...]:
        return tuple(self._categories)

    def terms(self, category: str) -> FrozenSet[str]:
        return self._categories.get(category.lower(), frozenset())

    def __len__(self) -> int:
        return len(self._categories)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Dictionary) and self._categories == other._categories

    def __repr__(self) -> str:
        sizes = ", ".join("%s: %d" % (name, len(terms)) for name, terms in self._categories.items())
        return "Dictionary(%s)" % sizes

    @classmethod
    def from_frame(
        cls,
        frame: pd.DataFrame,
        term_column: str,
        categories: Sequence[str] = ("Positive", "Negative", "Fear", "Trust"),
        no_translation: str = "NO TRANSLATION",
    ) -> Dictionary:
        """
        Build a Dictionary from a lexicon table with one row per term and one 0/1 column per category.

        Args:
            frame: The lexicon table.
            term_column: The column holding the terms (in the language of the documents).
            categories: The category columns to use.
            no_translation: Rows whose term is this value (the term has no translation into the target
                language) are dropped, as are rows with no term at all.
        """
        missing = [c for c in (term_column, *categories) if c not in frame.columns]
        if missing:
            raise ParseError("Lexicon is missing columns %s" % ", ".join(missing), subject=list(frame.columns))
        rows = frame[frame[term_column].notna() & (frame[term_column] != no_translation)]
        dropped = len(frame) - len(rows)
        if dropped:
            logger.debug("[lexicon] dropped %d rows without a term", dropped)
        terms = rows[term_column].astype(str).str.strip()
        result = {}
        for category in categories:
            flags = pd.to_numeric(rows[category], errors="coerce").fillna(0)
            result[category] = terms[flags == 1]
        return cls(result)


def count_terms(lemmas: str, dictionary: Dictionary) -> Dict[str, int]:
    """
    Count, for each category, how many of the (whitespace-separated) lemmas of a document belong to it.
    Repeated lemmas count every time.
    """
    occurrences = Counter(lemmas.lower().split()) if lemmas else Counter()
    return {
        category: sum(n for lemma, n in occurrences.items() if lemma in dictionary.terms(category))
        for category in dictionary.categories
    }


def score_documents(lemmas: Mapping[Hashable, str], dictionary: Dictionary) -> pd.DataFrame:
    """
    Dictionary-based sentiment of each document.

    score = (positive + trust) - (negative + fear), and sentiment is the sign of the score: 1, 0 or -1.
    Categories the dictionary doesn't have count as zero.

    Returns:
        A frame with columns id, positive, negative, fear, trust, score and sentiment, one row per
        document in the order given.
    """
    rows = []
    for doc_id, doc_lemmas in lemmas.items():
        counts = count_terms(doc_lemmas or "", dictionary)
        row = {"id": doc_id}
        for category in SCORE_COLUMNS:
            row[category] = counts.get(category, 0)
        row["score"] = sum(row[c] for c in POSITIVE_CATEGORIES) - sum(row[c] for c in NEGATIVE_CATEGORIES)
        row["sentiment"] = int(np.sign(row["score"]))
        rows.append(row)
    return pd.DataFrame(rows, columns=["id", *SCORE_COLUMNS, "score", "sentiment"])
