from __future__ import annotations
from typing import Any, Dict, Hashable, Iterable, List, NamedTuple, Optional, Sequence, Tuple
import logging

import spacy
from spacy.language import Language

from dapipe.cache import ArtifactStore, get_or_compute, make_key
from dapipe.dataset import TEXT, Dataset
from dapipe.errors import ParseError

logger = logging.getLogger(__name__)

DEFAULT_MODELS = {
    "nl": "nl_core_news_sm",
    "en": "en_core_web_sm",
    "de": "de_core_news_sm",
    "fr": "fr_core_news_sm",
}


class Token(NamedTuple):
    doc_id: Hashable
    index: int
    start: int
    text: str
    lemma: str
    pos: str


class Lemmatizer:
    """
    Splits documents into tokens annotated with lemma and part of speech, using a spaCy pipeline for the
    document language.
    """
    def __init__(
        self,
        language: str,
        model: Optional[str] = None,
        nlp: Optional[Language] = None,
        keep_punct: bool = False,
    ) -> None:
        self.language = language
        self.keep_punct = keep_punct
        if nlp is not None:
            self.nlp = nlp
            self.model = nlp.meta.get("name", "custom")
            return
        self.model = model or DEFAULT_MODELS.get(language)
        if self.model is None:
            raise ParseError("No spaCy model known for language %r" % language, subject=language)
        try:
            self.nlp = spacy.load(self.model)
        except OSError as e:
            raise ParseError(
                "spaCy model %r is not installed (python -m spacy download %s)" % (self.model, self.model),
                subject=language,
            ) from e

    def tokenize(self, docs: Iterable[Tuple[Hashable, str]]) -> List[Token]:
        docs = list(docs)
        tokens: List[Token] = []
        texts = ("" if text is None else str(text) for _, text in docs)
        for (doc_id, _), doc in zip(docs, self.nlp.pipe(texts)):
            for token in doc:
                if token.is_space or (token.is_punct and not self.keep_punct):
                    continue
                tokens.append(Token(
                    doc_id=doc_id,
                    index=token.i,
                    start=token.idx,
                    text=token.text,
                    lemma=token.lemma_ or token.lower_,
                    pos=token.pos_,
                ))
        logger.debug("[text] %d tokens in %d documents", len(tokens), len(docs))
        return tokens


def aggregate_lemmas(
    tokens: Iterable[Token],
    doc_ids: Sequence[Hashable] = (),
    lowercase: bool = True,
) -> Dict[Hashable, str]:
    """
    Join the lemmas of each document into one string, in the order the tokens appear in the text.

    Args:
        tokens: Tokens of any number of documents, in any order.
        doc_ids: Documents that should be present in the result even if they have no tokens (they map to
            the empty string). Documents are listed in this order first, then in order of first appearance.
        lowercase: Lowercase the lemmas.

    Returns:
        A mapping from document id to its space-separated lemmas.
    """
    by_doc: Dict[Hashable, List[Token]] = {doc_id: [] for doc_id in doc_ids}
    for token in tokens:
        by_doc.setdefault(token.doc_id, []).append(token)
    result = {}
    for doc_id, doc_tokens in by_doc.items():
        doc_tokens.sort(key=lambda t: (t.start, t.index))
        lemmas = (t.lemma.lower() if lowercase else t.lemma for t in doc_tokens)
        result[doc_id] = " ".join(lemma for lemma in lemmas if lemma.strip())
    return result


def lemmatize_documents(
    dataset: Dataset,
    text_column: str,
    lemmatizer: Lemmatizer,
    store: Optional[ArtifactStore] = None,
    cache_name: Optional[Any] = None,
    output_column: str = "lemmas",
) -> Dataset:
    """
    Add a column of joined lemmas to a dataset. Tokenizing is the slow part, so when a store is given the
    token list is cached under a key made of cache_name (usually the data source) and the language.
    """
    if text_column not in dataset.frame.columns:
        raise ParseError("Text column %r not found" % text_column, subject=list(dataset.frame.columns))
    docs = list(zip(dataset.ids, dataset.frame[text_column]))

    def compute() -> List[Token]:
        return lemmatizer.tokenize(docs)

    if store is not None:
        key = make_key("tokens", cache_name or text_column, lemmatizer.language, lemmatizer.model)
        tokens = get_or_compute(store, key, compute)
    else:
        tokens = compute()
    lemmas = aggregate_lemmas(tokens, doc_ids=dataset.ids)
    return dataset.with_column(output_column, [lemmas[id_] for id_ in dataset.ids], TEXT)
