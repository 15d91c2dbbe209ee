"""
The three end-to-end workflows: the headline sentiment study, the credit classification tutorial and the
scraping tutorial. Each one is a straight sequence of stages; a failure in any stage ends the run.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import logging

import pandas as pd

from dapipe.cache import ArtifactStore, CacheGate, make_key
from dapipe.config import ClassifierConfig, FetchConfig, ScrapeConfig, SentimentConfig
from dapipe.dataset import Dataset
from dapipe.errors import stage
from dapipe.evaluation import EvaluationResult, evaluate
from dapipe.fetch import fetch_csv, fetch_html
from dapipe.lexicon import Dictionary, score_documents
from dapipe.models import NAIVE_BAYES, resolve_method, train
from dapipe.scrape import CardinalityPolicy, Selector, crawl, extract_rows, extract_table
from dapipe.split import stratified_split
from dapipe.text import Lemmatizer, lemmatize_documents
from dapipe.tuning import GridSearchResult, grid_search

logger = logging.getLogger(__name__)


@dataclass
class SentimentReport:
    scores: pd.DataFrame
    dictionary: Dictionary
    dictionary_evaluation: Optional[EvaluationResult] = None
    naive_bayes_evaluation: Optional[EvaluationResult] = None

    def report(self) -> str:
        counts = self.scores["sentiment"].value_counts().sort_index()
        s = "Dictionary sentiment over %d headlines:\n" % len(self.scores)
        for sentiment, n in counts.items():
            s += "  %+d: %d\n" % (sentiment, n)
        if self.dictionary_evaluation is not None:
            s += "\nDictionary method vs. gold labels:\n" + self.dictionary_evaluation.report()
        if self.naive_bayes_evaluation is not None:
            s += "\nNaive Bayes on held-out headlines:\n" + self.naive_bayes_evaluation.report()
        return s


@dataclass
class ClassifierReport:
    evaluations: Dict[str, EvaluationResult] = field(default_factory=dict)
    searches: Dict[str, GridSearchResult] = field(default_factory=dict)
    tuned_evaluations: Dict[str, EvaluationResult] = field(default_factory=dict)

    def report(self) -> str:
        s = ""
        for method, result in self.evaluations.items():
            s += "%s with default hyperparameters:\n%s\n" % (method, result.report())
        for method, search in self.searches.items():
            s += search.report() + "\n"
            if method in self.tuned_evaluations:
                s += "%s with %s:\n%s\n" % (method, search.best_params, self.tuned_evaluations[method].report())
        return s


def _load_csv(source: str, cache: Optional[CacheGate], fetch_config: Optional[FetchConfig], **kwargs: Any) -> pd.DataFrame:
    with stage("fetch", source):
        if cache is None:
            return fetch_csv(source, fetch_config, **kwargs)
        key = make_key("csv", source, *("%s=%s" % item for item in sorted(kwargs.items())))
        return cache(key, lambda: fetch_csv(source, fetch_config, **kwargs))


def _sentiment_labels(values: pd.Series) -> list:
    # gold labels may be given as -1/0/1 or as words
    words = {"positive": 1, "positief": 1, "neutral": 0, "neutraal": 0, "negative": -1, "negatief": -1}
    result = []
    for value in values:
        if isinstance(value, str):
            result.append(words.get(value.strip().lower(), value))
        else:
            result.append(int(value))
    return result


def run_sentiment(
    config: SentimentConfig,
    store: Optional[ArtifactStore] = None,
    lemmatizer: Optional[Lemmatizer] = None,
    fetch_config: Optional[FetchConfig] = None,
) -> SentimentReport:
    """
    Score headlines with a sentiment lexicon, and -- when the headlines carry gold labels -- compare the
    lexicon's verdicts with the labels and train and evaluate a naive Bayes classifier on the lemmas.
    """
    cache = CacheGate(store) if store is not None else None
    headlines = _load_csv(config.headlines, cache, fetch_config)
    lexicon = _load_csv(config.lexicon, cache, fetch_config)

    with stage("transform", config.headlines):
        dataset = Dataset.from_frame(
            headlines, config.id_column, config.label_column, text_columns=[config.text_column]
        )
        if lemmatizer is None:
            lemmatizer = Lemmatizer(config.language, config.spacy_model)
        dataset = lemmatize_documents(dataset, config.text_column, lemmatizer, store, config.headlines)
    with stage("transform", config.lexicon):
        dictionary = Dictionary.from_frame(lexicon, config.term_column, config.categories, config.no_translation)
    logger.info("[score] %r", dictionary)

    with stage("score", config.headlines):
        scores = score_documents(dict(zip(dataset.ids, dataset.frame["lemmas"])), dictionary)
    report = SentimentReport(scores, dictionary)
    if config.label_column is None:
        return report

    labelled = dataset.frame[config.label_column].notna().to_numpy()
    if not labelled.all():
        logger.warning("[evaluate] %d headlines without a gold label are left out", (~labelled).sum())
    gold = _sentiment_labels(dataset.frame.loc[labelled, config.label_column])
    labels = sorted(set(gold) | {-1, 0, 1}, key=str)
    positive = config.positive
    if positive is None and 1 in gold:
        positive = 1
    with stage("evaluate", "dictionary"):
        predicted = scores.loc[labelled, "sentiment"].tolist()
        report.dictionary_evaluation = evaluate(predicted, gold, positive, labels)

    # naive Bayes sees only the lemmas, not the raw text
    nb_frame = dataset.frame.loc[labelled, [dataset.id_column, "lemmas"]].assign(gold=gold)
    nb_data = Dataset.from_frame(nb_frame, dataset.id_column, "gold", ["lemmas"])
    with stage("split", config.headlines):
        train_part, test_part = stratified_split(nb_data, None, config.train_fraction, config.seed)
    with stage("train", NAIVE_BAYES):
        model = train(train_part, None, NAIVE_BAYES, {"laplace": config.laplace})
    with stage("evaluate", NAIVE_BAYES):
        report.naive_bayes_evaluation = evaluate(model.predict(test_part), test_part.labels(), positive, labels)
    return report


def run_classifier(
    config: ClassifierConfig,
    store: Optional[ArtifactStore] = None,
    fetch_config: Optional[FetchConfig] = None,
    progress: bool = False,
) -> ClassifierReport:
    """
    Train each configured method on a stratified training split and evaluate it on the test split; for
    methods with a parameter grid, also tune on the training split and evaluate the tuned model.
    """
    cache = CacheGate(store) if store is not None else None
    frame = _load_csv(config.data, cache, fetch_config, **config.csv_options)
    with stage("transform", config.data):
        dataset = Dataset.from_frame(frame, config.id_column, config.label_column)
    with stage("split", config.label_column):
        train_part, test_part = stratified_split(dataset, None, config.train_fraction, config.seed)
    logger.info("[split] %d training and %d test records", len(train_part), len(test_part))

    report = ClassifierReport()
    actual = test_part.labels()
    for method in config.methods:
        method = resolve_method(method)
        with stage("train", method):
            model = train(train_part, None, method, config.hyperparameters.get(method))
        with stage("evaluate", method):
            report.evaluations[method] = evaluate(model.predict(test_part), actual, config.positive)
        grid = config.param_grids.get(method)
        if not grid:
            continue
        with stage("tune", method):
            search = grid_search(
                train_part, None, method, grid,
                cv_folds=config.cv_folds,
                cv_repeats=config.cv_repeats,
                metric=config.metric,
                seed=config.seed,
                positive=config.positive,
                refit=True,
                progress=progress,
            )
        report.searches[method] = search
        assert search.best_model is not None
        with stage("evaluate", method):
            report.tuned_evaluations[method] = evaluate(search.best_model.predict(test_part), actual, config.positive)
    return report


def run_scrape(
    config: ScrapeConfig,
    fetch_config: Optional[FetchConfig] = None,
) -> pd.DataFrame:
    """
    Fetch a page (and, with a next-page selector, the pages after it) and extract either a table or one
    row per matching node from each page.
    """
    if config.table_selector is None and config.row_selector is None:
        raise ValueError("Either table_selector or row_selector must be configured")
    policy = CardinalityPolicy(config.policy)
    next_selector = Selector(config.next_selector, config.selector_kind) if config.next_selector else None
    frames = []
    pages = 0

    def fetch(url: str) -> Any:
        with stage("fetch", url):
            return fetch_html(url, fetch_config)

    if next_selector is None:
        trees = iter([fetch(config.url)])
    else:
        trees = crawl(config.url, next_selector, config.max_pages, fetch)
    for tree in trees:
        pages += 1
        if config.table_selector is not None:
            selector = Selector(config.table_selector, config.selector_kind)
            with stage("transform", selector):
                frames.append(extract_table(tree, selector, policy=policy))
        else:
            selector = Selector(config.row_selector, config.selector_kind)  # type: ignore
            with stage("transform", selector):
                frames.append(extract_rows(tree, selector, config.fields, policy))
    logger.info("[scrape] %d pages", pages)
    return pd.concat(frames, ignore_index=True) if frames else pd.DataFrame()
