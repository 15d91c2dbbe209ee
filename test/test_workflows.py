import pandas as pd
import pytest
import spacy

from dapipe.cache import MemoryStore
from dapipe.config import ClassifierConfig, ScrapeConfig, SentimentConfig
from dapipe.errors import FetchError, ParseError, TrainError
from dapipe.text import Lemmatizer
from dapipe.workflows import run_classifier, run_scrape, run_sentiment

HEADLINES = """id,title,label
1,Stijging van de koers,1
2,Daling van de beurs,-1
3,Sterke stijging bij banken,1
4,Daling zet door,-1
5,Stijging verwacht,1
6,Forse daling,-1
7,Stijging en winst,1
8,Daling en verlies,-1
9,Vergadering op maandag,0
10,Nieuwe directeur benoemd,0
"""

LEXICON = """English (en),Dutch (nl),Positive,Negative,Fear,Trust
rise,stijging,1,0,0,0
fall,daling,0,1,0,0
profit,winst,1,0,0,1
abacus,NO TRANSLATION,0,0,0,1
"""


@pytest.fixture
def sentiment_config(tmp_path):
    headlines = tmp_path / "headlines.csv"
    headlines.write_text(HEADLINES, encoding="utf-8")
    lexicon = tmp_path / "lexicon.csv"
    lexicon.write_text(LEXICON, encoding="utf-8")
    return SentimentConfig(headlines=str(headlines), lexicon=str(lexicon), label_column="label")


@pytest.fixture
def lemmatizer():
    return Lemmatizer("nl", nlp=spacy.blank("nl"))


def test_sentiment(sentiment_config, lemmatizer):
    report = run_sentiment(sentiment_config, lemmatizer=lemmatizer)
    assert report.scores["id"].tolist() == list(range(1, 11))
    assert report.scores["sentiment"].tolist() == [1, -1, 1, -1, 1, -1, 1, -1, 0, 0]
    assert report.scores.loc[6, "score"] == 3
    assert report.dictionary.terms("positive") == frozenset({"stijging", "winst"})

    assert report.dictionary_evaluation.accuracy == 1.0
    assert report.dictionary_evaluation.positive == 1
    assert report.dictionary_evaluation.labels == (-1, 0, 1)
    # one held-out headline per label
    assert report.naive_bayes_evaluation.n == 3
    assert "Naive Bayes" in report.report()


def test_sentiment_without_labels(sentiment_config, lemmatizer):
    config = SentimentConfig(headlines=sentiment_config.headlines, lexicon=sentiment_config.lexicon)
    report = run_sentiment(config, lemmatizer=lemmatizer)
    assert len(report.scores) == 10
    assert report.dictionary_evaluation is None
    assert report.naive_bayes_evaluation is None


def test_sentiment_caches_inputs(sentiment_config, lemmatizer):
    store = MemoryStore()
    run_sentiment(sentiment_config, store, lemmatizer)
    assert store.contains("csv/" + sentiment_config.headlines)
    assert store.contains("csv/" + sentiment_config.lexicon)
    assert any(key.startswith("tokens/") for key in store.artifacts)


def test_sentiment_missing_source(tmp_path, lemmatizer):
    config = SentimentConfig(headlines=str(tmp_path / "missing.csv"), lexicon=str(tmp_path / "lexicon.csv"))
    with pytest.raises(FetchError) as e:
        run_sentiment(config, lemmatizer=lemmatizer)
    assert e.value.subject == str(tmp_path / "missing.csv")


def write_credit_data(path):
    rows = []
    for i in range(30):
        good = i < 15
        rows.append({
            "duration": i if good else i + 100,
            "housing": ["own", "rent", "free"][i % 3],
            "class": "good" if good else "bad",
        })
    pd.DataFrame(rows).to_csv(path, index=False)


def test_classifier(tmp_path):
    path = tmp_path / "credit.csv"
    write_credit_data(path)
    config = ClassifierConfig(
        data=str(path),
        label_column="class",
        methods=("tree", "nb"),
        param_grids={"decision_tree": {"max_depth": [1, 2]}},
        cv_folds=3,
        cv_repeats=1,
    )
    report = run_classifier(config)
    assert list(report.evaluations) == ["decision_tree", "naive_bayes"]
    assert report.evaluations["decision_tree"].n == 10
    assert report.evaluations["decision_tree"].accuracy == 1.0
    assert list(report.searches) == ["decision_tree"]
    assert report.searches["decision_tree"].best_params == {"max_depth": 1}
    assert report.tuned_evaluations["decision_tree"].accuracy == 1.0
    assert "Grid search for decision_tree" in report.report()


def test_classifier_unknown_method(tmp_path):
    path = tmp_path / "credit.csv"
    write_credit_data(path)
    config = ClassifierConfig(data=str(path), label_column="class", methods=("forest",))
    with pytest.raises(TrainError) as e:
        run_classifier(config)
    assert e.value.subject == "forest"


PAGE = """<html><body>
<div class="item"><h2>Alpha</h2><a href="alpha.html">more</a></div>
<div class="item"><h2>Beta</h2><a href="beta.html">more</a></div>
<table><tr><th>name</th><th>n</th></tr><tr><td>x</td><td>1</td></tr></table>
<table><tr><th>name</th><th>n</th></tr><tr><td>y</td><td>2</td></tr></table>
%s
</body></html>"""


def test_scrape_rows(tmp_path):
    first = tmp_path / "page1.html"
    first.write_text(PAGE % '<a class="next" href="page2.html">next</a>', encoding="utf-8")
    (tmp_path / "page2.html").write_text(PAGE % "", encoding="utf-8")

    config = ScrapeConfig(url=str(first), row_selector=".item", fields={"title": "h2", "link": "a@href"})
    frame = run_scrape(config)
    assert frame["title"].tolist() == ["Alpha", "Beta"]
    assert frame["link"].tolist() == [str(tmp_path / "alpha.html"), str(tmp_path / "beta.html")]

    config = ScrapeConfig(
        url=str(first), row_selector=".item", fields={"title": "h2"}, next_selector="a.next", max_pages=5
    )
    assert run_scrape(config)["title"].tolist() == ["Alpha", "Beta", "Alpha", "Beta"]


def test_scrape_table_policy(tmp_path):
    page = tmp_path / "page.html"
    page.write_text(PAGE % "", encoding="utf-8")
    frame = run_scrape(ScrapeConfig(url=str(page), table_selector="table"))
    assert frame["name"].tolist() == ["x"]
    with pytest.raises(ParseError) as e:
        run_scrape(ScrapeConfig(url=str(page), table_selector="table", policy="strict"))
    assert e.value.stage == "transform"


def test_scrape_needs_a_selector(tmp_path):
    with pytest.raises(ValueError):
        run_scrape(ScrapeConfig(url=str(tmp_path / "page.html")))


def test_sentiment_skips_missing_gold_labels(sentiment_config, lemmatizer, tmp_path):
    headlines = tmp_path / "partly_labelled.csv"
    headlines.write_text(HEADLINES + "11,Stijging zonder label,\n", encoding="utf-8")
    config = SentimentConfig(headlines=str(headlines), lexicon=sentiment_config.lexicon, label_column="label")
    report = run_sentiment(config, lemmatizer=lemmatizer)
    assert len(report.scores) == 11
    assert report.scores["sentiment"].tolist()[-1] == 1
    assert report.dictionary_evaluation.n == 10
    assert report.dictionary_evaluation.accuracy == 1.0
    assert report.naive_bayes_evaluation.n == 3


def test_scrape_field_policy(tmp_path):
    page = tmp_path / "page.html"
    page.write_text('<div class="item"><h2>One</h2><h2>Two</h2></div>', encoding="utf-8")
    config = ScrapeConfig(url=str(page), row_selector=".item", fields={"title": "h2"})
    assert run_scrape(config)["title"].tolist() == ["One"]
    strict = ScrapeConfig(url=str(page), row_selector=".item", fields={"title": "h2"}, policy="strict")
    with pytest.raises(ParseError):
        run_scrape(strict)
