import pandas as pd
import pytest

from dapipe.dataset import Dataset
from dapipe.errors import TrainError
from dapipe.models import DECISION_TREE, NAIVE_BAYES, SVM_RADIAL, predict, resolve_method, train


def make_dataset():
    frame = pd.DataFrame({
        "housing": ["own", "rent", "own", "free", "rent", "own", "rent", "free"],
        "amount": [1.0, 9.0, 2.0, 8.5, 9.5, 1.5, 8.0, 2.5],
        "label": ["good", "bad", "good", "bad", "bad", "good", "bad", "good"],
    })
    return Dataset.from_frame(frame, label_column="label")


def test_resolve_method():
    assert resolve_method("rpart") == DECISION_TREE
    assert resolve_method("NB") == NAIVE_BAYES
    assert resolve_method("svm") == SVM_RADIAL
    with pytest.raises(TrainError):
        resolve_method("random_forest")


@pytest.mark.parametrize("method", [NAIVE_BAYES, DECISION_TREE, SVM_RADIAL])
def test_train_and_predict(method):
    dataset = make_dataset()
    model = train(dataset, method=method)
    assert sorted(model.classes) == ["bad", "good"]
    predictions = predict(model, dataset)
    assert len(predictions) == len(dataset)
    assert set(predictions) <= {"good", "bad"}


def test_tree_fits_training_data():
    dataset = make_dataset()
    model = train(dataset, method="tree")
    assert model.predict(dataset) == dataset.labels()


def test_hyperparameters():
    model = train(make_dataset(), method="svm", hyperparameters={"sigma": 0.1, "C": 10})
    assert model.estimator.gamma == 0.1
    assert model.estimator.C == 10
    assert model.hyperparameters == {"sigma": 0.1, "C": 10}


def test_unknown_hyperparameter():
    with pytest.raises(TrainError):
        train(make_dataset(), method="tree", hyperparameters={"C": 1})


def test_single_class():
    frame = pd.DataFrame({"amount": [1.0, 2.0, 3.0], "label": ["good"] * 3})
    with pytest.raises(TrainError) as e:
        train(Dataset.from_frame(frame, label_column="label"))
    assert e.value.stage == "train"


def test_no_labels_or_features():
    with pytest.raises(TrainError):
        train(Dataset.from_frame(pd.DataFrame({"amount": [1.0, 2.0]})))
    with pytest.raises(TrainError):
        train(Dataset.from_frame(pd.DataFrame({"label": ["a", "b"]}), label_column="label"))


def test_other_label_column():
    dataset = make_dataset()
    model = train(dataset, label_column="housing", method="tree")
    assert model.label_column == "housing"
    assert sorted(model.classes) == ["free", "own", "rent"]


def test_predict_empty():
    dataset = make_dataset()
    model = train(dataset)
    assert model.predict(dataset.take([])) == []


def test_text_features():
    frame = pd.DataFrame({
        "lemmas": ["stijging koers", "daling koers", "stijging winst", "daling verlies"],
        "label": [1, -1, 1, -1],
    })
    dataset = Dataset.from_frame(frame, label_column="label", text_columns=["lemmas"])
    model = train(dataset, method="nb")
    assert model.predict(dataset) == [1, -1, 1, -1]
