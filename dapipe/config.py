"""
Run configuration.

Each workflow is described by a JSON file, much like a model specification: a flat object whose keys are the
fields of one of the dataclasses below. Relative paths in source fields are resolved against the directory
of the JSON file, so a config can sit next to the data it points to.
"""
from __future__ import annotations
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar
from dataclasses import dataclass, field, fields
import json
import os

from dapipe import __version__


def _env_float(key: str, default: float) -> float:
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return float(val)
    except ValueError:
        raise ValueError("The value %r of environment variable %r is not a number" % (val, key))


@dataclass(frozen=True)
class FetchConfig:
    timeout: float = 30.0
    user_agent: str = "dapipe/%s" % __version__

    @classmethod
    def from_env(cls) -> FetchConfig:
        return cls(timeout=_env_float("DAPIPE_TIMEOUT", cls.timeout))


@dataclass(frozen=True)
class CacheConfig:
    directory: str = ".dapipe-cache"
    enabled: bool = True

    @classmethod
    def from_env(cls) -> CacheConfig:
        return cls(directory=os.environ.get("DAPIPE_CACHE_DIR", cls.directory))


@dataclass(frozen=True)
class SentimentConfig:
    headlines: str
    lexicon: str
    text_column: str = "title"
    id_column: Optional[str] = "id"
    label_column: Optional[str] = None
    language: str = "nl"
    spacy_model: Optional[str] = None
    term_column: str = "Dutch (nl)"
    categories: Tuple[str, ...] = ("Positive", "Negative", "Fear", "Trust")
    no_translation: str = "NO TRANSLATION"
    train_fraction: float = 0.7
    seed: int = 1
    laplace: float = 1.0
    positive: Optional[Any] = None

    _sources = ("headlines", "lexicon")


@dataclass(frozen=True)
class ClassifierConfig:
    data: str
    label_column: str
    id_column: Optional[str] = None
    methods: Tuple[str, ...] = ("decision_tree", "svm_radial")
    hyperparameters: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    param_grids: Dict[str, Dict[str, List[Any]]] = field(default_factory=dict)
    train_fraction: float = 0.7
    seed: int = 99
    positive: Optional[Any] = None
    cv_folds: int = 10
    cv_repeats: int = 3
    metric: str = "accuracy"
    csv_options: Dict[str, Any] = field(default_factory=dict)

    _sources = ("data",)


@dataclass(frozen=True)
class ScrapeConfig:
    url: str
    row_selector: Optional[str] = None
    fields: Dict[str, str] = field(default_factory=dict)
    selector_kind: str = "css"
    table_selector: Optional[str] = None
    next_selector: Optional[str] = None
    max_pages: int = 1
    policy: str = "first"

    _sources = ("url",)


C = TypeVar("C")


def _resolve(source: str, base_dir: str) -> str:
    if "://" in source or os.path.isabs(source):
        return source
    return os.path.normpath(os.path.join(base_dir, source))


def config_from_dict(cls: Type[C], data: Dict[str, Any], base_dir: str = ".") -> C:
    """
    Build a config dataclass from a plain dictionary, rejecting unknown keys.
    """
    known = {f.name: f for f in fields(cls)}  # type: ignore
    unknown = set(data) - set(known)
    if unknown:
        raise ValueError("Unknown configuration keys for %s: %s" % (cls.__name__, ", ".join(sorted(unknown))))
    kwargs = dict(data)
    for name in getattr(cls, "_sources", ()):
        if isinstance(kwargs.get(name), str):
            kwargs[name] = _resolve(kwargs[name], base_dir)
    for name, value in kwargs.items():
        # JSON has no tuples
        if isinstance(value, list) and known[name].type.startswith("Tuple"):  # type: ignore
            kwargs[name] = tuple(value)
    return cls(**kwargs)  # type: ignore


def load_config(path: str, cls: Type[C]) -> C:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError("Configuration file %s must contain a JSON object" % path)
    return config_from_dict(cls, data, os.path.dirname(os.path.abspath(path)))
