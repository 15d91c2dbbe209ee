from __future__ import annotations
from typing import Any, Callable, Dict, TypeVar
import hashlib
import logging
import os
import re

import joblib

T = TypeVar("T")

logger = logging.getLogger(__name__)


def make_key(*parts: Any) -> str:
    """
    Build a descriptive cache key from the parameters of an expensive stage, e.g.
    make_key("lemmas", "headlines.csv", "nl") == "lemmas/headlines.csv/nl".
    """
    return "/".join(str(part) for part in parts)


class ArtifactStore:
    """
    A key -> artifact store. Once an artifact has been saved under a key it is considered valid forever;
    there is no expiry and no eviction, and entries only go away when they are deleted explicitly.
    """
    def contains(self, key: str) -> bool:
        raise NotImplementedError()

    def load(self, key: str) -> Any:
        raise NotImplementedError()

    def save(self, key: str, artifact: Any) -> None:
        raise NotImplementedError()

    def delete(self, key: str) -> None:
        raise NotImplementedError()


class MemoryStore(ArtifactStore):
    def __init__(self) -> None:
        self.artifacts: Dict[str, Any] = {}

    def contains(self, key: str) -> bool:
        return key in self.artifacts

    def load(self, key: str) -> Any:
        return self.artifacts[key]

    def save(self, key: str, artifact: Any) -> None:
        self.artifacts[key] = artifact

    def delete(self, key: str) -> None:
        self.artifacts.pop(key, None)


class FileStore(ArtifactStore):
    """
    Keeps one joblib file per key in a directory. File names are a readable slug of the key plus a hash of
    the full key, so distinct keys never share a file.

    Writes are not locked: at most one process should materialize a given key at a time.
    """
    def __init__(self, directory: str) -> None:
        self.directory = directory

    def path(self, key: str) -> str:
        slug = re.sub(r"[^A-Za-z0-9._-]+", "_", key).strip("_")[:60]
        digest = hashlib.sha1(key.encode("utf-8")).hexdigest()[:12]
        return os.path.join(self.directory, "%s-%s.joblib" % (slug, digest))

    def contains(self, key: str) -> bool:
        return os.path.isfile(self.path(key))

    def load(self, key: str) -> Any:
        return joblib.load(self.path(key))

    def save(self, key: str, artifact: Any) -> None:
        os.makedirs(self.directory, exist_ok=True)
        joblib.dump(artifact, self.path(key))

    def delete(self, key: str) -> None:
        try:
            os.remove(self.path(key))
        except FileNotFoundError:
            pass

    def clear(self) -> int:
        if not os.path.isdir(self.directory):
            return 0
        n = 0
        for name in os.listdir(self.directory):
            if name.endswith(".joblib"):
                os.remove(os.path.join(self.directory, name))
                n += 1
        return n


def get_or_compute(store: ArtifactStore, key: str, compute: Callable[[], T]) -> T:
    """
    Return the artifact stored under key if there is one, without calling compute. Otherwise call compute,
    save its result under key and return it. If compute raises, nothing is saved.
    """
    if store.contains(key):
        logger.info("[cache] hit %s", key)
        return store.load(key)
    logger.info("[cache] miss %s", key)
    artifact = compute()
    store.save(key, artifact)
    return artifact


class CacheGate:
    """
    get_or_compute bound to one store, counting hits and misses.
    """
    def __init__(self, store: ArtifactStore) -> None:
        self.store = store
        self.hits = 0
        self.misses = 0

    def __call__(self, key: str, compute: Callable[[], T]) -> T:
        if self.store.contains(key):
            self.hits += 1
        else:
            self.misses += 1
        return get_or_compute(self.store, key, compute)
