from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Optional
import logging

logger = logging.getLogger(__name__)


class PipelineError(Exception):
    """
    Base class for every failure that aborts a pipeline run. Each error knows the stage it happened in
    (fetch, transform, split, train, score, evaluate) and the offending input (a URL, a selector, a cache
    key...), so that the operator can fix the input and rerun.
    """
    default_stage: Optional[str] = None

    def __init__(self, message: str, stage: Optional[str] = None, subject: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage if stage is not None else self.default_stage
        self.subject = subject

    def __str__(self) -> str:
        s = self.message
        if self.stage is not None:
            s = "[%s] %s" % (self.stage, s)
        if self.subject is not None:
            s += " (%s)" % (self.subject,)
        return s


class FetchError(PipelineError):
    default_stage = "fetch"


class ParseError(PipelineError):
    default_stage = "transform"


class TrainError(PipelineError):
    default_stage = "train"


class MetricUndefined(PipelineError):
    default_stage = "evaluate"

    def __init__(
        self,
        metric: str,
        label: Optional[Any] = None,
        stage: Optional[str] = None,
        subject: Optional[Any] = None,
    ) -> None:
        message = "%s is undefined" % metric
        if label is not None:
            message += " for class %r" % (label,)
        super().__init__(message, stage, subject)
        self.metric = metric
        self.label = label


@contextmanager
def stage(name: str, subject: Optional[Any] = None) -> Iterator[None]:
    """
    Mark a block of work as one pipeline stage. PipelineErrors raised inside the block get this stage's
    subject attached when they have none. Only a plain PipelineError takes the stage name as well: the
    subclasses name the stage that actually failed (a TrainError raised while tuning still reports
    "train"). Everything is re-raised.
    """
    logger.info("[%s] %s", name, subject if subject is not None else "")
    try:
        yield
    except PipelineError as e:
        if e.stage is None:
            e.stage = name
        if e.subject is None:
            e.subject = subject
        raise
