from typing import NoReturn, Optional, Type, TypeVar
import logging
import sys
import warnings

import click

from dapipe.cache import FileStore
from dapipe.config import (
    CacheConfig,
    ClassifierConfig,
    FetchConfig,
    ScrapeConfig,
    SentimentConfig,
    load_config,
)
from dapipe.errors import PipelineError
import dapipe.workflows

logger = logging.getLogger("dapipe")  # noqa
handler = logging.StreamHandler()  # noqa
handler.setFormatter(
    logging.Formatter("[%(levelname)s] %(asctime)s - %(message)s")
)  # noqa
logger.addHandler(handler)  # noqa
logger.propagate = False  # noqa


def _store(no_cache: bool) -> Optional[FileStore]:
    config = CacheConfig.from_env()
    if no_cache or not config.enabled:
        return None
    return FileStore(config.directory)


C = TypeVar("C")


def _fail(e: Exception) -> NoReturn:
    logger.error("%s", e)
    sys.exit(1)


def _load(path: str, cls: Type[C]) -> C:
    try:
        return load_config(path, cls)
    except (OSError, TypeError, ValueError) as e:
        _fail(e)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show debug info")
@click.option(
    "--quiet", "-q", count=True, help="Do less logging. Can be provided multiple times."
)
def cli(verbose: bool, quiet: int) -> None:
    if verbose and quiet:
        raise click.BadParameter(
            "Options --verbose and --quiet are mutually exclusive."
        )
    if quiet > 2:
        quiet = 2
    # verbose --> -1 (DEBUG), quiet --> 1 or 2, neither --> 0
    val = -verbose + quiet
    verbosity = [logging.INFO, logging.WARN, logging.ERROR, logging.DEBUG][val]
    logger.setLevel(verbosity)
    if not verbose:
        # scikit-learn and spaCy are chatty about convergence and model versions
        warnings.simplefilter("ignore")


@cli.command()
@click.option("--config", "config_path", required=True, help="JSON file with the sentiment study settings")
@click.option("--no-cache", is_flag=True, help="Don't read or write cached artifacts")
@click.option("--scores-out", required=False, help="Write the per-headline scores to this CSV file")
def sentiment(config_path: str, no_cache: bool, scores_out: Optional[str]) -> None:
    config = _load(config_path, SentimentConfig)
    try:
        report = dapipe.workflows.run_sentiment(config, _store(no_cache), fetch_config=FetchConfig.from_env())
    except PipelineError as e:
        _fail(e)
    click.echo(report.report())
    if scores_out is not None:
        report.scores.to_csv(scores_out, index=False)
        logger.info("[main] scores written to %s", scores_out)


@cli.command()
@click.option("--config", "config_path", required=True, help="JSON file with the classifier settings")
@click.option("--no-cache", is_flag=True, help="Don't read or write cached artifacts")
@click.option("--progress/--no-progress", default=True, help="Show grid search progress")
def classify(config_path: str, no_cache: bool, progress: bool) -> None:
    config = _load(config_path, ClassifierConfig)
    try:
        report = dapipe.workflows.run_classifier(
            config, _store(no_cache), fetch_config=FetchConfig.from_env(), progress=progress
        )
    except PipelineError as e:
        _fail(e)
    click.echo(report.report())


@cli.command()
@click.option("--config", "config_path", required=True, help="JSON file with the scraping settings")
@click.option("--output", "-o", required=False, help="Write the extracted rows to this CSV file")
def scrape(config_path: str, output: Optional[str]) -> None:
    config = _load(config_path, ScrapeConfig)
    try:
        frame = dapipe.workflows.run_scrape(config, fetch_config=FetchConfig.from_env())
    except PipelineError as e:
        _fail(e)
    if output is None:
        click.echo(frame.to_string())
    else:
        frame.to_csv(output, index=False)
        logger.info("[main] %d rows written to %s", len(frame), output)


@cli.group()
def cache() -> None:
    pass


@cache.command()
def clear() -> None:
    config = CacheConfig.from_env()
    n = FileStore(config.directory).clear()
    click.echo("Removed %d cached artifacts from %s" % (n, config.directory))


if __name__ == "__main__":
    cli()
