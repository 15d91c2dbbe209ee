__version__ = "0.1"

from dapipe.errors import PipelineError, FetchError, ParseError, TrainError, MetricUndefined
from dapipe.dataset import Dataset, Field, Schema, Record
from dapipe.cache import ArtifactStore, MemoryStore, FileStore, CacheGate, get_or_compute, make_key
from dapipe.evaluation import EvaluationResult, evaluate
from dapipe.lexicon import Dictionary, score_documents
from dapipe.models import Model, train, predict
from dapipe.split import stratified_split
from dapipe.tuning import GridSearchResult, grid_search
