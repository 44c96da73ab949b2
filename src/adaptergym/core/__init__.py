"""Core data models for AdapterGym."""

from adaptergym.core.errors import (
    AdapterGymError,
    ArtifactLoadFailure,
    BaselineComputationFailure,
    StorageFailure,
    TrainerFailure,
)
from adaptergym.core.events import CancellationToken, ProgressEvent
from adaptergym.core.samples import (
    EvaluationSample,
    build_sample_set,
    filter_by_length,
    load_labeled_samples,
)

__all__ = [
    "AdapterGymError", "ArtifactLoadFailure", "BaselineComputationFailure",
    "StorageFailure", "TrainerFailure",
    "CancellationToken", "ProgressEvent",
    "EvaluationSample", "build_sample_set", "filter_by_length", "load_labeled_samples",
]
