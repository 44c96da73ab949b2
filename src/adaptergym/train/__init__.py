"""Training module for AdapterGym."""

from adaptergym.train.adapters import (
    ArtifactLoader,
    ArtifactRef,
    Finalizer,
    Scorer,
    Trainer,
    TrainerConfig,
)

__all__ = ["ArtifactLoader", "ArtifactRef", "Finalizer", "Scorer", "Trainer", "TrainerConfig"]
