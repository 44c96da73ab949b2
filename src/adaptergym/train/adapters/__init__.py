"""Trainer interfaces and the torch reference adapter."""

from adaptergym.train.adapters.base import (
    ArtifactLoader,
    ArtifactRef,
    Finalizer,
    Scorer,
    Trainer,
    TrainerConfig,
)

__all__ = ["ArtifactLoader", "ArtifactRef", "Finalizer", "Scorer", "Trainer", "TrainerConfig"]
