"""Experiment control for AdapterGym."""

from adaptergym.experiment.controller import ExperimentController, ExperimentReport
from adaptergym.experiment.policies import (
    AnyCadence,
    CheckpointConfig,
    CompletionCadence,
    EvaluationConfig,
    IterationCadence,
    LossGate,
    StoppingConfig,
    StoppingPolicy,
)

__all__ = [
    "ExperimentController", "ExperimentReport",
    "AnyCadence", "CheckpointConfig", "CompletionCadence", "EvaluationConfig",
    "IterationCadence", "LossGate", "StoppingConfig", "StoppingPolicy",
]
