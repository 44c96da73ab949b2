"""Evaluation module for AdapterGym."""

from adaptergym.eval.harness import ArtifactRef, EvalResult, EvaluationHarness
from adaptergym.eval.sweep import CandidateSweepEvaluator, SweepResult

__all__ = [
    "ArtifactRef", "EvalResult", "EvaluationHarness",
    "CandidateSweepEvaluator", "SweepResult",
]
