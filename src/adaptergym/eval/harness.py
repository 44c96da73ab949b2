"""Accuracy evaluation of artifacts on a fixed labeled sample set."""

import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Sequence

from adaptergym.core.errors import AdapterGymError, ArtifactLoadFailure
from adaptergym.core.samples import EvaluationSample
from adaptergym.train.adapters.base import ArtifactLoader, ArtifactRef


@dataclass
class EvalResult:
    """Result from scoring one artifact."""

    accuracy: float  # percent, unrounded
    elapsed: timedelta
    sample_count: int

    @property
    def samples_per_second(self) -> float:
        seconds = self.elapsed.total_seconds()
        if seconds > 0:
            return self.sample_count / seconds
        return 0.0

    def to_dict(self) -> dict:
        return {
            "accuracy": self.accuracy,
            "elapsed_seconds": self.elapsed.total_seconds(),
            "sample_count": self.sample_count,
            "samples_per_second": round(self.samples_per_second, 2),
        }


class EvaluationHarness:
    """Scores artifacts by exact label match against a sample set."""

    def __init__(self, loader: ArtifactLoader):
        self.loader = loader

    def evaluate(self, artifact: ArtifactRef, samples: Sequence[EvaluationSample]) -> EvalResult:
        """Compute accuracy of artifact on samples.

        Args:
            artifact: Adapter reference and scale (``path=None`` for the base model)
            samples: Non-empty fixed evaluation set

        Returns:
            EvalResult with accuracy in percent and wall time

        Raises:
            ValueError: If samples is empty
            ArtifactLoadFailure: If the artifact cannot be loaded or scored
        """
        if not samples:
            raise ValueError("Evaluation requires at least one sample")

        try:
            handle = self.loader.load(artifact)
        except AdapterGymError:
            raise
        except Exception as e:
            raise ArtifactLoadFailure(f"Cannot load {artifact.label}: {e}") from e

        start = time.perf_counter()
        success_count = 0

        try:
            with handle as scorer:
                for sample in samples:
                    if scorer.predict(sample.text) == sample.label:
                        success_count += 1
        except AdapterGymError:
            raise
        except Exception as e:
            raise ArtifactLoadFailure(f"Scoring failed for {artifact.label}: {e}") from e

        elapsed = timedelta(seconds=time.perf_counter() - start)

        return EvalResult(
            accuracy=success_count / len(samples) * 100,
            elapsed=elapsed,
            sample_count=len(samples),
        )
