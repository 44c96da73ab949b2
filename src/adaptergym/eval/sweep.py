"""Scale sweep over a freshly saved candidate adapter."""

from dataclasses import dataclass, field
from typing import Callable, Sequence

from adaptergym.core.errors import ArtifactLoadFailure, StorageFailure
from adaptergym.core.samples import EvaluationSample
from adaptergym.core.state import RunState
from adaptergym.eval.harness import EvalResult, EvaluationHarness
from adaptergym.logging.run_logger import RunLogger
from adaptergym.store.checkpoint_store import CheckpointStore
from adaptergym.train.adapters.base import ArtifactRef

BEST_ADAPTER_NAME = "adapter.best_accuracy.pt"


@dataclass
class SweepResult:
    """Outcome of one sweep pass."""

    improved: bool = False
    best_scale: float | None = None
    best_accuracy: float = 0.0
    evaluations: list[tuple[float, EvalResult]] = field(default_factory=list)
    promotions: list[float] = field(default_factory=list)
    aborted: bool = False
    error: str | None = None


class CandidateSweepEvaluator:
    """Evaluates a candidate at every scale of a grid and tracks the best.

    Every grid point is evaluated even after an improvement; the comparison
    base moves with each improvement, so one pass may promote several times.
    """

    def __init__(
        self,
        harness: EvaluationHarness,
        store: CheckpointStore,
        run_logger: RunLogger | None = None,
        on_improvement: Callable[[float, EvalResult], None] | None = None,
        best_name: str = BEST_ADAPTER_NAME,
    ):
        self.harness = harness
        self.store = store
        self.run_logger = run_logger
        self.on_improvement = on_improvement
        self.best_name = best_name

    def sweep(
        self,
        candidate_name: str,
        scale_grid: Sequence[float],
        samples: Sequence[EvaluationSample],
        state: RunState,
    ) -> SweepResult:
        """Evaluate candidate_name at each scale and promote strict improvements.

        Args:
            candidate_name: Adapter name in the checkpoint store
            scale_grid: Ordered scales to try
            samples: Fixed evaluation set
            state: Run state, updated in place on each improvement

        Returns:
            SweepResult; ``aborted`` is set when a grid point failed to load
        """
        result = SweepResult(best_scale=state.best_scale, best_accuracy=state.best_observed_accuracy)
        candidate_path = self.store.path(candidate_name)

        for scale in scale_grid:
            self._log("evaluation_started", {"candidate": candidate_name, "scale": scale},
                      f"Evaluating LoRA adapter accuracy with scale {scale}...")
            try:
                evaluation = self.harness.evaluate(ArtifactRef(candidate_path, scale), samples)
            except ArtifactLoadFailure as e:
                result.aborted = True
                result.error = str(e)
                self._log("sweep_aborted", {"candidate": candidate_name, "scale": scale, "error": str(e)},
                          f"Evaluation failed at scale {scale}, skipping rest of sweep: {e}", "red")
                break

            result.evaluations.append((scale, evaluation))

            if evaluation.accuracy > state.best_observed_accuracy:
                self._promote(candidate_name, scale, evaluation, state, result)
            else:
                self._log(
                    "evaluation",
                    {"candidate": candidate_name, "scale": scale, **evaluation.to_dict(),
                     "best_accuracy": state.best_observed_accuracy, "best_scale": state.best_scale},
                    f"LoRA adapter accuracy: {round(evaluation.accuracy, 2)}% with scale {scale} - "
                    f"Best: {round(state.best_observed_accuracy, 2)}% with scale {state.best_scale} - "
                    f"Initial: {round(state.initial_accuracy, 2)}% - "
                    f"{round(evaluation.samples_per_second, 2)} samples/s.",
                )

        return result

    def _promote(
        self,
        candidate_name: str,
        scale: float,
        evaluation: EvalResult,
        state: RunState,
        result: SweepResult,
    ) -> None:
        try:
            self.store.promote(candidate_name, self.best_name)
        except StorageFailure as e:
            # Not adopted: the best reference must name a persisted file
            self._log("storage_failure", {"operation": "promote", "candidate": candidate_name,
                                          "scale": scale, "error": str(e)},
                      f"Could not persist improved adapter (scale {scale}): {e}", "red")
            return

        state.record_accuracy(evaluation.accuracy, scale)
        result.improved = True
        result.best_scale = scale
        result.best_accuracy = evaluation.accuracy
        result.promotions.append(scale)

        self._log(
            "improvement",
            {"candidate": candidate_name, "scale": scale, **evaluation.to_dict()},
            f"LoRA adapter best accuracy is now: {round(evaluation.accuracy, 2)}% - "
            f"LoRA scale: {scale} - {round(evaluation.samples_per_second, 2)} samples/s.",
            "green",
        )

        if self.on_improvement is not None:
            self.on_improvement(scale, evaluation)

    def _log(self, event_type: str, data: dict, message: str | None = None, color: str | None = None) -> None:
        if self.run_logger is not None:
            self.run_logger.log(event_type, data, message, color)
