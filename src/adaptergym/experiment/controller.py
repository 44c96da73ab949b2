"""Experiment controller: turns training progress into stop, snapshot and promotion decisions."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Sequence

from adaptergym.core.errors import (
    AdapterGymError,
    BaselineComputationFailure,
    StorageFailure,
    TrainerFailure,
)
from adaptergym.core.events import CancellationToken, ProgressEvent
from adaptergym.core.samples import EvaluationSample
from adaptergym.core.state import ExperimentPhase, RunState
from adaptergym.eval.harness import EvalResult, EvaluationHarness
from adaptergym.eval.sweep import BEST_ADAPTER_NAME, CandidateSweepEvaluator
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
from adaptergym.logging.run_logger import RunLogger
from adaptergym.recovery import RecoveryState
from adaptergym.store.checkpoint_store import CheckpointStore
from adaptergym.train.adapters.base import ArtifactRef, Finalizer, Trainer, TrainerConfig

LAST_ADAPTER_NAME = "adapter.last.pt"
BEST_LOSS_ADAPTER_NAME = "adapter.best_loss.pt"
BEST_CHECKPOINT_NAME = "checkpoint.best.pt"
RECOVERY_CHECKPOINT_NAME = "checkpoint.recovery.pt"
RECOVERY_STATE_NAME = "recovery_state.json"


@dataclass
class ExperimentReport:
    """Terminal outcome of one experiment."""

    success: bool
    output_path: str | None = None
    failure_reason: str | None = None
    best_accuracy: float = 0.0
    initial_accuracy: float = 0.0
    best_scale: float | None = None
    best_loss: float = float("inf")
    iterations: int = 0
    stop_reason: str | None = None

    def summary(self) -> str:
        if not self.success:
            return f"Experiment failed: {self.failure_reason}"
        return (
            f"Model created at {self.output_path} "
            f"(accuracy {round(self.initial_accuracy, 2)}% -> {round(self.best_accuracy, 2)}%, "
            f"scale {self.best_scale})"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "output_path": self.output_path,
            "failure_reason": self.failure_reason,
            "best_accuracy": self.best_accuracy,
            "initial_accuracy": self.initial_accuracy,
            "best_scale": self.best_scale,
            "best_loss": self.best_loss,
            "iterations": self.iterations,
            "stop_reason": self.stop_reason,
        }


class ExperimentController:
    """Supervises one fine-tuning run.

    The controller consumes the trainer's progress stream synchronously:
    every decision for event i (stop check, snapshots, sweep) completes
    before the trainer resumes and produces event i+1. A controller owns a
    fresh RunState and CancellationToken and is meant for a single run.

    Phases: INITIALIZING -> RUNNING -> {STOPPING, COMPLETED} -> FINALIZING -> TERMINATED
    """

    def __init__(
        self,
        trainer: Trainer,
        harness: EvaluationHarness,
        store: CheckpointStore,
        finalizer: Finalizer,
        samples: Sequence[EvaluationSample],
        output_path: str | Path,
        trainer_config: TrainerConfig | None = None,
        stopping: StoppingConfig | None = None,
        evaluation: EvaluationConfig | None = None,
        checkpoints: CheckpointConfig | None = None,
        run_logger: RunLogger | None = None,
        resume_state: RecoveryState | None = None,
        on_improvement: Callable[[float, EvalResult], None] | None = None,
        token: CancellationToken | None = None,
    ):
        self.trainer = trainer
        self.harness = harness
        self.store = store
        self.finalizer = finalizer
        self.samples = tuple(samples)
        self.output_path = Path(output_path)
        self.trainer_config = trainer_config or TrainerConfig()
        self.evaluation = evaluation or EvaluationConfig()
        self.run_logger = run_logger
        self.resume_state = resume_state
        self.on_improvement = on_improvement

        self.state = RunState()
        self.phase = ExperimentPhase.INITIALIZING
        self.token = token or CancellationToken()

        self.stopping_policy = StoppingPolicy(stopping)
        self.loss_gate = LossGate(self.evaluation.evaluate_below_loss)
        self.evaluation_cadence = AnyCadence(
            IterationCadence(self.evaluation.evaluate_every),
            CompletionCadence(),
        )
        self.recovery_cadence = IterationCadence((checkpoints or CheckpointConfig()).recovery_every)
        self.sweeper = CandidateSweepEvaluator(
            harness,
            store,
            run_logger=run_logger,
            on_improvement=self._handle_improvement,
        )

    def run(self) -> ExperimentReport:
        """Run the experiment to its terminal report.

        Raises:
            TrainerFailure: If the trainer fails; the phase ends as TERMINATED
        """
        try:
            self.initialize()
        except BaselineComputationFailure as e:
            return self._fail(str(e))

        self.phase = ExperimentPhase.RUNNING
        try:
            events = iter(self.trainer.run(self.trainer_config, self.token))
            while True:
                try:
                    event = next(events)
                except StopIteration:
                    break
                except TrainerFailure:
                    raise
                except Exception as e:
                    raise TrainerFailure(f"{self.trainer.name} failed: {e}") from e
                self.handle_event(event)
        except TrainerFailure as e:
            self.phase = ExperimentPhase.TERMINATED
            self._log("trainer_failure", {"error": str(e)}, f"Training failed: {e}", "red")
            raise

        if self.phase is ExperimentPhase.RUNNING:
            stopped = self.token.stop_requested
            self.phase = ExperimentPhase.STOPPING if stopped else ExperimentPhase.COMPLETED
        return self.finalize()

    def initialize(self) -> EvalResult:
        """Measure baseline accuracy of the untrained base model.

        Raises:
            BaselineComputationFailure: If the baseline cannot be computed
        """
        self.phase = ExperimentPhase.INITIALIZING
        self._log("baseline_started", {"sample_count": len(self.samples)}, "Computing initial model accuracy...")
        try:
            baseline = self.harness.evaluate(ArtifactRef(None, 1.0), self.samples)
        except (AdapterGymError, ValueError) as e:
            raise BaselineComputationFailure(f"Cannot compute baseline accuracy: {e}") from e

        self.state.initial_accuracy = baseline.accuracy
        self.state.best_observed_accuracy = baseline.accuracy
        self._log(
            "baseline",
            baseline.to_dict(),
            f"The initial model accuracy is {round(baseline.accuracy, 2):.2f}% - "
            f"{round(baseline.samples_per_second, 2)} samples/s.",
        )

        if self.resume_state is not None:
            self._restore(self.resume_state)
        return baseline

    def _restore(self, resume: RecoveryState) -> None:
        self.state.record_loss(resume.best_loss)
        # A stale best is only trusted while its adapter is still stored
        if resume.best_scale is not None and self.store.exists(self.sweeper.best_name):
            self.state.record_accuracy(resume.best_accuracy, resume.best_scale)
        self._log("resumed", {"iteration": resume.iteration, **self.state.to_dict()},
                  f"Resuming from iteration {resume.iteration} "
                  f"(best accuracy {round(self.state.best_observed_accuracy, 2)}%).")

    def handle_event(self, event: ProgressEvent) -> None:
        """Apply every policy to one progress event."""
        if self.phase is not ExperimentPhase.RUNNING:
            # Nothing new is started once a stop has been requested
            return

        self.state.last_iteration = event.iteration
        self._log("progress", event.to_dict(), event.format())

        reason = self.stopping_policy.stop_reason(event.iteration, event.loss, event.elapsed)
        if reason is not None:
            self.token.request_stop(reason)
            self._log("stop_requested", {"reason": reason, "iteration": event.iteration},
                      f"Stopping fine-tuning: {reason}.")

        if event.iteration > 0:
            candidate = self._track_best_loss(event)

            if self.evaluation_cadence.due(event):
                candidate = self._save_adapter(LAST_ADAPTER_NAME) or candidate

            if candidate is not None:
                self.sweeper.sweep(candidate, self.evaluation.scale_grid, self.samples, self.state)

            if self.recovery_cadence.due(event):
                self._save_recovery()

        if self.token.stop_requested:
            self.phase = ExperimentPhase.STOPPING

    def _track_best_loss(self, event: ProgressEvent) -> str | None:
        if not self.state.record_loss(event.best_loss):
            return None

        self._log("best_loss", {"best_loss": event.best_loss, "iteration": event.iteration},
                  f"Best training loss is now: {round(event.best_loss, 2)}", "green")

        if self.loss_gate.is_open(event.loss):
            return self._save_adapter(BEST_LOSS_ADAPTER_NAME)
        return None

    def _save_adapter(self, name: str) -> str | None:
        try:
            self.store.save(self.trainer.save_adapter, name)
        except StorageFailure as e:
            self._storage_failure("save_adapter", name, e)
            return None
        return name

    def _save_recovery(self) -> None:
        try:
            self.store.save(self.trainer.save_checkpoint, RECOVERY_CHECKPOINT_NAME)
            recovery = RecoveryState.from_run_state(self.state, RECOVERY_CHECKPOINT_NAME)
            self.store.save(recovery.save, RECOVERY_STATE_NAME)
        except StorageFailure as e:
            self._storage_failure("save_checkpoint", RECOVERY_CHECKPOINT_NAME, e)
            return
        self._log("checkpoint", {"name": RECOVERY_CHECKPOINT_NAME, "iteration": self.state.last_iteration})

    def _handle_improvement(self, scale: float, evaluation: EvalResult) -> None:
        try:
            self.store.save(self.trainer.save_checkpoint, BEST_CHECKPOINT_NAME)
        except StorageFailure as e:
            self._storage_failure("save_checkpoint", BEST_CHECKPOINT_NAME, e)
        if self.on_improvement is not None:
            self.on_improvement(scale, evaluation)

    def finalize(self) -> ExperimentReport:
        """Materialize the best adapter at its best scale."""
        self.phase = ExperimentPhase.FINALIZING

        if self.state.best_scale is None or not self.store.exists(self.sweeper.best_name):
            return self._fail("no candidate adapter exceeded the baseline accuracy")

        self._log("finalizing", {"scale": self.state.best_scale}, "Creating a model...")
        try:
            output = self.finalizer.materialize(
                self.store.path(self.sweeper.best_name),
                self.state.best_scale,
                self.output_path,
            )
        except Exception as e:
            # Any finalizer error fails the report, never the process
            return self._fail(f"cannot write final model: {e}")

        self.phase = ExperimentPhase.TERMINATED
        report = self._report(success=True, output_path=str(Path(output).resolve()))
        self._log("finalized", report.to_dict(), report.summary(), "green")
        if self.run_logger is not None:
            self.run_logger.log_artifact("model", report.output_path)
        return report

    def _fail(self, reason: str) -> ExperimentReport:
        self.phase = ExperimentPhase.TERMINATED
        report = self._report(success=False, failure_reason=reason)
        self._log("experiment_failed", report.to_dict(), report.summary(), "red")
        return report

    def _report(self, success: bool, output_path: str | None = None,
                failure_reason: str | None = None) -> ExperimentReport:
        return ExperimentReport(
            success=success,
            output_path=output_path,
            failure_reason=failure_reason,
            best_accuracy=self.state.best_observed_accuracy,
            initial_accuracy=self.state.initial_accuracy,
            best_scale=self.state.best_scale,
            best_loss=self.state.best_observed_loss,
            iterations=self.state.last_iteration,
            stop_reason=self.token.reason,
        )

    def _storage_failure(self, operation: str, name: str, error: StorageFailure) -> None:
        self._log("storage_failure", {"operation": operation, "name": name, "error": str(error)},
                  f"Could not write {name}: {error}", "red")

    def _log(self, event_type: str, data: dict, message: str | None = None, color: str | None = None) -> None:
        if self.run_logger is not None:
            self.run_logger.log(event_type, data, message, color)
