"""Stopping and cadence policies evaluated on every progress event."""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from adaptergym.core.events import ProgressEvent


@dataclass
class StoppingConfig:
    """Early-stop conditions."""

    loss_floor: float = 0.01
    max_duration: timedelta = timedelta(hours=24)

    def to_dict(self) -> dict[str, Any]:
        return {
            "loss_floor": self.loss_floor,
            "max_duration_hours": self.max_duration.total_seconds() / 3600,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StoppingConfig":
        return cls(
            loss_floor=data.get("loss_floor", 0.01),
            max_duration=timedelta(hours=data.get("max_duration_hours", 24)),
        )


@dataclass
class EvaluationConfig:
    """When and how candidate adapters are scored."""

    scale_grid: list[float] = field(default_factory=lambda: [0.75, 1.0, 1.25, 1.6])
    evaluate_every: int = 10
    # Best-loss candidates are only evaluated below this loss
    evaluate_below_loss: float = 2.0


@dataclass
class CheckpointConfig:
    """Recovery checkpoint cadence."""

    recovery_every: int = 10


class StoppingPolicy:
    """Decides whether training should stop.

    Pure: the decision depends only on the arguments and the config.
    """

    def __init__(self, config: StoppingConfig | None = None):
        self.config = config or StoppingConfig()

    def stop_reason(self, iteration: int, loss: float, elapsed: timedelta) -> str | None:
        """Return why training should stop, or None to continue."""
        # The first reported loss is too noisy to stop on
        if iteration > 1 and loss <= self.config.loss_floor:
            return "minimum loss reached"
        if elapsed > self.config.max_duration:
            return "maximum training duration reached"
        return None

    def should_stop(self, iteration: int, loss: float, elapsed: timedelta) -> bool:
        return self.stop_reason(iteration, loss, elapsed) is not None


class IterationCadence:
    """Due every N iterations; disabled when every <= 0."""

    def __init__(self, every: int):
        self.every = every

    def due(self, event: ProgressEvent) -> bool:
        if self.every <= 0:
            return False
        return event.iteration % self.every == 0


class CompletionCadence:
    """Due on the final event of a run."""

    def due(self, event: ProgressEvent) -> bool:
        return event.is_final


class AnyCadence:
    """Due when any of its cadences is due."""

    def __init__(self, *cadences: IterationCadence | CompletionCadence):
        self.cadences = cadences

    def due(self, event: ProgressEvent) -> bool:
        return any(c.due(event) for c in self.cadences)


class LossGate:
    """Open once the loss is below a threshold worth evaluating at."""

    def __init__(self, threshold: float):
        self.threshold = threshold

    def is_open(self, loss: float) -> bool:
        return loss < self.threshold
