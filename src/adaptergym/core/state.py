"""Per-run best-known state."""

import time
from dataclasses import dataclass, field
from enum import Enum


class ExperimentPhase(Enum):
    """Lifecycle of one experiment run."""

    INITIALIZING = "initializing"
    RUNNING = "running"
    STOPPING = "stopping"
    COMPLETED = "completed"
    FINALIZING = "finalizing"
    TERMINATED = "terminated"


@dataclass
class RunState:
    """Best loss, accuracy and scale observed during one run."""

    best_observed_loss: float = float("inf")
    best_observed_accuracy: float = 0.0
    initial_accuracy: float = 0.0
    best_scale: float | None = None
    start_time: float = field(default_factory=time.time)
    last_iteration: int = 0

    def record_loss(self, best_loss: float) -> bool:
        """Adopt best_loss if it is strictly lower. Returns True on improvement."""
        if best_loss < self.best_observed_loss:
            self.best_observed_loss = best_loss
            return True
        return False

    def record_accuracy(self, accuracy: float, scale: float) -> bool:
        """Adopt accuracy/scale if strictly better; ties keep the earlier best."""
        if accuracy > self.best_observed_accuracy:
            self.best_observed_accuracy = accuracy
            self.best_scale = scale
            return True
        return False

    def to_dict(self) -> dict:
        return {
            "best_observed_loss": self.best_observed_loss,
            "best_observed_accuracy": self.best_observed_accuracy,
            "initial_accuracy": self.initial_accuracy,
            "best_scale": self.best_scale,
            "start_time": self.start_time,
            "last_iteration": self.last_iteration,
        }
