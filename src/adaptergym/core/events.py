"""Training progress snapshots and cooperative cancellation."""

from dataclasses import dataclass
from datetime import timedelta


def format_duration(value: timedelta | None) -> str:
    """Render a duration as dd.hh:mm:ss, or '#' when unknown."""
    if value is None:
        return "#"
    total = int(value.total_seconds())
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{days:02d}.{hours:02d}:{minutes:02d}:{seconds:02d}"


@dataclass(frozen=True)
class ProgressEvent:
    """One progress report emitted by a trainer."""

    iteration: int
    iteration_count: int
    epoch: int
    percentage: float
    loss: float
    best_loss: float
    elapsed: timedelta
    remaining: timedelta | None = None
    next_sample_index: int = 0
    sample_count: int = 0

    @property
    def is_final(self) -> bool:
        return self.percentage >= 100

    def format(self) -> str:
        """One-line console summary."""
        return (
            f"Progress: {round(self.percentage, 2)}%. Epochs: {self.epoch}. "
            f"Iter.: {self.iteration}/{self.iteration_count}. "
            f"Next Sample: {self.next_sample_index}/{self.sample_count}. "
            f"Loss: {round(self.loss, 2)}. Elapsed: {format_duration(self.elapsed)}. "
            f"Rem.: {format_duration(self.remaining)}"
        )

    def to_dict(self) -> dict:
        return {
            "iteration": self.iteration,
            "iteration_count": self.iteration_count,
            "epoch": self.epoch,
            "percentage": self.percentage,
            "loss": self.loss,
            "best_loss": self.best_loss,
            "elapsed_seconds": self.elapsed.total_seconds(),
            "remaining_seconds": self.remaining.total_seconds() if self.remaining is not None else None,
            "next_sample_index": self.next_sample_index,
            "sample_count": self.sample_count,
        }


class CancellationToken:
    """Stop flag handed to a trainer.

    The trainer checks ``stop_requested`` at its next iteration boundary;
    cancellation is cooperative, never preemptive.
    """

    def __init__(self) -> None:
        self._stop_requested = False
        self._reason: str | None = None

    def request_stop(self, reason: str | None = None) -> None:
        # First reason wins
        if not self._stop_requested:
            self._reason = reason
        self._stop_requested = True

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    @property
    def reason(self) -> str | None:
        return self._reason
